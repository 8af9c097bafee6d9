"""SQLAlchemy repositories for the compliance engine database.

Each repository implements the corresponding protocol from core/interfaces.py
and extends BaseRepository for session handling.

Repositories:
- MerchantRepository              — Merchant CRUD and compliance score updates
- PrivacyPolicyRepository         — PrivacyPolicy reads
- DataCollectionPointRepository   — DataCollectionPoint reads
- AuditRepository                 — ComplianceAudit lifecycle and history
- RegulatoryRuleRepository        — RegulatoryRule queries, seeding and updates
- ThirdPartyAppRepository         — ThirdPartyApp inventory and risk results
- AppRiskAssessmentRepository     — append-only AppRiskAssessment history
- AlertRepository                 — Alert CRUD and filtered listing
- DataSubjectRequestRepository    — DataSubjectRequest CRUD and backlog counts
- ConsentRecordRepository         — ConsentRecord withdrawal counts
- BreachIncidentRepository        — BreachIncident counts
- CookieRepository                — DetectedCookie and CookieConsentRecord
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_compliance_engine.core.app_risk import FleetAssessment
from merchant_compliance_engine.core.enums import AuditStatus, RequestStatus, RequirementLevel
from merchant_compliance_engine.core.models import (
    Alert,
    AppRiskAssessment,
    BreachIncident,
    ComplianceAudit,
    ConsentRecord,
    CookieConsentRecord,
    DataCollectionPoint,
    DataSubjectRequest,
    DetectedCookie,
    Merchant,
    PrivacyPolicy,
    RegulatoryRule,
    ThirdPartyApp,
)
from merchant_compliance_engine.database import BaseRepository
from merchant_compliance_engine.errors import NotFoundError
from merchant_compliance_engine.observability import get_logger

logger = get_logger(__name__)

# Binding rules sort first
_REQUIREMENT_ORDER = case(
    (RegulatoryRule.requirement == RequirementLevel.MANDATORY, 0),
    (RegulatoryRule.requirement == RequirementLevel.RECOMMENDED, 1),
    else_=2,
)


class MerchantRepository(BaseRepository[Merchant]):
    """Repository for Merchant persistence.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Merchant)

    async def get_by_id(self, merchant_id: uuid.UUID) -> Merchant:
        return await self._get_or_raise(merchant_id, "Merchant")

    async def create(self, **fields: Any) -> Merchant:
        return await self._persist(Merchant(**fields))

    async def list_all(self) -> list[Merchant]:
        result = await self._session.execute(select(Merchant).order_by(Merchant.created_at))
        return list(result.scalars().all())

    async def update_compliance(
        self,
        merchant_id: uuid.UUID,
        score: int,
        status: str,
        audited_at: datetime,
    ) -> Merchant:
        """Write the latest audit score and status onto the merchant.

        Raises:
            NotFoundError: If the merchant does not exist.
        """
        stmt = (
            update(Merchant)
            .where(Merchant.id == merchant_id)
            .values(compliance_score=score, compliance_status=status, last_audit_date=audited_at)
            .returning(Merchant)
        )
        result = await self._session.execute(stmt)
        merchant = result.scalar_one_or_none()
        if merchant is None:
            raise NotFoundError(resource="Merchant", resource_id=str(merchant_id))
        return merchant


class PrivacyPolicyRepository(BaseRepository[PrivacyPolicy]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PrivacyPolicy)

    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[PrivacyPolicy]:
        stmt = (
            select(PrivacyPolicy)
            .where(PrivacyPolicy.merchant_id == merchant_id)
            .order_by(PrivacyPolicy.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class DataCollectionPointRepository(BaseRepository[DataCollectionPoint]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, DataCollectionPoint)

    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[DataCollectionPoint]:
        stmt = (
            select(DataCollectionPoint)
            .where(DataCollectionPoint.merchant_id == merchant_id)
            .order_by(DataCollectionPoint.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class AuditRepository(BaseRepository[ComplianceAudit]):
    """Repository for ComplianceAudit persistence.

    mark_failed() commits immediately so the failed audit survives the
    rollback of the request's unit of work when the error propagates.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ComplianceAudit)

    async def create(self, merchant_id: uuid.UUID, audit_type: str = "comprehensive") -> ComplianceAudit:
        audit = ComplianceAudit(
            merchant_id=merchant_id,
            audit_type=audit_type,
            status=AuditStatus.PROCESSING,
            findings=[],
            recommendations=[],
            audit_data={},
        )
        return await self._persist(audit)

    async def mark_completed(
        self,
        audit: ComplianceAudit,
        risk_score: int,
        findings: list[dict[str, Any]],
        recommendations: list[dict[str, Any]],
        completed_at: datetime,
    ) -> ComplianceAudit:
        audit.status = AuditStatus.COMPLETED
        audit.risk_score = risk_score
        audit.findings = findings
        audit.recommendations = recommendations
        audit.completed_at = completed_at
        return await self._persist(audit)

    async def mark_failed(self, audit: ComplianceAudit, error: str) -> ComplianceAudit:
        audit.status = AuditStatus.FAILED
        audit.audit_data = {"error": error}
        self._session.add(audit)
        await self._session.commit()
        logger.info("Audit failure recorded", audit_id=str(audit.id))
        return audit

    async def get_by_id(self, audit_id: uuid.UUID) -> ComplianceAudit:
        return await self._get_or_raise(audit_id, "ComplianceAudit")

    async def list_for_merchant(self, merchant_id: uuid.UUID, limit: int = 10) -> list[ComplianceAudit]:
        stmt = (
            select(ComplianceAudit)
            .where(ComplianceAudit.merchant_id == merchant_id)
            .order_by(ComplianceAudit.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_latest(self, merchant_id: uuid.UUID) -> ComplianceAudit | None:
        audits = await self.list_for_merchant(merchant_id, limit=1)
        return audits[0] if audits else None

    async def count_processing(self, merchant_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count(ComplianceAudit.id)).where(
            ComplianceAudit.status == AuditStatus.PROCESSING
        )
        if merchant_id is not None:
            stmt = stmt.where(ComplianceAudit.merchant_id == merchant_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0


class RegulatoryRuleRepository(BaseRepository[RegulatoryRule]):
    """Repository for the regulatory rule catalog.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RegulatoryRule)

    async def find_active(
        self,
        regulation: str | None = None,
        category: str | None = None,
    ) -> list[RegulatoryRule]:
        stmt = select(RegulatoryRule).where(RegulatoryRule.is_active.is_(True))
        if regulation:
            stmt = stmt.where(RegulatoryRule.regulation == regulation)
        if category:
            stmt = stmt.where(RegulatoryRule.category == category)
        stmt = stmt.order_by(_REQUIREMENT_ORDER, RegulatoryRule.category)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_category(self, category: str, regulation: str | None = None) -> list[RegulatoryRule]:
        stmt = select(RegulatoryRule).where(
            RegulatoryRule.is_active.is_(True),
            RegulatoryRule.category == category,
        )
        if regulation:
            stmt = stmt.where(RegulatoryRule.regulation == regulation)
        stmt = stmt.order_by(_REQUIREMENT_ORDER, RegulatoryRule.title)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self._session.execute(select(func.count(RegulatoryRule.id)))
        return result.scalar() or 0

    async def bulk_create(self, rules: list[dict[str, Any]]) -> list[RegulatoryRule]:
        created = [RegulatoryRule(**fields) for fields in rules]
        self._session.add_all(created)
        await self._session.flush()
        return created

    async def update(self, rule_id: uuid.UUID, updates: dict[str, Any]) -> RegulatoryRule:
        stmt = (
            update(RegulatoryRule)
            .where(RegulatoryRule.id == rule_id)
            .values(**updates)
            .returning(RegulatoryRule)
        )
        result = await self._session.execute(stmt)
        rule = result.scalar_one_or_none()
        if rule is None:
            raise NotFoundError(resource="RegulatoryRule", resource_id=str(rule_id))
        return rule


class ThirdPartyAppRepository(BaseRepository[ThirdPartyApp]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ThirdPartyApp)

    async def delete_for_merchant(self, merchant_id: uuid.UUID) -> int:
        result = await self._session.execute(
            delete(ThirdPartyApp).where(ThirdPartyApp.merchant_id == merchant_id)
        )
        return result.rowcount or 0

    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> ThirdPartyApp:
        return await self._persist(ThirdPartyApp(merchant_id=merchant_id, **fields))

    async def list_active(self, merchant_id: uuid.UUID) -> list[ThirdPartyApp]:
        stmt = (
            select(ThirdPartyApp)
            .where(ThirdPartyApp.merchant_id == merchant_id, ThirdPartyApp.is_active.is_(True))
            .order_by(ThirdPartyApp.risk_score.desc(), ThirdPartyApp.app_name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def save_risk(
        self,
        app: ThirdPartyApp,
        risk_level: str,
        risk_score: int,
        compliance_issues: list[dict[str, Any]],
        assessed_at: datetime,
    ) -> ThirdPartyApp:
        app.risk_level = risk_level
        app.risk_score = risk_score
        app.compliance_issues = compliance_issues
        app.last_risk_assessment = assessed_at
        return await self._persist(app)


class AppRiskAssessmentRepository(BaseRepository[AppRiskAssessment]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AppRiskAssessment)

    async def create(self, merchant_id: uuid.UUID, assessment: FleetAssessment) -> AppRiskAssessment:
        record = AppRiskAssessment(
            merchant_id=merchant_id,
            total_apps=assessment.total_apps,
            high_risk_apps=assessment.high_risk_apps,
            medium_risk_apps=assessment.medium_risk_apps,
            low_risk_apps=assessment.low_risk_apps,
            overall_risk_score=assessment.overall_risk_score,
            risk_breakdown=assessment.risk_breakdown,
            recommendations=assessment.recommendations,
            compliance_gaps=assessment.compliance_gaps,
        )
        return await self._persist(record)

    async def get_latest(self, merchant_id: uuid.UUID) -> AppRiskAssessment | None:
        stmt = (
            select(AppRiskAssessment)
            .where(AppRiskAssessment.merchant_id == merchant_id)
            .order_by(AppRiskAssessment.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class AlertRepository(BaseRepository[Alert]):
    """Repository for monitoring alerts.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Alert)

    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> Alert:
        return await self._persist(Alert(merchant_id=merchant_id, **fields))

    async def get_by_id(self, alert_id: uuid.UUID) -> Alert:
        return await self._get_or_raise(alert_id, "Alert")

    async def list_filtered(
        self,
        merchant_id: uuid.UUID | None = None,
        alert_type: str | None = None,
        severity: str | None = None,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[Alert]:
        """Alerts matching every given filter, newest first.

        Args:
            merchant_id: Restrict to one merchant.
            alert_type: Alert type value.
            severity: Severity value.
            status: Status value.
            from_date: Inclusive lower bound on created_at.
            to_date: Inclusive upper bound on created_at.

        Returns:
            Matching alerts.
        """
        stmt = select(Alert)
        if merchant_id is not None:
            stmt = stmt.where(Alert.merchant_id == merchant_id)
        if alert_type:
            stmt = stmt.where(Alert.type == alert_type)
        if severity:
            stmt = stmt.where(Alert.severity == severity)
        if status:
            stmt = stmt.where(Alert.status == status)
        if from_date is not None:
            stmt = stmt.where(Alert.created_at >= from_date)
        if to_date is not None:
            stmt = stmt.where(Alert.created_at <= to_date)
        stmt = stmt.order_by(Alert.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def save(self, alert: Alert) -> Alert:
        return await self._persist(alert)

    async def delete_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            delete(Alert).where(Alert.expires_at.is_not(None), Alert.expires_at < now)
        )
        return result.rowcount or 0


class DataSubjectRequestRepository(BaseRepository[DataSubjectRequest]):
    """Repository for data-subject requests.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, DataSubjectRequest)

    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> DataSubjectRequest:
        return await self._persist(DataSubjectRequest(merchant_id=merchant_id, **fields))

    async def get_by_id(self, request_id: uuid.UUID) -> DataSubjectRequest:
        return await self._get_or_raise(request_id, "DataSubjectRequest")

    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[DataSubjectRequest]:
        stmt = (
            select(DataSubjectRequest)
            .where(DataSubjectRequest.merchant_id == merchant_id)
            .order_by(DataSubjectRequest.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_status(
        self,
        request: DataSubjectRequest,
        status: str,
        response_data: dict[str, Any] | None = None,
        completed_at: datetime | None = None,
    ) -> DataSubjectRequest:
        request.status = status
        if response_data is not None:
            request.response_data = response_data
        if completed_at is not None:
            request.completed_at = completed_at
        return await self._persist(request)

    async def count_pending(self, merchant_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count(DataSubjectRequest.id)).where(
            DataSubjectRequest.status == RequestStatus.PENDING
        )
        if merchant_id is not None:
            stmt = stmt.where(DataSubjectRequest.merchant_id == merchant_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def count_pending_before(self, merchant_id: uuid.UUID, cutoff: datetime) -> int:
        stmt = select(func.count(DataSubjectRequest.id)).where(
            DataSubjectRequest.merchant_id == merchant_id,
            DataSubjectRequest.status == RequestStatus.PENDING,
            DataSubjectRequest.created_at < cutoff,
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def list_pending_before(self, cutoff: datetime) -> list[DataSubjectRequest]:
        stmt = (
            select(DataSubjectRequest)
            .where(
                DataSubjectRequest.status == RequestStatus.PENDING,
                DataSubjectRequest.created_at < cutoff,
            )
            .order_by(DataSubjectRequest.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ConsentRecordRepository(BaseRepository[ConsentRecord]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ConsentRecord)

    async def count_withdrawn_since(self, since: datetime, merchant_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count(ConsentRecord.id)).where(ConsentRecord.withdrawn_at >= since)
        if merchant_id is not None:
            stmt = stmt.where(ConsentRecord.merchant_id == merchant_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0


class BreachIncidentRepository(BaseRepository[BreachIncident]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, BreachIncident)

    async def count_since(self, since: datetime, merchant_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count(BreachIncident.id)).where(BreachIncident.created_at >= since)
        if merchant_id is not None:
            stmt = stmt.where(BreachIncident.merchant_id == merchant_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0


class CookieRepository(BaseRepository[DetectedCookie]):
    """Repository for detected cookies and visitor cookie consent.

    Args:
        session: The async session for the current unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, DetectedCookie)

    async def replace_for_merchant(
        self,
        merchant_id: uuid.UUID,
        cookies: list[dict[str, Any]],
    ) -> list[DetectedCookie]:
        await self._session.execute(delete(DetectedCookie).where(DetectedCookie.merchant_id == merchant_id))
        created = [DetectedCookie(merchant_id=merchant_id, **fields) for fields in cookies]
        self._session.add_all(created)
        await self._session.flush()
        return created

    async def list_active(self, merchant_id: uuid.UUID) -> list[DetectedCookie]:
        stmt = (
            select(DetectedCookie)
            .where(DetectedCookie.merchant_id == merchant_id, DetectedCookie.is_active.is_(True))
            .order_by(DetectedCookie.category, DetectedCookie.name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create_consent(self, merchant_id: uuid.UUID, **fields: Any) -> CookieConsentRecord:
        record = CookieConsentRecord(merchant_id=merchant_id, **fields)
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def get_consent(self, record_id: uuid.UUID) -> CookieConsentRecord:
        record = await self._session.get(CookieConsentRecord, record_id)
        if record is None:
            raise NotFoundError(resource="CookieConsentRecord", resource_id=str(record_id))
        return record

    async def save_consent(self, record: CookieConsentRecord) -> CookieConsentRecord:
        self._session.add(record)
        await self._session.flush()
        return record
