"""Abstract interfaces (Protocol classes) for the compliance engine.

Defines the contracts between the service layer and the adapter layer using
Python's typing.Protocol. Services depend on these protocols, never on the
SQLAlchemy repositories directly, so they can be tested with mock adapters.

Protocols defined:
- IMerchantRepository
- IPrivacyPolicyRepository
- IDataCollectionPointRepository
- IAuditRepository
- IRegulatoryRuleRepository
- IThirdPartyAppRepository
- IAppRiskAssessmentRepository
- IAlertRepository
- IDataSubjectRequestRepository
- IConsentRecordRepository
- IBreachIncidentRepository
- ICookieRepository
- IAppInventorySource
- IAlertSink
"""

import uuid
from datetime import datetime
from typing import Any, Protocol

from merchant_compliance_engine.core.alerts import AlertStats
from merchant_compliance_engine.core.app_inventory import AppDescriptor
from merchant_compliance_engine.core.app_risk import FleetAssessment
from merchant_compliance_engine.core.models import (
    Alert,
    AppRiskAssessment,
    ComplianceAudit,
    CookieConsentRecord,
    DataCollectionPoint,
    DataSubjectRequest,
    DetectedCookie,
    Merchant,
    PrivacyPolicy,
    RegulatoryRule,
    ThirdPartyApp,
)


class IMerchantRepository(Protocol):
    """Repository contract for Merchant persistence."""

    async def get_by_id(self, merchant_id: uuid.UUID) -> Merchant:
        """Retrieve a merchant.

        Raises:
            NotFoundError: If no merchant exists with the given ID.
        """
        ...

    async def create(self, **fields: Any) -> Merchant: ...

    async def list_all(self) -> list[Merchant]: ...

    async def update_compliance(
        self,
        merchant_id: uuid.UUID,
        score: int,
        status: str,
        audited_at: datetime,
    ) -> Merchant:
        """Write the latest audit score and status onto the merchant."""
        ...


class IPrivacyPolicyRepository(Protocol):
    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[PrivacyPolicy]:
        """Return the merchant's policies, newest first."""
        ...


class IDataCollectionPointRepository(Protocol):
    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[DataCollectionPoint]: ...


class IAuditRepository(Protocol):
    """Repository contract for ComplianceAudit persistence.

    An audit is created once and then moved exactly once to a terminal status
    with mark_completed() or mark_failed().
    """

    async def create(self, merchant_id: uuid.UUID, audit_type: str = "comprehensive") -> ComplianceAudit:
        """Persist a new audit in status processing."""
        ...

    async def mark_completed(
        self,
        audit: ComplianceAudit,
        risk_score: int,
        findings: list[dict[str, Any]],
        recommendations: list[dict[str, Any]],
        completed_at: datetime,
    ) -> ComplianceAudit: ...

    async def mark_failed(self, audit: ComplianceAudit, error: str) -> ComplianceAudit:
        """Record the failure durably, even though the caller's unit of work will roll back."""
        ...

    async def get_by_id(self, audit_id: uuid.UUID) -> ComplianceAudit:
        """Raises NotFoundError if the audit does not exist."""
        ...

    async def list_for_merchant(self, merchant_id: uuid.UUID, limit: int = 10) -> list[ComplianceAudit]: ...

    async def get_latest(self, merchant_id: uuid.UUID) -> ComplianceAudit | None: ...

    async def count_processing(self, merchant_id: uuid.UUID | None = None) -> int: ...


class IRegulatoryRuleRepository(Protocol):
    async def find_active(
        self,
        regulation: str | None = None,
        category: str | None = None,
    ) -> list[RegulatoryRule]:
        """Active rules, ordered by requirement then category."""
        ...

    async def list_by_category(self, category: str, regulation: str | None = None) -> list[RegulatoryRule]:
        """Active rules in one category, ordered by requirement then title."""
        ...

    async def count(self) -> int: ...

    async def bulk_create(self, rules: list[dict[str, Any]]) -> list[RegulatoryRule]: ...

    async def update(self, rule_id: uuid.UUID, updates: dict[str, Any]) -> RegulatoryRule:
        """Raises NotFoundError if the rule does not exist."""
        ...


class IThirdPartyAppRepository(Protocol):
    async def delete_for_merchant(self, merchant_id: uuid.UUID) -> int: ...

    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> ThirdPartyApp: ...

    async def list_active(self, merchant_id: uuid.UUID) -> list[ThirdPartyApp]:
        """Active apps ordered by risk score descending, then name."""
        ...

    async def save_risk(
        self,
        app: ThirdPartyApp,
        risk_level: str,
        risk_score: int,
        compliance_issues: list[dict[str, Any]],
        assessed_at: datetime,
    ) -> ThirdPartyApp: ...


class IAppRiskAssessmentRepository(Protocol):
    async def create(self, merchant_id: uuid.UUID, assessment: FleetAssessment) -> AppRiskAssessment: ...

    async def get_latest(self, merchant_id: uuid.UUID) -> AppRiskAssessment | None: ...


class IAlertRepository(Protocol):
    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> Alert: ...

    async def get_by_id(self, alert_id: uuid.UUID) -> Alert:
        """Raises NotFoundError if the alert does not exist."""
        ...

    async def list_filtered(
        self,
        merchant_id: uuid.UUID | None = None,
        alert_type: str | None = None,
        severity: str | None = None,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[Alert]:
        """Alerts matching every given filter, newest first."""
        ...

    async def save(self, alert: Alert) -> Alert: ...

    async def delete_expired(self, now: datetime) -> int: ...


class IDataSubjectRequestRepository(Protocol):
    async def create(self, merchant_id: uuid.UUID, **fields: Any) -> DataSubjectRequest: ...

    async def get_by_id(self, request_id: uuid.UUID) -> DataSubjectRequest:
        """Raises NotFoundError if the request does not exist."""
        ...

    async def list_for_merchant(self, merchant_id: uuid.UUID) -> list[DataSubjectRequest]: ...

    async def update_status(
        self,
        request: DataSubjectRequest,
        status: str,
        response_data: dict[str, Any] | None = None,
        completed_at: datetime | None = None,
    ) -> DataSubjectRequest: ...

    async def count_pending(self, merchant_id: uuid.UUID | None = None) -> int: ...

    async def count_pending_before(self, merchant_id: uuid.UUID, cutoff: datetime) -> int:
        """Pending requests created before cutoff."""
        ...

    async def list_pending_before(self, cutoff: datetime) -> list[DataSubjectRequest]:
        """Pending requests of every merchant created before cutoff."""
        ...


class IConsentRecordRepository(Protocol):
    async def count_withdrawn_since(self, since: datetime, merchant_id: uuid.UUID | None = None) -> int: ...


class IBreachIncidentRepository(Protocol):
    async def count_since(self, since: datetime, merchant_id: uuid.UUID | None = None) -> int: ...


class ICookieRepository(Protocol):
    async def replace_for_merchant(
        self,
        merchant_id: uuid.UUID,
        cookies: list[dict[str, Any]],
    ) -> list[DetectedCookie]:
        """Delete the merchant's detected cookies and store the new set."""
        ...

    async def list_active(self, merchant_id: uuid.UUID) -> list[DetectedCookie]: ...

    async def create_consent(self, merchant_id: uuid.UUID, **fields: Any) -> CookieConsentRecord: ...

    async def get_consent(self, record_id: uuid.UUID) -> CookieConsentRecord:
        """Raises NotFoundError if the consent record does not exist."""
        ...

    async def save_consent(self, record: CookieConsentRecord) -> CookieConsentRecord: ...


class IAppInventorySource(Protocol):
    """Source of the apps installed on a merchant's store."""

    async def list_installed_apps(self, merchant_id: uuid.UUID) -> list[AppDescriptor]: ...


class IAlertSink(Protocol):
    """Where monitoring sends the alerts it raises."""

    async def create_alert(
        self,
        merchant_id: uuid.UUID,
        alert_type: str,
        severity: str,
        title: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        source_id: str | None = None,
        source_type: str | None = None,
        expires_at: datetime | None = None,
    ) -> Alert: ...

    async def get_alert_stats(self, merchant_id: uuid.UUID | None = None) -> AlertStats: ...

    async def cleanup_expired_alerts(self) -> int: ...
