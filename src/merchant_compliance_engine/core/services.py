"""Core business logic services for the compliance engine.

Service classes:
- MerchantService: merchant directory and compliance score updates
- ComplianceAuditService: audit pipeline runs, audit history, data mapping
- RegulatoryService: rule catalog queries, seeding and gap analysis
- AppRiskService: app inventory scans and fleet risk assessments
- AlertService: alert creation, forward-only lifecycle and statistics
- MonitoringService: health checks, monitoring metrics and sweep jobs
- DataSubjectRightsService: data-subject request intake and processing
- CookieConsentService: cookie classification, consent records, banner config

All services are async-first. They accept injected repositories through their
constructors, contain no framework code, and delegate scoring to the pure
functions in the sibling core modules.
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from merchant_compliance_engine.core import audit_pipeline
from merchant_compliance_engine.core.alerts import AlertStats, alert_stats, check_transition
from merchant_compliance_engine.core.app_inventory import build_app_fields
from merchant_compliance_engine.core.app_risk import (
    RISK_WEIGHTS,
    AppRiskAnalysis,
    RiskWeights,
    aggregate_fleet,
    analyze_app,
)
from merchant_compliance_engine.core.audit_pipeline import AuditOutcome
from merchant_compliance_engine.core.cookies import (
    CATEGORY_DESCRIPTIONS,
    CATEGORY_PURPOSES,
    CONSENT_DURATION_DAYS,
    CookieObservation,
    CookieScanResult,
    categorize_cookie,
    consent_status,
    cookie_description,
    cookie_metadata,
    cookie_source,
    normalize_consent_choices,
    summarize_scan,
)
from merchant_compliance_engine.core.data_mapping import DataMappingSummary, summarize_data_mapping
from merchant_compliance_engine.core.data_subject_rights import (
    DEFAULT_RESPONSE_DAYS,
    RequestStatistics,
    build_access_export,
    build_erasure_report,
    build_portable_document,
    request_deadline,
    request_priority,
    request_statistics,
)
from merchant_compliance_engine.core.enums import (
    AlertStatus,
    AlertType,
    CookieCategory,
    Regulation,
    RequestStatus,
    RequestType,
    RuleCategory,
    Severity,
)
from merchant_compliance_engine.core.gap_analysis import (
    PRIVACY_POLICY_KEY,
    GapAnalysis,
    MerchantProfile,
    RuleQuery,
    analyze_gaps,
    rule_matches,
)
from merchant_compliance_engine.core.health_check import (
    HEALTH_THRESHOLDS,
    HealthReport,
    HealthSignals,
    HealthThresholds,
    evaluate_health,
    score_monitoring_metrics,
)
from merchant_compliance_engine.core.interfaces import (
    IAlertRepository,
    IAlertSink,
    IAppInventorySource,
    IAppRiskAssessmentRepository,
    IAuditRepository,
    IBreachIncidentRepository,
    IConsentRecordRepository,
    ICookieRepository,
    IDataCollectionPointRepository,
    IDataSubjectRequestRepository,
    IMerchantRepository,
    IPrivacyPolicyRepository,
    IRegulatoryRuleRepository,
    IThirdPartyAppRepository,
)
from merchant_compliance_engine.core.models import (
    Alert,
    AppRiskAssessment,
    ComplianceAudit,
    CookieConsentRecord,
    DataSubjectRequest,
    DetectedCookie,
    Merchant,
    RegulatoryRule,
    ThirdPartyApp,
)
from merchant_compliance_engine.core.rule_catalog import load_rule_definitions
from merchant_compliance_engine.errors import InvalidStateError, ValidationError
from merchant_compliance_engine.observability import get_logger

logger = get_logger(__name__)

PUBLISHED_POLICY_STATUS = "published"
SYSTEM_ACTOR = "system"


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# MerchantService
# ---------------------------------------------------------------------------


class MerchantService:
    """Merchant directory.

    Args:
        merchant_repo: Merchant persistence.
    """

    def __init__(self, merchant_repo: IMerchantRepository) -> None:
        self._merchant_repo = merchant_repo

    async def get_merchant(self, merchant_id: uuid.UUID) -> Merchant:
        """Raises NotFoundError when the merchant does not exist."""
        return await self._merchant_repo.get_by_id(merchant_id)

    async def create_merchant(
        self,
        shop_domain: str,
        shop_name: str,
        business_type: str | None = None,
        jurisdiction: str | None = None,
        data_types: list[str] | None = None,
        implemented_controls: list[str] | None = None,
    ) -> Merchant:
        if not shop_domain.strip():
            raise ValidationError("shop_domain must not be empty", field="shop_domain")

        merchant = await self._merchant_repo.create(
            shop_domain=shop_domain,
            shop_name=shop_name,
            business_type=business_type,
            jurisdiction=jurisdiction,
            data_types=data_types or [],
            implemented_controls=implemented_controls or [],
        )
        logger.info("Merchant created", merchant_id=str(merchant.id), shop_domain=shop_domain)
        return merchant


# ---------------------------------------------------------------------------
# ComplianceAuditService
# ---------------------------------------------------------------------------


class ComplianceAuditService:
    """Runs the audit check pipeline and exposes audit history.

    An audit record is created in status processing before any check runs and
    is then moved exactly once to completed or failed. A failure inside the
    checks is recorded on the audit and re-raised unchanged.

    Args:
        merchant_repo: Merchant persistence.
        policy_repo: Privacy policy reads.
        data_point_repo: Data-collection point reads.
        audit_repo: Audit persistence.
    """

    def __init__(
        self,
        merchant_repo: IMerchantRepository,
        policy_repo: IPrivacyPolicyRepository,
        data_point_repo: IDataCollectionPointRepository,
        audit_repo: IAuditRepository,
    ) -> None:
        self._merchant_repo = merchant_repo
        self._policy_repo = policy_repo
        self._data_point_repo = data_point_repo
        self._audit_repo = audit_repo

    async def run_audit(self, merchant_id: uuid.UUID) -> ComplianceAudit:
        """Run every audit check for a merchant and persist the outcome.

        Args:
            merchant_id: The merchant to audit.

        Returns:
            The completed ComplianceAudit.

        Raises:
            NotFoundError: If the merchant does not exist. No audit is created.
            Exception: Whatever a check raised, after the audit is marked failed.
        """
        await self._merchant_repo.get_by_id(merchant_id)
        audit = await self._audit_repo.create(merchant_id)
        logger.info("Audit started", merchant_id=str(merchant_id), audit_id=str(audit.id))

        try:
            outcome = await self._evaluate(merchant_id)
        except Exception as exc:
            logger.error(
                "Audit failed",
                merchant_id=str(merchant_id),
                audit_id=str(audit.id),
                error=str(exc),
            )
            await self._audit_repo.mark_failed(audit, str(exc))
            raise

        completed_at = _utcnow()
        audit = await self._audit_repo.mark_completed(
            audit,
            risk_score=outcome.risk_score,
            findings=[finding.to_dict() for finding in outcome.findings],
            recommendations=[rec.to_dict() for rec in outcome.recommendations],
            completed_at=completed_at,
        )
        await self._merchant_repo.update_compliance(
            merchant_id, outcome.score, outcome.status, completed_at
        )

        logger.info(
            "Audit completed",
            merchant_id=str(merchant_id),
            audit_id=str(audit.id),
            score=outcome.score,
            status=str(outcome.status),
            finding_count=len(outcome.findings),
        )
        return audit

    async def _evaluate(self, merchant_id: uuid.UUID) -> AuditOutcome:
        policies = await self._policy_repo.list_for_merchant(merchant_id)
        data_points = await self._data_point_repo.list_for_merchant(merchant_id)
        return audit_pipeline.perform_audit_checks(policies, data_points)

    async def get_audit_history(self, merchant_id: uuid.UUID, limit: int = 10) -> list[ComplianceAudit]:
        """Most recent audits first."""
        return await self._audit_repo.list_for_merchant(merchant_id, limit)

    async def get_audit(self, audit_id: uuid.UUID) -> ComplianceAudit:
        return await self._audit_repo.get_by_id(audit_id)

    async def get_data_mapping(self, merchant_id: uuid.UUID) -> DataMappingSummary:
        data_points = await self._data_point_repo.list_for_merchant(merchant_id)
        return summarize_data_mapping(data_points)


# ---------------------------------------------------------------------------
# RegulatoryService
# ---------------------------------------------------------------------------


class RegulatoryService:
    """Regulatory rule catalog and gap analysis.

    Args:
        rule_repo: Regulatory rule persistence.
        merchant_repo: Merchant reads, used to build a profile when none is given.
        policy_repo: Policy reads, used to detect a published privacy policy.
        catalog_dir: Directory of YAML rule definitions used for seeding.
    """

    def __init__(
        self,
        rule_repo: IRegulatoryRuleRepository,
        merchant_repo: IMerchantRepository,
        policy_repo: IPrivacyPolicyRepository,
        catalog_dir: Path | None = None,
    ) -> None:
        self._rule_repo = rule_repo
        self._merchant_repo = merchant_repo
        self._policy_repo = policy_repo
        self._catalog_dir = catalog_dir

    async def find_applicable_rules(self, query: RuleQuery) -> list[RegulatoryRule]:
        """Active rules matching the query's regulation, category and applicability filters."""
        rules = await self._rule_repo.find_active(query.regulation, query.category)
        return [rule for rule in rules if rule_matches(rule, query)]

    async def get_rules_by_category(
        self,
        category: str,
        regulation: str | None = None,
    ) -> list[RegulatoryRule]:
        return await self._rule_repo.list_by_category(category, regulation)

    async def build_profile(self, merchant_id: uuid.UUID) -> MerchantProfile:
        """Profile from the merchant record and its published policies."""
        merchant = await self._merchant_repo.get_by_id(merchant_id)
        policies = await self._policy_repo.list_for_merchant(merchant_id)
        current_policies = (
            (PRIVACY_POLICY_KEY,)
            if any(policy.status == PUBLISHED_POLICY_STATUS for policy in policies)
            else ()
        )
        return MerchantProfile(
            business_type=merchant.business_type,
            jurisdiction=merchant.jurisdiction,
            data_types=tuple(merchant.data_types or ()),
            current_policies=current_policies,
            implemented_controls=tuple(merchant.implemented_controls or ()),
        )

    async def perform_gap_analysis(
        self,
        merchant_id: uuid.UUID,
        profile: MerchantProfile | None = None,
    ) -> GapAnalysis:
        """Classify every applicable rule for the merchant.

        Args:
            merchant_id: The merchant being analyzed.
            profile: Explicit profile. Built from stored state when omitted.

        Returns:
            GapAnalysis. With no applicable rules the score is 100 and gaps is empty.
        """
        if profile is None:
            profile = await self.build_profile(merchant_id)

        rules = await self.find_applicable_rules(RuleQuery.for_profile(profile))
        analysis = analyze_gaps(merchant_id, profile, rules)

        logger.info(
            "Gap analysis completed",
            merchant_id=str(merchant_id),
            applicable_rules=len(rules),
            score=analysis.overall_compliance_score,
            priority_actions=len(analysis.priority_actions),
        )
        return analysis

    async def seed_initial_rules(self) -> int:
        """Load the bundled catalog into an empty rule table.

        Returns:
            Number of rules created; 0 when rules already exist.
        """
        existing = await self._rule_repo.count()
        if existing > 0:
            logger.info("Regulatory rules already exist, skipping seed", existing=existing)
            return 0

        definitions = (
            load_rule_definitions(self._catalog_dir)
            if self._catalog_dir is not None
            else load_rule_definitions()
        )
        created = await self._rule_repo.bulk_create([d.to_model_fields() for d in definitions])
        logger.info("Seeded regulatory rules", count=len(created))
        return len(created)

    async def update_rule(self, rule_id: uuid.UUID, updates: Mapping[str, Any]) -> RegulatoryRule:
        """Apply updates to a rule and stamp last_updated.

        Raises:
            NotFoundError: If the rule does not exist.
        """
        rule = await self._rule_repo.update(rule_id, {**updates, "last_updated": _utcnow()})
        logger.info("Regulatory rule updated", rule_id=str(rule_id), fields=sorted(updates))
        return rule

    def list_regulations(self) -> list[str]:
        return [str(regulation) for regulation in Regulation]

    def list_categories(self) -> list[str]:
        return [str(category) for category in RuleCategory]


# ---------------------------------------------------------------------------
# AppRiskService
# ---------------------------------------------------------------------------


class AppRiskService:
    """Third-party app inventory and risk assessment.

    Args:
        app_repo: App persistence.
        assessment_repo: Append-only assessment history.
        merchant_repo: Merchant reads.
        inventory_source: Where installed apps are discovered.
        weights: Sub-factor weights.
        corrected_breakdown: Use the per-factor breakdown instead of the
            re-weighted composite.
    """

    def __init__(
        self,
        app_repo: IThirdPartyAppRepository,
        assessment_repo: IAppRiskAssessmentRepository,
        merchant_repo: IMerchantRepository,
        inventory_source: IAppInventorySource,
        weights: RiskWeights = RISK_WEIGHTS,
        corrected_breakdown: bool = False,
    ) -> None:
        self._app_repo = app_repo
        self._assessment_repo = assessment_repo
        self._merchant_repo = merchant_repo
        self._inventory_source = inventory_source
        self._weights = weights
        self._corrected_breakdown = corrected_breakdown

    async def scan_apps(self, merchant_id: uuid.UUID) -> list[ThirdPartyApp]:
        """Replace the merchant's recorded apps with the current inventory."""
        await self._merchant_repo.get_by_id(merchant_id)
        descriptors = await self._inventory_source.list_installed_apps(merchant_id)

        removed = await self._app_repo.delete_for_merchant(merchant_id)
        apps = [
            await self._app_repo.create(merchant_id, **build_app_fields(descriptor))
            for descriptor in descriptors
        ]

        logger.info(
            "App inventory scanned",
            merchant_id=str(merchant_id),
            detected=len(apps),
            removed=removed,
        )
        return apps

    async def perform_risk_assessment(self, merchant_id: uuid.UUID) -> AppRiskAssessment:
        """Score every active app and append a fleet assessment.

        An empty app set produces an assessment with all counts at zero.
        """
        apps = await self._app_repo.list_active(merchant_id)
        assessed_at = _utcnow()

        analyses: list[AppRiskAnalysis] = []
        for app in apps:
            analysis = analyze_app(app, self._weights)
            analyses.append(analysis)
            await self._app_repo.save_risk(
                app,
                risk_level=analysis.risk_level,
                risk_score=analysis.risk_score,
                compliance_issues=analysis.compliance_issues(),
                assessed_at=assessed_at,
            )

        fleet = aggregate_fleet(analyses, self._weights, self._corrected_breakdown)
        assessment = await self._assessment_repo.create(merchant_id, fleet)

        logger.info(
            "App risk assessment completed",
            merchant_id=str(merchant_id),
            total_apps=fleet.total_apps,
            high_risk_apps=fleet.high_risk_apps,
            overall_risk_score=fleet.overall_risk_score,
        )
        return assessment

    async def list_apps(self, merchant_id: uuid.UUID) -> list[ThirdPartyApp]:
        return await self._app_repo.list_active(merchant_id)

    async def get_latest_assessment(self, merchant_id: uuid.UUID) -> AppRiskAssessment | None:
        return await self._assessment_repo.get_latest(merchant_id)


# ---------------------------------------------------------------------------
# AlertService
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertFilters:
    merchant_id: uuid.UUID | None = None
    alert_type: str | None = None
    severity: str | None = None
    status: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


class AlertService:
    """Alert creation and lifecycle.

    Status transitions only move forward: active to acknowledged, resolved or
    dismissed, and acknowledged to resolved or dismissed.

    Args:
        alert_repo: Alert persistence.
        merchant_repo: Merchant reads for existence checks.
    """

    def __init__(self, alert_repo: IAlertRepository, merchant_repo: IMerchantRepository) -> None:
        self._alert_repo = alert_repo
        self._merchant_repo = merchant_repo

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
    ) -> Alert:
        """Create an active alert for an existing merchant.

        Raises:
            NotFoundError: If the merchant does not exist.
        """
        await self._merchant_repo.get_by_id(merchant_id)
        alert = await self._alert_repo.create(
            merchant_id,
            type=AlertType(alert_type),
            severity=Severity(severity),
            status=AlertStatus.ACTIVE,
            title=title,
            description=description,
            alert_metadata=metadata or {},
            source_id=source_id,
            source_type=source_type,
            expires_at=expires_at,
        )
        logger.info(
            "Alert created",
            alert_id=str(alert.id),
            merchant_id=str(merchant_id),
            alert_type=str(alert_type),
            severity=str(severity),
        )
        if severity in (Severity.HIGH, Severity.CRITICAL):
            logger.warning("High severity alert raised", title=title, description=description)
        return alert

    async def list_alerts(self, filters: AlertFilters | None = None) -> list[Alert]:
        filters = filters or AlertFilters()
        return await self._alert_repo.list_filtered(
            merchant_id=filters.merchant_id,
            alert_type=filters.alert_type,
            severity=filters.severity,
            status=filters.status,
            from_date=filters.from_date,
            to_date=filters.to_date,
        )

    async def get_alert(self, alert_id: uuid.UUID) -> Alert:
        return await self._alert_repo.get_by_id(alert_id)

    async def acknowledge_alert(self, alert_id: uuid.UUID, acknowledged_by: str | None = None) -> Alert:
        alert = await self._alert_repo.get_by_id(alert_id)
        check_transition(alert.status, AlertStatus.ACKNOWLEDGED)
        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_by = acknowledged_by or SYSTEM_ACTOR
        alert.acknowledged_at = _utcnow()
        return await self._save_transition(alert)

    async def resolve_alert(
        self,
        alert_id: uuid.UUID,
        resolved_by: str | None = None,
        resolution_notes: str | None = None,
    ) -> Alert:
        alert = await self._alert_repo.get_by_id(alert_id)
        check_transition(alert.status, AlertStatus.RESOLVED)
        alert.status = AlertStatus.RESOLVED
        alert.resolved_by = resolved_by or SYSTEM_ACTOR
        alert.resolved_at = _utcnow()
        alert.resolution_notes = resolution_notes
        return await self._save_transition(alert)

    async def dismiss_alert(self, alert_id: uuid.UUID) -> Alert:
        alert = await self._alert_repo.get_by_id(alert_id)
        check_transition(alert.status, AlertStatus.DISMISSED)
        alert.status = AlertStatus.DISMISSED
        return await self._save_transition(alert)

    async def _save_transition(self, alert: Alert) -> Alert:
        saved = await self._alert_repo.save(alert)
        logger.info("Alert updated", alert_id=str(alert.id), status=str(alert.status))
        return saved

    async def get_alert_stats(self, merchant_id: uuid.UUID | None = None) -> AlertStats:
        alerts = await self._alert_repo.list_filtered(merchant_id=merchant_id)
        return alert_stats(alerts)

    async def cleanup_expired_alerts(self) -> int:
        removed = await self._alert_repo.delete_expired(_utcnow())
        logger.info("Expired alerts cleaned up", count=removed)
        return removed


# ---------------------------------------------------------------------------
# MonitoringService
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonitoringMetrics:
    total_merchants: int
    active_audits: int
    pending_requests: int
    withdrawn_consents: int
    breach_incidents: int
    compliance_score: int
    alert_counts: dict[str, int]


class MonitoringService:
    """Per-merchant health checks, monitoring metrics and periodic sweeps.

    Args:
        merchant_repo: Merchant reads.
        audit_repo: Audit reads for staleness and in-flight counts.
        request_repo: Data-subject request counts.
        consent_repo: Consent withdrawal counts.
        breach_repo: Breach incident counts.
        alerts: Sink for the alerts raised by the sweeps.
        thresholds: Day and count limits for the health check.
        response_days: Days a data-subject request may stay pending.
    """

    def __init__(
        self,
        merchant_repo: IMerchantRepository,
        audit_repo: IAuditRepository,
        request_repo: IDataSubjectRequestRepository,
        consent_repo: IConsentRecordRepository,
        breach_repo: IBreachIncidentRepository,
        alerts: IAlertSink,
        thresholds: HealthThresholds = HEALTH_THRESHOLDS,
        response_days: int = DEFAULT_RESPONSE_DAYS,
    ) -> None:
        self._merchant_repo = merchant_repo
        self._audit_repo = audit_repo
        self._request_repo = request_repo
        self._consent_repo = consent_repo
        self._breach_repo = breach_repo
        self._alerts = alerts
        self._thresholds = thresholds
        self._response_days = response_days

    def _window_start(self, now: datetime) -> datetime:
        return now - timedelta(days=self._thresholds.window_days)

    def _response_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self._response_days)

    async def perform_health_check(self, merchant_id: uuid.UUID) -> HealthReport:
        """Compute the merchant's health score from freshly fetched signals.

        Raises:
            NotFoundError: If the merchant does not exist.
        """
        await self._merchant_repo.get_by_id(merchant_id)
        now = _utcnow()
        window_start = self._window_start(now)

        last_audit = await self._audit_repo.get_latest(merchant_id)
        pending = await self._request_repo.count_pending(merchant_id)
        overdue = 0
        if pending > 0:
            overdue = await self._request_repo.count_pending_before(merchant_id, self._response_cutoff(now))
        signals = HealthSignals(
            last_audit_at=last_audit.created_at if last_audit is not None else None,
            pending_requests=pending,
            overdue_requests=overdue,
            recent_withdrawals=await self._consent_repo.count_withdrawn_since(window_start, merchant_id),
            recent_breaches=await self._breach_repo.count_since(window_start, merchant_id),
        )

        report = evaluate_health(merchant_id, signals, now, thresholds=self._thresholds)
        logger.info(
            "Health check completed",
            merchant_id=str(merchant_id),
            score=report.overall_score,
            issue_count=len(report.issues),
        )
        return report

    async def get_monitoring_metrics(self, merchant_id: uuid.UUID | None = None) -> MonitoringMetrics:
        """Backlog and alert metrics for one merchant, or the whole fleet when merchant_id is None."""
        window_start = self._window_start(_utcnow())

        total_merchants = 1 if merchant_id is not None else len(await self._merchant_repo.list_all())
        active_audits = await self._audit_repo.count_processing(merchant_id)
        pending = await self._request_repo.count_pending(merchant_id)
        withdrawn = await self._consent_repo.count_withdrawn_since(window_start, merchant_id)
        breaches = await self._breach_repo.count_since(window_start, merchant_id)
        stats = await self._alerts.get_alert_stats(merchant_id)

        return MonitoringMetrics(
            total_merchants=total_merchants,
            active_audits=active_audits,
            pending_requests=pending,
            withdrawn_consents=withdrawn,
            breach_incidents=breaches,
            compliance_score=score_monitoring_metrics(
                pending, withdrawn, breaches, stats.active_by_severity
            ),
            alert_counts={"active": stats.active, **stats.active_by_severity},
        )

    async def monitor_overdue_requests(self) -> int:
        """Raise one critical alert per pending request older than the response window.

        Returns:
            Number of alerts created.
        """
        now = _utcnow()
        overdue = await self._request_repo.list_pending_before(self._response_cutoff(now))
        for request in overdue:
            await self._alerts.create_alert(
                merchant_id=request.merchant_id,
                alert_type=AlertType.COMPLIANCE_VIOLATION,
                severity=Severity.CRITICAL,
                title="Overdue Data Subject Request",
                description=f"Data subject request {request.id} is overdue ({request.request_type})",
                metadata={
                    "request_id": str(request.id),
                    "request_type": str(request.request_type),
                    "days_pending": (now - request.created_at).days,
                },
                source_id=str(request.id),
                source_type="data_subject_request",
            )
        logger.info("Overdue request monitoring completed", alerts_created=len(overdue))
        return len(overdue)

    async def run_daily_health_checks(self) -> int:
        """Health-check every merchant and raise an alert for each critical issue.

        A failure for one merchant is logged and does not stop the sweep.

        Returns:
            Number of merchants checked successfully.
        """
        merchants = await self._merchant_repo.list_all()
        checked = 0
        for merchant in merchants:
            try:
                report = await self.perform_health_check(merchant.id)
                for issue in report.issues:
                    if issue.severity != Severity.CRITICAL:
                        continue
                    await self._alerts.create_alert(
                        merchant_id=merchant.id,
                        alert_type=AlertType.COMPLIANCE_VIOLATION,
                        severity=issue.severity,
                        title=f"Compliance Issue: {issue.type}",
                        description=issue.description,
                        metadata={
                            "health_check_score": report.overall_score,
                            "recommendation": issue.recommendation,
                        },
                    )
                checked += 1
            except Exception as exc:
                logger.error("Health check failed", merchant_id=str(merchant.id), error=str(exc))
        logger.info("Daily health checks completed", merchants=len(merchants), checked=checked)
        return checked

    async def cleanup_expired_alerts(self) -> int:
        return await self._alerts.cleanup_expired_alerts()


# ---------------------------------------------------------------------------
# DataSubjectRightsService
# ---------------------------------------------------------------------------


class DataSubjectRightsService:
    """Data-subject request intake and processing.

    Args:
        request_repo: Request persistence.
        merchant_repo: Merchant reads for existence checks.
        data_point_repo: Data-collection points used to build responses.
    """

    def __init__(
        self,
        request_repo: IDataSubjectRequestRepository,
        merchant_repo: IMerchantRepository,
        data_point_repo: IDataCollectionPointRepository,
    ) -> None:
        self._request_repo = request_repo
        self._merchant_repo = merchant_repo
        self._data_point_repo = data_point_repo

    async def create_request(
        self,
        merchant_id: uuid.UUID,
        request_type: str,
        customer_email: str,
        customer_id: str | None = None,
        description: str | None = None,
        request_data: dict[str, Any] | None = None,
    ) -> DataSubjectRequest:
        """Create a pending request with its priority and response deadline.

        Raises:
            NotFoundError: If the merchant does not exist.
            ValidationError: If the request type is unknown.
        """
        try:
            kind = RequestType(request_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown request type: {request_type}", field="request_type") from exc

        await self._merchant_repo.get_by_id(merchant_id)
        now = _utcnow()
        request = await self._request_repo.create(
            merchant_id,
            request_type=kind,
            customer_email=customer_email,
            customer_id=customer_id,
            status=RequestStatus.PENDING,
            priority=request_priority(kind),
            deadline=request_deadline(kind, now),
            request_data=request_data or {"description": description, "received_at": now.isoformat()},
        )
        logger.info(
            "Data subject request created",
            request_id=str(request.id),
            merchant_id=str(merchant_id),
            request_type=str(kind),
        )
        return request

    async def get_request(self, request_id: uuid.UUID) -> DataSubjectRequest:
        return await self._request_repo.get_by_id(request_id)

    async def list_requests(self, merchant_id: uuid.UUID) -> list[DataSubjectRequest]:
        return await self._request_repo.list_for_merchant(merchant_id)

    async def update_status(
        self,
        request_id: uuid.UUID,
        status: str,
        response_data: dict[str, Any] | None = None,
    ) -> DataSubjectRequest:
        """Move a request to a new status, e.g. when it is handled manually.

        Raises:
            NotFoundError: If the request does not exist.
            ValidationError: If the status is unknown.
        """
        try:
            new_status = RequestStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown request status: {status}", field="status") from exc

        request = await self._request_repo.get_by_id(request_id)
        completed_at = _utcnow() if new_status == RequestStatus.COMPLETED else None
        updated = await self._request_repo.update_status(request, new_status, response_data, completed_at)
        logger.info("Data subject request updated", request_id=str(request_id), status=str(status))
        return updated

    async def _start(self, request_id: uuid.UUID, expected: RequestType) -> DataSubjectRequest:
        request = await self._request_repo.get_by_id(request_id)
        if request.request_type != expected:
            raise InvalidStateError(
                f"Request is not {'an' if expected[0] in 'aeiou' else 'a'} {expected} request",
                current_state=str(request.request_type),
            )
        if request.status in (RequestStatus.COMPLETED, RequestStatus.REJECTED):
            raise InvalidStateError(
                f"Request {request_id} is already {request.status}",
                current_state=str(request.status),
            )
        return await self._request_repo.update_status(request, RequestStatus.PROCESSING)

    async def process_access_request(self, request_id: uuid.UUID) -> dict[str, Any]:
        """Assemble and record what the merchant holds about the data subject.

        Raises:
            InvalidStateError: If the request is not an access request or is already closed.
        """
        request = await self._start(request_id, RequestType.ACCESS)
        data_points = await self._data_point_repo.list_for_merchant(request.merchant_id)
        export = build_access_export(request, data_points)
        await self._request_repo.update_status(request, RequestStatus.COMPLETED, export, _utcnow())
        logger.info("Access request completed", request_id=str(request_id))
        return export

    async def process_erasure_request(self, request_id: uuid.UUID) -> dict[str, Any]:
        request = await self._start(request_id, RequestType.ERASURE)
        data_points = await self._data_point_repo.list_for_merchant(request.merchant_id)
        report = build_erasure_report(data_points)
        await self._request_repo.update_status(request, RequestStatus.COMPLETED, report, _utcnow())
        logger.info("Erasure request completed", request_id=str(request_id))
        return report

    async def process_portability_request(self, request_id: uuid.UUID) -> dict[str, Any]:
        request = await self._start(request_id, RequestType.PORTABILITY)
        data_points = await self._data_point_repo.list_for_merchant(request.merchant_id)
        document = build_portable_document(request, build_access_export(request, data_points))
        await self._request_repo.update_status(request, RequestStatus.COMPLETED, document, _utcnow())
        logger.info("Portability request completed", request_id=str(request_id))
        return document

    async def get_request_statistics(self, merchant_id: uuid.UUID) -> RequestStatistics:
        requests = await self._request_repo.list_for_merchant(merchant_id)
        return request_statistics(requests)


# ---------------------------------------------------------------------------
# CookieConsentService
# ---------------------------------------------------------------------------


class CookieConsentService:
    """Cookie classification and visitor consent.

    Args:
        cookie_repo: Detected cookie and consent persistence.
        merchant_repo: Merchant reads.
    """

    def __init__(self, cookie_repo: ICookieRepository, merchant_repo: IMerchantRepository) -> None:
        self._cookie_repo = cookie_repo
        self._merchant_repo = merchant_repo

    async def classify_cookies(
        self,
        merchant_id: uuid.UUID,
        site_url: str,
        cookies: list[CookieObservation],
    ) -> CookieScanResult:
        """Classify observed cookies, replace the stored set and report issues."""
        await self._merchant_repo.get_by_id(merchant_id)
        now = _utcnow()

        classified = []
        rows: list[dict[str, Any]] = []
        for cookie in cookies:
            category = categorize_cookie(cookie.name, cookie.domain)
            source = cookie_source(cookie.domain, site_url)
            classified.append((cookie, category, source))
            rows.append(
                {
                    "name": cookie.name,
                    "domain": cookie.domain,
                    "path": cookie.path,
                    "expires": cookie.expires,
                    "http_only": cookie.http_only,
                    "secure": cookie.secure,
                    "same_site": cookie.same_site,
                    "category": category,
                    "source": source,
                    "consent_status": consent_status(category),
                    "purpose": CATEGORY_PURPOSES[category],
                    "description": cookie_description(cookie.name, category),
                    "cookie_metadata": cookie_metadata(cookie.name, cookie.domain),
                    "last_seen": now,
                }
            )

        await self._cookie_repo.replace_for_merchant(merchant_id, rows)
        result = summarize_scan(classified, now)
        logger.info(
            "Cookies classified",
            merchant_id=str(merchant_id),
            total=result.total_cookies,
            third_party=result.third_party_cookies,
            issues=len(result.compliance_issues),
        )
        return result

    async def list_cookies(self, merchant_id: uuid.UUID) -> list[DetectedCookie]:
        return await self._cookie_repo.list_active(merchant_id)

    async def record_consent(
        self,
        merchant_id: uuid.UUID,
        consent_choices: Mapping[str, bool],
        session_id: str | None = None,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        consent_method: str | None = None,
    ) -> CookieConsentRecord:
        """Store a visitor's choices. Missing categories default to denied, essential to granted."""
        record = await self._cookie_repo.create_consent(
            merchant_id,
            session_id=session_id,
            user_id=user_id,
            consent_choices=normalize_consent_choices(consent_choices),
            ip_address=ip_address,
            user_agent=user_agent,
            consent_method=consent_method or "banner",
            expires_at=_utcnow() + timedelta(days=CONSENT_DURATION_DAYS),
        )
        logger.info("Cookie consent recorded", merchant_id=str(merchant_id), record_id=str(record.id))
        return record

    async def get_consent(self, record_id: uuid.UUID) -> CookieConsentRecord:
        return await self._cookie_repo.get_consent(record_id)

    async def withdraw_consent(self, record_id: uuid.UUID) -> CookieConsentRecord:
        record = await self._cookie_repo.get_consent(record_id)
        if record.withdrawn_at is not None:
            raise InvalidStateError("Consent has already been withdrawn", current_state="withdrawn")
        record.withdrawn_at = _utcnow()
        record.consent_choices = normalize_consent_choices({})
        saved = await self._cookie_repo.save_consent(record)
        logger.info("Cookie consent withdrawn", record_id=str(record_id))
        return saved

    async def build_banner_config(self, merchant_id: uuid.UUID) -> dict[str, Any]:
        """Consent banner configuration covering the categories in use."""
        merchant = await self._merchant_repo.get_by_id(merchant_id)
        cookies = await self._cookie_repo.list_active(merchant_id)
        categories = list(dict.fromkeys(CookieCategory(cookie.category) for cookie in cookies))

        return {
            "merchant_id": str(merchant_id),
            "banner_settings": {
                "position": "bottom",
                "theme": "light",
                "show_logo": True,
                "company_name": merchant.shop_name or "Your Store",
            },
            "consent_options": {
                "granular_consent": True,
                "categories": [
                    {
                        "category": str(category),
                        "required": category == CookieCategory.ESSENTIAL,
                        "default_enabled": category == CookieCategory.ESSENTIAL,
                        "description": CATEGORY_DESCRIPTIONS[category],
                    }
                    for category in categories
                ],
            },
            "legal_settings": {
                "jurisdiction": merchant.jurisdiction or "EU",
                "privacy_policy_url": "/privacy-policy",
                "cookie_policy_url": "/cookie-policy",
                "consent_duration": CONSENT_DURATION_DAYS,
            },
        }
