"""API router for merchant-compliance-engine.

All endpoints are registered here and included in main.py under the /api/v1
prefix. Routes are thin: all business logic lives in the service layer. The
acting merchant comes from the X-Merchant-ID header. Merchant onboarding and
the /jobs sweeps span merchants and take no header.

Endpoints:
- POST        /merchants                            — Onboard a merchant
- GET         /merchants/me                         — Calling merchant profile
- POST/GET    /audits                               — Run audit / audit history
- GET         /audits/{id}                          — Get audit by ID
- GET         /data-mapping                         — Data-collection summary
- POST        /gap-analysis                         — Regulatory gap analysis
- GET         /rules                                — List applicable rules
- GET         /rules/categories/{category}          — Rules in one category
- POST        /rules/seed                           — Load the bundled catalog
- PATCH       /rules/{id}                           — Update a rule
- GET         /regulations                          — List supported regulations
- GET         /rule-categories                      — List rule categories
- POST        /apps/scan                            — Refresh app inventory
- POST        /apps/risk-assessment                 — Assess app risk
- GET         /apps/risk-assessment/latest          — Latest app risk assessment
- GET         /apps                                 — List apps
- GET         /monitoring/health                    — Health check
- GET         /monitoring/metrics                   — Monitoring metrics
- GET         /alerts                               — List alerts
- POST        /alerts/{id}/acknowledge|resolve|dismiss — Alert lifecycle
- POST/GET    /data-subject-requests                — Create / list requests
- GET         /data-subject-requests/statistics     — Request statistics
- GET         /data-subject-requests/{id}           — Get request by ID
- POST        /data-subject-requests/{id}/process   — Process access, erasure or portability
- PATCH       /data-subject-requests/{id}/status    — Set status of a manually handled request
- POST        /cookies/scan                         — Classify observed cookies
- GET         /cookies                              — List detected cookies
- POST        /cookies/consent                      — Record visitor consent
- POST        /cookies/consent/{id}/withdraw        — Withdraw visitor consent
- GET         /cookies/banner-config                — Consent banner configuration
- POST        /jobs/overdue-requests|health-checks|alert-cleanup — Monitoring sweeps
"""

import dataclasses
import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_compliance_engine.adapters.auth import MerchantContext, get_current_merchant
from merchant_compliance_engine.adapters.repositories import (
    AlertRepository,
    AppRiskAssessmentRepository,
    AuditRepository,
    BreachIncidentRepository,
    ConsentRecordRepository,
    CookieRepository,
    DataCollectionPointRepository,
    DataSubjectRequestRepository,
    MerchantRepository,
    PrivacyPolicyRepository,
    RegulatoryRuleRepository,
    ThirdPartyAppRepository,
)
from merchant_compliance_engine.api.schemas import (
    AlertResolveRequest,
    AlertResponse,
    AppRiskAssessmentResponse,
    AuditResponse,
    ComplianceGapResponse,
    CookieConsentRequest,
    CookieConsentResponse,
    CookieScanRequest,
    CookieScanResponse,
    DataMappingResponse,
    DataSubjectRequestCreate,
    DataSubjectRequestProcessResponse,
    DataSubjectRequestResponse,
    DataSubjectRequestStatusUpdate,
    DetectedCookieResponse,
    GapAnalysisRequest,
    GapAnalysisResponse,
    HealthCheckResponse,
    HealthIssueResponse,
    JobResultResponse,
    MerchantCreate,
    MerchantResponse,
    MonitoringMetricsResponse,
    RegulatoryRuleResponse,
    RegulatoryRuleUpdate,
    RequestStatisticsResponse,
    RuleSeedResponse,
    ThirdPartyAppResponse,
)
from merchant_compliance_engine.core.app_inventory import SAMPLE_APPS, StaticAppInventorySource
from merchant_compliance_engine.core.cookies import CookieObservation
from merchant_compliance_engine.core.enums import RequestStatus, RequestType
from merchant_compliance_engine.core.gap_analysis import RuleQuery
from merchant_compliance_engine.core.health_check import HealthThresholds
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
from merchant_compliance_engine.core.services import (
    AlertFilters,
    AlertService,
    AppRiskService,
    ComplianceAuditService,
    CookieConsentService,
    DataSubjectRightsService,
    MerchantService,
    MonitoringService,
    RegulatoryService,
)
from merchant_compliance_engine.database import get_db_session
from merchant_compliance_engine.errors import InvalidStateError, NotFoundError, ValidationError
from merchant_compliance_engine.observability import get_logger
from merchant_compliance_engine.settings import Settings, get_settings

logger = get_logger(__name__)

router = APIRouter(tags=["compliance"])

CurrentMerchant = Annotated[MerchantContext, Depends(get_current_merchant)]


# ---------------------------------------------------------------------------
# Dependency factories — wire repositories and services together
# ---------------------------------------------------------------------------


def get_merchant_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> MerchantService:
    return MerchantService(merchant_repo=MerchantRepository(session))


def get_audit_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ComplianceAuditService:
    """Construct ComplianceAuditService with injected repositories."""
    return ComplianceAuditService(
        merchant_repo=MerchantRepository(session),
        policy_repo=PrivacyPolicyRepository(session),
        data_point_repo=DataCollectionPointRepository(session),
        audit_repo=AuditRepository(session),
    )


def get_regulatory_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RegulatoryService:
    return RegulatoryService(
        rule_repo=RegulatoryRuleRepository(session),
        merchant_repo=MerchantRepository(session),
        policy_repo=PrivacyPolicyRepository(session),
        catalog_dir=settings.rule_catalog_dir,
    )


def get_app_risk_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AppRiskService:
    """Construct AppRiskService.

    App discovery uses the bundled static inventory; no platform API is called.
    """
    return AppRiskService(
        app_repo=ThirdPartyAppRepository(session),
        assessment_repo=AppRiskAssessmentRepository(session),
        merchant_repo=MerchantRepository(session),
        inventory_source=StaticAppInventorySource(SAMPLE_APPS),
        corrected_breakdown=settings.corrected_risk_breakdown,
    )


def get_alert_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> AlertService:
    return AlertService(alert_repo=AlertRepository(session), merchant_repo=MerchantRepository(session))


def get_monitoring_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MonitoringService:
    """Construct MonitoringService with thresholds taken from settings."""
    merchant_repo = MerchantRepository(session)
    return MonitoringService(
        merchant_repo=merchant_repo,
        audit_repo=AuditRepository(session),
        request_repo=DataSubjectRequestRepository(session),
        consent_repo=ConsentRecordRepository(session),
        breach_repo=BreachIncidentRepository(session),
        alerts=AlertService(alert_repo=AlertRepository(session), merchant_repo=merchant_repo),
        thresholds=HealthThresholds(
            audit_interval_days=settings.audit_interval_days,
            audit_due_soon_days=settings.audit_due_soon_days,
            pending_requests=settings.pending_dsr_threshold,
            consent_withdrawals=settings.consent_withdrawal_threshold,
            window_days=settings.monitoring_window_days,
        ),
        response_days=settings.dsr_response_days,
    )


def get_dsr_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> DataSubjectRightsService:
    return DataSubjectRightsService(
        request_repo=DataSubjectRequestRepository(session),
        merchant_repo=MerchantRepository(session),
        data_point_repo=DataCollectionPointRepository(session),
    )


def get_cookie_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CookieConsentService:
    return CookieConsentService(cookie_repo=CookieRepository(session), merchant_repo=MerchantRepository(session))


# ---------------------------------------------------------------------------
# Merchant endpoints
# ---------------------------------------------------------------------------


@router.post("/merchants", response_model=MerchantResponse, status_code=201)
async def create_merchant(
    request: MerchantCreate,
    service: Annotated[MerchantService, Depends(get_merchant_service)],
) -> MerchantResponse:
    """Onboard a store. The returned id is the X-Merchant-ID for later calls."""
    logger.info("POST /merchants", shop_domain=request.shop_domain)
    merchant = await service.create_merchant(**request.model_dump())
    return _merchant_to_response(merchant)


@router.get("/merchants/me", response_model=MerchantResponse)
async def get_current_merchant_profile(
    merchant: CurrentMerchant,
    service: Annotated[MerchantService, Depends(get_merchant_service)],
) -> MerchantResponse:
    return _merchant_to_response(await service.get_merchant(merchant.merchant_id))


# ---------------------------------------------------------------------------
# Audit endpoints
# ---------------------------------------------------------------------------


@router.post("/audits", response_model=AuditResponse, status_code=201)
async def run_audit(
    merchant: CurrentMerchant,
    service: Annotated[ComplianceAuditService, Depends(get_audit_service)],
) -> AuditResponse:
    """Run a comprehensive compliance audit for the calling merchant.

    The merchant's compliance score and status are updated when the audit
    completes. A failing check marks the audit failed and returns an error.
    """
    logger.info("POST /audits", merchant_id=str(merchant.merchant_id))
    audit = await service.run_audit(merchant.merchant_id)
    return _audit_to_response(audit)


@router.get("/audits", response_model=list[AuditResponse])
async def get_audit_history(
    merchant: CurrentMerchant,
    service: Annotated[ComplianceAuditService, Depends(get_audit_service)],
    limit: int = Query(default=10, ge=1, le=100),
) -> list[AuditResponse]:
    audits = await service.get_audit_history(merchant.merchant_id, limit=limit)
    return [_audit_to_response(audit) for audit in audits]


@router.get("/audits/{audit_id}", response_model=AuditResponse)
async def get_audit(
    audit_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[ComplianceAuditService, Depends(get_audit_service)],
) -> AuditResponse:
    audit = await service.get_audit(audit_id)
    _ensure_owned(audit.merchant_id, merchant, "ComplianceAudit", audit_id)
    return _audit_to_response(audit)


@router.get("/data-mapping", response_model=DataMappingResponse)
async def get_data_mapping(
    merchant: CurrentMerchant,
    service: Annotated[ComplianceAuditService, Depends(get_audit_service)],
) -> DataMappingResponse:
    summary = await service.get_data_mapping(merchant.merchant_id)
    return DataMappingResponse(**summary.to_dict())


# ---------------------------------------------------------------------------
# Regulatory endpoints
# ---------------------------------------------------------------------------


@router.post("/gap-analysis", response_model=GapAnalysisResponse)
async def perform_gap_analysis(
    merchant: CurrentMerchant,
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
    request: GapAnalysisRequest | None = None,
) -> GapAnalysisResponse:
    """Compare the merchant against every applicable regulatory rule.

    Profile fields given in the body override the stored merchant record.
    """
    profile = await service.build_profile(merchant.merchant_id)
    if request is not None:
        overrides = {
            name: tuple(value) if isinstance(value, list) else value
            for name, value in request.model_dump(exclude_none=True).items()
        }
        profile = dataclasses.replace(profile, **overrides)

    analysis = await service.perform_gap_analysis(merchant.merchant_id, profile)
    return GapAnalysisResponse(
        merchant_id=merchant.merchant_id,
        applicable_rules=len(analysis.applicable_rules),
        gaps=[ComplianceGapResponse(**gap.to_dict()) for gap in analysis.gaps],
        overall_compliance_score=analysis.overall_compliance_score,
        priority_actions=analysis.priority_actions,
    )


@router.get("/rules", response_model=list[RegulatoryRuleResponse])
async def list_rules(
    merchant: CurrentMerchant,
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
    regulation: str | None = Query(default=None, description="Regulation code filter"),
    category: str | None = Query(default=None, description="Rule category filter"),
    business_type: str | None = Query(default=None),
    jurisdiction: str | None = Query(default=None),
    data_types: list[str] | None = Query(default=None),
) -> list[RegulatoryRuleResponse]:
    query = RuleQuery(
        regulation=regulation,
        category=category,
        business_type=business_type,
        jurisdiction=jurisdiction,
        data_types=tuple(data_types or ()),
    )
    rules = await service.find_applicable_rules(query)
    return [_rule_to_response(rule) for rule in rules]


@router.get("/rules/categories/{category}", response_model=list[RegulatoryRuleResponse])
async def list_rules_by_category(
    category: str,
    merchant: CurrentMerchant,
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
    regulation: str | None = Query(default=None, description="Regulation code filter"),
) -> list[RegulatoryRuleResponse]:
    rules = await service.get_rules_by_category(category, regulation)
    return [_rule_to_response(rule) for rule in rules]


@router.post("/rules/seed", response_model=RuleSeedResponse)
async def seed_rules(
    merchant: CurrentMerchant,
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
) -> RuleSeedResponse:
    """Load the bundled rule catalog. Does nothing when rules already exist."""
    logger.info("POST /rules/seed", merchant_id=str(merchant.merchant_id))
    return RuleSeedResponse(created=await service.seed_initial_rules())


@router.patch("/rules/{rule_id}", response_model=RegulatoryRuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    request: RegulatoryRuleUpdate,
    merchant: CurrentMerchant,
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
) -> RegulatoryRuleResponse:
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("At least one rule field must be provided")
    logger.info("PATCH /rules", rule_id=str(rule_id), merchant_id=str(merchant.merchant_id))
    rule = await service.update_rule(rule_id, updates)
    return _rule_to_response(rule)


@router.get("/regulations", response_model=list[str])
async def list_regulations(
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
) -> list[str]:
    return service.list_regulations()


@router.get("/rule-categories", response_model=list[str])
async def list_rule_categories(
    service: Annotated[RegulatoryService, Depends(get_regulatory_service)],
) -> list[str]:
    return service.list_categories()


# ---------------------------------------------------------------------------
# App risk endpoints
# ---------------------------------------------------------------------------


@router.post("/apps/scan", response_model=list[ThirdPartyAppResponse])
async def scan_apps(
    merchant: CurrentMerchant,
    service: Annotated[AppRiskService, Depends(get_app_risk_service)],
) -> list[ThirdPartyAppResponse]:
    apps = await service.scan_apps(merchant.merchant_id)
    return [_app_to_response(app) for app in apps]


@router.post("/apps/risk-assessment", response_model=AppRiskAssessmentResponse, status_code=201)
async def perform_risk_assessment(
    merchant: CurrentMerchant,
    service: Annotated[AppRiskService, Depends(get_app_risk_service)],
) -> AppRiskAssessmentResponse:
    assessment = await service.perform_risk_assessment(merchant.merchant_id)
    return _assessment_to_response(assessment)


@router.get("/apps/risk-assessment/latest", response_model=AppRiskAssessmentResponse)
async def get_latest_assessment(
    merchant: CurrentMerchant,
    service: Annotated[AppRiskService, Depends(get_app_risk_service)],
) -> AppRiskAssessmentResponse:
    assessment = await service.get_latest_assessment(merchant.merchant_id)
    if assessment is None:
        raise NotFoundError(resource="AppRiskAssessment", resource_id=str(merchant.merchant_id))
    return _assessment_to_response(assessment)


@router.get("/apps", response_model=list[ThirdPartyAppResponse])
async def list_apps(
    merchant: CurrentMerchant,
    service: Annotated[AppRiskService, Depends(get_app_risk_service)],
) -> list[ThirdPartyAppResponse]:
    apps = await service.list_apps(merchant.merchant_id)
    return [_app_to_response(app) for app in apps]


# ---------------------------------------------------------------------------
# Monitoring endpoints
# ---------------------------------------------------------------------------


@router.get("/monitoring/health", response_model=HealthCheckResponse)
async def health_check(
    merchant: CurrentMerchant,
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> HealthCheckResponse:
    report = await service.perform_health_check(merchant.merchant_id)
    return HealthCheckResponse(
        merchant_id=merchant.merchant_id,
        overall_score=report.overall_score,
        issues=[HealthIssueResponse(**issue.to_dict()) for issue in report.issues],
        last_audit_date=report.last_audit_date,
        next_audit_due=report.next_audit_due,
    )


@router.get("/monitoring/metrics", response_model=MonitoringMetricsResponse)
async def monitoring_metrics(
    merchant: CurrentMerchant,
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> MonitoringMetricsResponse:
    metrics = await service.get_monitoring_metrics(merchant.merchant_id)
    return MonitoringMetricsResponse(**dataclasses.asdict(metrics))


# ---------------------------------------------------------------------------
# Alert endpoints
# ---------------------------------------------------------------------------


@router.get("/alerts", response_model=list[AlertResponse])
async def list_alerts(
    merchant: CurrentMerchant,
    service: Annotated[AlertService, Depends(get_alert_service)],
    alert_type: str | None = Query(default=None, alias="type"),
    severity: str | None = Query(default=None),
    alert_status: str | None = Query(default=None, alias="status"),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
) -> list[AlertResponse]:
    alerts = await service.list_alerts(
        AlertFilters(
            merchant_id=merchant.merchant_id,
            alert_type=alert_type,
            severity=severity,
            status=alert_status,
            from_date=from_date,
            to_date=to_date,
        )
    )
    return [_alert_to_response(alert) for alert in alerts]


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> AlertResponse:
    await _owned_alert(service, alert_id, merchant)
    alert = await service.acknowledge_alert(alert_id, merchant.actor)
    return _alert_to_response(alert)


@router.post("/alerts/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[AlertService, Depends(get_alert_service)],
    request: AlertResolveRequest | None = None,
) -> AlertResponse:
    await _owned_alert(service, alert_id, merchant)
    notes = request.resolution_notes if request is not None else None
    alert = await service.resolve_alert(alert_id, merchant.actor, notes)
    return _alert_to_response(alert)


@router.post("/alerts/{alert_id}/dismiss", response_model=AlertResponse)
async def dismiss_alert(
    alert_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[AlertService, Depends(get_alert_service)],
) -> AlertResponse:
    await _owned_alert(service, alert_id, merchant)
    alert = await service.dismiss_alert(alert_id)
    return _alert_to_response(alert)


# ---------------------------------------------------------------------------
# Data-subject request endpoints
# ---------------------------------------------------------------------------


@router.post("/data-subject-requests", response_model=DataSubjectRequestResponse, status_code=201)
async def create_data_subject_request(
    request: DataSubjectRequestCreate,
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> DataSubjectRequestResponse:
    logger.info(
        "POST /data-subject-requests",
        merchant_id=str(merchant.merchant_id),
        request_type=request.request_type,
    )
    created = await service.create_request(
        merchant_id=merchant.merchant_id,
        request_type=request.request_type,
        customer_email=request.customer_email,
        customer_id=request.customer_id,
        description=request.description,
    )
    return _dsr_to_response(created)


@router.get("/data-subject-requests", response_model=list[DataSubjectRequestResponse])
async def list_data_subject_requests(
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> list[DataSubjectRequestResponse]:
    requests = await service.list_requests(merchant.merchant_id)
    return [_dsr_to_response(item) for item in requests]


@router.get("/data-subject-requests/statistics", response_model=RequestStatisticsResponse)
async def data_subject_request_statistics(
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> RequestStatisticsResponse:
    stats = await service.get_request_statistics(merchant.merchant_id)
    return RequestStatisticsResponse(**dataclasses.asdict(stats))


@router.get("/data-subject-requests/{request_id}", response_model=DataSubjectRequestResponse)
async def get_data_subject_request(
    request_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> DataSubjectRequestResponse:
    return _dsr_to_response(await _owned_request(service, request_id, merchant))


@router.patch("/data-subject-requests/{request_id}/status", response_model=DataSubjectRequestResponse)
async def update_data_subject_request_status(
    request_id: uuid.UUID,
    update: DataSubjectRequestStatusUpdate,
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> DataSubjectRequestResponse:
    await _owned_request(service, request_id, merchant)
    updated = await service.update_status(request_id, update.status, update.response_data)
    return _dsr_to_response(updated)


_AUTOMATED_PROCESSORS = {
    RequestType.ACCESS: "process_access_request",
    RequestType.ERASURE: "process_erasure_request",
    RequestType.PORTABILITY: "process_portability_request",
}


@router.post(
    "/data-subject-requests/{request_id}/process",
    response_model=DataSubjectRequestProcessResponse,
)
async def process_data_subject_request(
    request_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[DataSubjectRightsService, Depends(get_dsr_service)],
) -> DataSubjectRequestProcessResponse:
    """Run the automated handler for the request's type and complete it.

    Rectification, restriction and objection requests are handled manually
    and return 409.
    """
    request = await _owned_request(service, request_id, merchant)
    processor_name = _AUTOMATED_PROCESSORS.get(RequestType(request.request_type))
    if processor_name is None:
        raise InvalidStateError(
            f"{request.request_type} requests cannot be processed automatically",
            current_state=str(request.request_type),
        )

    logger.info("POST /data-subject-requests/process", request_id=str(request_id))
    response_data = await getattr(service, processor_name)(request_id)
    return DataSubjectRequestProcessResponse(
        request_id=request_id,
        request_type=request.request_type,
        status=str(RequestStatus.COMPLETED),
        response_data=response_data,
    )


# ---------------------------------------------------------------------------
# Cookie endpoints
# ---------------------------------------------------------------------------


@router.post("/cookies/scan", response_model=CookieScanResponse)
async def scan_cookies(
    request: CookieScanRequest,
    merchant: CurrentMerchant,
    service: Annotated[CookieConsentService, Depends(get_cookie_service)],
) -> CookieScanResponse:
    """Classify the cookies observed on the storefront and replace the stored set."""
    observations = [CookieObservation(**cookie.model_dump()) for cookie in request.cookies]
    result = await service.classify_cookies(merchant.merchant_id, request.site_url, observations)
    return CookieScanResponse(
        total_cookies=result.total_cookies,
        categorized_cookies=result.categorized_cookies,
        third_party_cookies=result.third_party_cookies,
        compliance_issues=[issue.to_dict() for issue in result.compliance_issues],
        consent_requirements=(
            dataclasses.asdict(result.consent_requirements) if result.consent_requirements else None
        ),
    )


@router.get("/cookies", response_model=list[DetectedCookieResponse])
async def list_cookies(
    merchant: CurrentMerchant,
    service: Annotated[CookieConsentService, Depends(get_cookie_service)],
) -> list[DetectedCookieResponse]:
    cookies = await service.list_cookies(merchant.merchant_id)
    return [_cookie_to_response(cookie) for cookie in cookies]


@router.post("/cookies/consent", response_model=CookieConsentResponse, status_code=201)
async def record_cookie_consent(
    request: CookieConsentRequest,
    http_request: Request,
    merchant: CurrentMerchant,
    service: Annotated[CookieConsentService, Depends(get_cookie_service)],
) -> CookieConsentResponse:
    record = await service.record_consent(
        merchant.merchant_id,
        request.consent_choices,
        session_id=request.session_id,
        user_id=request.user_id,
        ip_address=http_request.client.host if http_request.client else None,
        user_agent=http_request.headers.get("user-agent"),
        consent_method=request.consent_method,
    )
    return _consent_to_response(record)


@router.post("/cookies/consent/{record_id}/withdraw", response_model=CookieConsentResponse)
async def withdraw_cookie_consent(
    record_id: uuid.UUID,
    merchant: CurrentMerchant,
    service: Annotated[CookieConsentService, Depends(get_cookie_service)],
) -> CookieConsentResponse:
    record = await service.get_consent(record_id)
    _ensure_owned(record.merchant_id, merchant, "CookieConsentRecord", record_id)
    return _consent_to_response(await service.withdraw_consent(record_id))


@router.get("/cookies/banner-config")
async def cookie_banner_config(
    merchant: CurrentMerchant,
    service: Annotated[CookieConsentService, Depends(get_cookie_service)],
) -> dict[str, Any]:
    return await service.build_banner_config(merchant.merchant_id)


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------


@router.post("/jobs/overdue-requests", response_model=JobResultResponse)
async def run_overdue_request_job(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> JobResultResponse:
    """Raise a critical alert for every pending request past the response window."""
    return JobResultResponse(job="overdue-requests", processed=await service.monitor_overdue_requests())


@router.post("/jobs/health-checks", response_model=JobResultResponse)
async def run_health_check_job(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> JobResultResponse:
    return JobResultResponse(job="health-checks", processed=await service.run_daily_health_checks())


@router.post("/jobs/alert-cleanup", response_model=JobResultResponse)
async def run_alert_cleanup_job(
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
) -> JobResultResponse:
    return JobResultResponse(job="alert-cleanup", processed=await service.cleanup_expired_alerts())


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP status codes."""

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message, "resource": exc.resource},
        )

    @app.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(InvalidStateError)
    async def _conflict(request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message, "current_state": exc.current_state},
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_owned(owner_id: uuid.UUID, merchant: MerchantContext, resource: str, resource_id: uuid.UUID) -> None:
    """Hide other merchants' records behind a not-found error."""
    if owner_id != merchant.merchant_id:
        raise NotFoundError(resource=resource, resource_id=str(resource_id))


async def _owned_alert(service: AlertService, alert_id: uuid.UUID, merchant: MerchantContext) -> Alert:
    alert = await service.get_alert(alert_id)
    _ensure_owned(alert.merchant_id, merchant, "Alert", alert_id)
    return alert


async def _owned_request(
    service: DataSubjectRightsService, request_id: uuid.UUID, merchant: MerchantContext
) -> DataSubjectRequest:
    request = await service.get_request(request_id)
    _ensure_owned(request.merchant_id, merchant, "DataSubjectRequest", request_id)
    return request


def _merchant_to_response(merchant: Merchant) -> MerchantResponse:
    return MerchantResponse(
        id=merchant.id,
        shop_domain=merchant.shop_domain,
        shop_name=merchant.shop_name,
        business_type=merchant.business_type,
        jurisdiction=merchant.jurisdiction,
        data_types=merchant.data_types or [],
        implemented_controls=merchant.implemented_controls or [],
        compliance_score=merchant.compliance_score,
        compliance_status=merchant.compliance_status,
        last_audit_date=merchant.last_audit_date,
    )


def _audit_to_response(audit: ComplianceAudit) -> AuditResponse:
    return AuditResponse(
        id=audit.id,
        merchant_id=audit.merchant_id,
        audit_type=audit.audit_type,
        status=audit.status,
        risk_score=audit.risk_score,
        findings=audit.findings or [],
        recommendations=audit.recommendations or [],
        audit_data=audit.audit_data or {},
        completed_at=audit.completed_at,
        created_at=audit.created_at,
    )


def _rule_to_response(rule: RegulatoryRule) -> RegulatoryRuleResponse:
    return RegulatoryRuleResponse(
        id=rule.id,
        regulation=rule.regulation,
        category=rule.category,
        title=rule.title,
        description=rule.description,
        legal_reference=rule.legal_reference,
        requirement=rule.requirement,
        applicability_conditions=rule.applicability_conditions or {},
        effective_date=rule.effective_date,
    )


def _app_to_response(app: ThirdPartyApp) -> ThirdPartyAppResponse:
    return ThirdPartyAppResponse(
        id=app.id,
        app_id=app.app_id,
        app_name=app.app_name,
        developer=app.developer,
        category=app.category,
        data_access_level=app.data_access_level,
        risk_level=app.risk_level,
        risk_score=app.risk_score,
        permissions=app.permissions or {},
        compliance_issues=app.compliance_issues or [],
        last_risk_assessment=app.last_risk_assessment,
    )


def _assessment_to_response(assessment: AppRiskAssessment) -> AppRiskAssessmentResponse:
    return AppRiskAssessmentResponse(
        id=assessment.id,
        merchant_id=assessment.merchant_id,
        total_apps=assessment.total_apps,
        high_risk_apps=assessment.high_risk_apps,
        medium_risk_apps=assessment.medium_risk_apps,
        low_risk_apps=assessment.low_risk_apps,
        overall_risk_score=assessment.overall_risk_score,
        risk_breakdown=assessment.risk_breakdown or {},
        recommendations=assessment.recommendations or [],
        compliance_gaps=assessment.compliance_gaps or [],
        created_at=assessment.created_at,
    )


def _alert_to_response(alert: Alert) -> AlertResponse:
    return AlertResponse(
        id=alert.id,
        merchant_id=alert.merchant_id,
        type=alert.type,
        severity=alert.severity,
        status=alert.status,
        title=alert.title,
        description=alert.description,
        metadata=alert.alert_metadata or {},
        acknowledged_by=alert.acknowledged_by,
        acknowledged_at=alert.acknowledged_at,
        resolved_by=alert.resolved_by,
        resolved_at=alert.resolved_at,
        resolution_notes=alert.resolution_notes,
        expires_at=alert.expires_at,
        created_at=alert.created_at,
    )


def _dsr_to_response(request: DataSubjectRequest) -> DataSubjectRequestResponse:
    return DataSubjectRequestResponse(
        id=request.id,
        merchant_id=request.merchant_id,
        request_type=request.request_type,
        customer_email=request.customer_email,
        customer_id=request.customer_id,
        status=request.status,
        priority=request.priority,
        deadline=request.deadline,
        completed_at=request.completed_at,
        created_at=request.created_at,
    )


def _cookie_to_response(cookie: DetectedCookie) -> DetectedCookieResponse:
    return DetectedCookieResponse(
        id=cookie.id,
        name=cookie.name,
        domain=cookie.domain,
        path=cookie.path,
        category=cookie.category,
        source=cookie.source,
        consent_status=cookie.consent_status,
        purpose=cookie.purpose,
        description=cookie.description,
        last_seen=cookie.last_seen,
    )


def _consent_to_response(record: CookieConsentRecord) -> CookieConsentResponse:
    return CookieConsentResponse(
        id=record.id,
        merchant_id=record.merchant_id,
        session_id=record.session_id,
        user_id=record.user_id,
        consent_choices=record.consent_choices or {},
        consent_method=record.consent_method,
        expires_at=record.expires_at,
        withdrawn_at=record.withdrawn_at,
        created_at=record.created_at,
    )
