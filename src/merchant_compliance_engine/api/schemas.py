"""Pydantic request and response schemas for the compliance engine API.

All API inputs and outputs use Pydantic models, never raw dicts.
Schemas are grouped by resource type.

Resources:
- Merchant — onboarding and profile
- ComplianceAudit — audit runs, history and data mapping
- RegulatoryRule — rule listing and gap analysis
- ThirdPartyApp — app inventory and risk assessments
- Monitoring — health check and metrics
- Alert — alert listing and lifecycle
- DataSubjectRequest — request intake, processing and statistics
- Cookie — classification, visitor consent and banner configuration
- Jobs — results of the scheduled monitoring sweeps
"""

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Merchant schemas
# ---------------------------------------------------------------------------


class MerchantCreate(BaseModel):
    """Request body for onboarding a store."""

    shop_domain: str = Field(description="Storefront domain, unique", min_length=1, max_length=255)
    shop_name: str = Field(description="Display name", min_length=1, max_length=255)
    business_type: str | None = Field(default=None, description="e.g. ecommerce | saas | marketplace")
    jurisdiction: str | None = Field(default=None, description="Primary jurisdiction code, e.g. EU")
    data_types: list[str] | None = Field(default=None, description="Data types the store processes")
    implemented_controls: list[str] | None = Field(default=None, description="Controls already in place")


class MerchantResponse(BaseModel):
    id: uuid.UUID = Field(description="Merchant UUID, sent back as the X-Merchant-ID header")
    shop_domain: str = Field(description="Storefront domain")
    shop_name: str = Field(description="Display name")
    business_type: str | None = Field(description="Business type")
    jurisdiction: str | None = Field(description="Primary jurisdiction code")
    data_types: list[str] = Field(description="Data types processed")
    implemented_controls: list[str] = Field(description="Control keys in place")
    compliance_score: int = Field(description="Latest audit score, 0-100")
    compliance_status: str = Field(description="pending | compliant | non_compliant | under_review")
    last_audit_date: datetime | None = Field(description="Completion time of the latest audit")


# ---------------------------------------------------------------------------
# ComplianceAudit schemas
# ---------------------------------------------------------------------------


class AuditResponse(BaseModel):
    """Response schema for a compliance audit."""

    id: uuid.UUID = Field(description="Audit UUID")
    merchant_id: uuid.UUID = Field(description="Audited merchant UUID")
    audit_type: str = Field(description="Audit type, e.g. comprehensive")
    status: str = Field(description="processing | completed | failed")
    risk_score: int | None = Field(description="100 minus the compliance score; null until completed")
    findings: list[dict[str, Any]] = Field(description="Findings with category, severity, description, impact")
    recommendations: list[dict[str, Any]] = Field(description="Prioritized remediation recommendations")
    audit_data: dict[str, Any] = Field(description="Run metadata; holds the error of a failed audit")
    completed_at: datetime | None = Field(description="Completion timestamp (UTC)")
    created_at: datetime = Field(description="Creation timestamp (UTC)")


class DataMappingResponse(BaseModel):
    """Summary of the merchant's data-collection points."""

    total_data_points: int = Field(description="Number of data-collection points")
    categorized_data: dict[str, int] = Field(description="Counts of personal, sensitive, marketing, analytics")
    legal_basis_coverage: dict[str, int] = Field(description="Counts per legal basis")
    retention_compliance: dict[str, int] = Field(description="Counts of defined, undefined, excessive retention")


# ---------------------------------------------------------------------------
# RegulatoryRule schemas
# ---------------------------------------------------------------------------


class RegulatoryRuleResponse(BaseModel):
    """Response schema for a regulatory rule."""

    id: uuid.UUID = Field(description="Rule UUID")
    regulation: str = Field(description="Regulation code: gdpr | ccpa | pipeda | uk_gdpr | lgpd | pdpa")
    category: str = Field(description="Rule category")
    title: str = Field(description="Rule title")
    description: str = Field(description="What the rule requires")
    legal_reference: str = Field(description="Article or section reference")
    requirement: str = Field(description="mandatory | recommended | optional")
    applicability_conditions: dict[str, Any] = Field(description="business_types, jurisdictions, data_types")
    effective_date: date | None = Field(default=None, description="Date the rule took effect")


class RegulatoryRuleUpdate(BaseModel):
    """Partial update of a regulatory rule. Only the fields sent are changed."""

    title: str | None = Field(default=None, description="Rule title", max_length=255)
    description: str | None = Field(default=None, description="What the rule requires")
    legal_reference: str | None = Field(default=None, description="Article or section reference")
    requirement: str | None = Field(default=None, description="mandatory | recommended | optional")
    applicability_conditions: dict[str, Any] | None = Field(
        default=None, description="business_types, jurisdictions, data_types"
    )
    is_active: bool | None = Field(default=None, description="Inactive rules are ignored by gap analysis")
    effective_date: date | None = Field(default=None, description="Date the rule took effect")


class RuleSeedResponse(BaseModel):
    created: int = Field(description="Rules created; 0 when the catalog was already loaded")


class GapAnalysisRequest(BaseModel):
    """Optional explicit merchant profile for a gap analysis.

    Fields left null are taken from the stored merchant record.
    """

    business_type: str | None = Field(default=None, description="Merchant business type")
    jurisdiction: str | None = Field(default=None, description="Jurisdiction code, e.g. EU")
    data_types: list[str] | None = Field(default=None, description="Data types the merchant processes")
    current_policies: list[str] | None = Field(default=None, description="Policies in place, e.g. privacy_policy")
    implemented_controls: list[str] | None = Field(default=None, description="Controls already implemented")


class ComplianceGapResponse(BaseModel):
    rule_id: str | None = Field(description="Evaluated rule UUID")
    rule_title: str = Field(description="Evaluated rule title")
    regulation: str = Field(description="Regulation code")
    category: str = Field(description="Rule category")
    requirement: str = Field(description="Requirement level")
    current_status: str = Field(description="compliant | partial | non_compliant")
    risk_level: str = Field(description="low | medium | high | critical")
    action_required: str = Field(description="Remediation action")
    deadline: str | None = Field(description="Remediation deadline (ISO 8601); null when compliant")


class GapAnalysisResponse(BaseModel):
    """Result of a gap analysis."""

    merchant_id: uuid.UUID = Field(description="Analyzed merchant UUID")
    applicable_rules: int = Field(description="Number of rules that apply to the merchant")
    gaps: list[ComplianceGapResponse] = Field(description="One entry per applicable rule")
    overall_compliance_score: int = Field(description="Weighted compliance score 0-100")
    priority_actions: list[str] = Field(description="Up to five actions of the highest-risk gaps")


# ---------------------------------------------------------------------------
# ThirdPartyApp schemas
# ---------------------------------------------------------------------------


class ThirdPartyAppResponse(BaseModel):
    """Response schema for an installed third-party app."""

    id: uuid.UUID = Field(description="Record UUID")
    app_id: str = Field(description="Platform app identifier")
    app_name: str = Field(description="App name")
    developer: str | None = Field(description="Developer name")
    category: str = Field(description="Functional category")
    data_access_level: str = Field(description="read_only | read_write | full_access | admin")
    risk_level: str = Field(description="low | medium | high | critical")
    risk_score: int = Field(description="Risk score 0-100")
    permissions: dict[str, Any] = Field(description="Scopes, data access and webhooks")
    compliance_issues: list[dict[str, Any]] = Field(description="Unresolved issues from the last assessment")
    last_risk_assessment: datetime | None = Field(description="Time of the last assessment (UTC)")


class AppRiskAssessmentResponse(BaseModel):
    """Fleet-level app risk assessment."""

    id: uuid.UUID = Field(description="Assessment UUID")
    merchant_id: uuid.UUID = Field(description="Assessed merchant UUID")
    total_apps: int = Field(description="Apps assessed")
    high_risk_apps: int = Field(description="Apps at high or critical risk")
    medium_risk_apps: int = Field(description="Apps at medium risk")
    low_risk_apps: int = Field(description="Apps at low risk")
    overall_risk_score: int = Field(description="Mean app risk score")
    risk_breakdown: dict[str, int] = Field(description="Weighted score per risk sub-factor")
    recommendations: list[dict[str, Any]] = Field(description="Fleet-level recommendations")
    compliance_gaps: list[dict[str, Any]] = Field(description="Fleet-level compliance gaps")
    created_at: datetime = Field(description="Assessment timestamp (UTC)")


# ---------------------------------------------------------------------------
# Monitoring schemas
# ---------------------------------------------------------------------------


class HealthIssueResponse(BaseModel):
    type: str = Field(description="Issue type, e.g. audit_overdue")
    severity: str = Field(description="low | medium | high | critical")
    description: str = Field(description="What was detected")
    recommendation: str = Field(description="Suggested remediation")


class HealthCheckResponse(BaseModel):
    """Per-merchant compliance health."""

    merchant_id: uuid.UUID = Field(description="Checked merchant UUID")
    overall_score: int = Field(description="Health score 0-100")
    issues: list[HealthIssueResponse] = Field(description="Detected issues")
    last_audit_date: datetime | None = Field(description="Creation time of the latest audit")
    next_audit_due: datetime | None = Field(description="When the next audit is due")


class MonitoringMetricsResponse(BaseModel):
    """Backlog and alert metrics."""

    total_merchants: int = Field(description="Merchants covered by the metrics")
    active_audits: int = Field(description="Audits still processing")
    pending_requests: int = Field(description="Pending data-subject requests")
    withdrawn_consents: int = Field(description="Consent withdrawals in the monitoring window")
    breach_incidents: int = Field(description="Breach incidents in the monitoring window")
    compliance_score: int = Field(description="Backlog and alert based score 0-100")
    alert_counts: dict[str, int] = Field(description="Active alert counts: total and per severity")


# ---------------------------------------------------------------------------
# Alert schemas
# ---------------------------------------------------------------------------


class AlertResponse(BaseModel):
    """Response schema for a monitoring alert."""

    id: uuid.UUID = Field(description="Alert UUID")
    merchant_id: uuid.UUID = Field(description="Owning merchant UUID")
    type: str = Field(description="Alert type")
    severity: str = Field(description="low | medium | high | critical")
    status: str = Field(description="active | acknowledged | resolved | dismissed")
    title: str = Field(description="Short title")
    description: str = Field(description="Alert details")
    metadata: dict[str, Any] = Field(description="Structured context")
    acknowledged_by: str | None = Field(description="Actor who acknowledged the alert")
    acknowledged_at: datetime | None = Field(description="Acknowledgement timestamp")
    resolved_by: str | None = Field(description="Actor who resolved the alert")
    resolved_at: datetime | None = Field(description="Resolution timestamp")
    resolution_notes: str | None = Field(description="Notes recorded on resolution")
    expires_at: datetime | None = Field(description="Expiry after which the alert is purged")
    created_at: datetime = Field(description="Creation timestamp (UTC)")


class AlertResolveRequest(BaseModel):
    resolution_notes: str | None = Field(default=None, description="How the alert was resolved")


# ---------------------------------------------------------------------------
# DataSubjectRequest schemas
# ---------------------------------------------------------------------------


class DataSubjectRequestCreate(BaseModel):
    """Request body for submitting a data-subject request."""

    request_type: str = Field(
        description="access | portability | rectification | erasure | restriction | objection",
    )
    customer_email: str = Field(description="Email of the data subject", min_length=3, max_length=255)
    customer_id: str | None = Field(default=None, description="Platform customer identifier")
    description: str | None = Field(default=None, description="Free-text details from the data subject")


class DataSubjectRequestResponse(BaseModel):
    """Response schema for a data-subject request."""

    id: uuid.UUID = Field(description="Request UUID")
    merchant_id: uuid.UUID = Field(description="Owning merchant UUID")
    request_type: str = Field(description="Request type")
    customer_email: str = Field(description="Email of the data subject")
    customer_id: str | None = Field(description="Platform customer identifier")
    status: str = Field(description="pending | processing | completed | rejected")
    priority: str = Field(description="low | normal | high | urgent")
    deadline: datetime | None = Field(description="Response deadline (UTC)")
    completed_at: datetime | None = Field(description="Completion timestamp (UTC)")
    created_at: datetime = Field(description="Creation timestamp (UTC)")


class RequestStatisticsResponse(BaseModel):
    total: int = Field(description="Total requests")
    by_status: dict[str, int] = Field(description="Counts per status")
    by_type: dict[str, int] = Field(description="Counts per request type")
    average_processing_seconds: float = Field(description="Mean time from creation to completion")
    overdue_requests: int = Field(description="Requests past their deadline and not completed")


class DataSubjectRequestStatusUpdate(BaseModel):
    status: str = Field(description="pending | processing | completed | rejected")
    response_data: dict[str, Any] | None = Field(default=None, description="Outcome recorded with the status")


class DataSubjectRequestProcessResponse(BaseModel):
    """Outcome of processing an access, erasure or portability request."""

    request_id: uuid.UUID = Field(description="Processed request UUID")
    request_type: str = Field(description="access | erasure | portability")
    status: str = Field(description="Request status after processing")
    response_data: dict[str, Any] = Field(description="Export, erasure report or portable document")


# ---------------------------------------------------------------------------
# Cookie schemas
# ---------------------------------------------------------------------------


class CookieObservationRequest(BaseModel):
    """A cookie as seen on the storefront."""

    name: str = Field(description="Cookie name", min_length=1, max_length=255)
    domain: str = Field(description="Cookie domain", min_length=1, max_length=255)
    value: str | None = Field(default=None, description="Cookie value; not stored")
    path: str = Field(default="/", description="Cookie path")
    expires: datetime | None = Field(default=None, description="Expiry timestamp")
    http_only: bool = Field(default=False, description="HttpOnly flag")
    secure: bool = Field(default=False, description="Secure flag")
    same_site: str | None = Field(default=None, description="SameSite attribute")


class CookieScanRequest(BaseModel):
    site_url: str = Field(description="Storefront URL the cookies were observed on")
    cookies: list[CookieObservationRequest] = Field(default_factory=list, description="Observed cookies")


class CookieScanResponse(BaseModel):
    """Classification summary of a cookie scan."""

    total_cookies: int = Field(description="Cookies classified")
    categorized_cookies: dict[str, int] = Field(description="Counts per cookie category")
    third_party_cookies: int = Field(description="Cookies set by another domain")
    compliance_issues: list[dict[str, str]] = Field(description="Issues with severity and recommendation")
    consent_requirements: dict[str, Any] | None = Field(description="Banner and opt-in requirements")


class DetectedCookieResponse(BaseModel):
    id: uuid.UUID = Field(description="Cookie UUID")
    name: str = Field(description="Cookie name")
    domain: str = Field(description="Cookie domain")
    path: str = Field(description="Cookie path")
    category: str = Field(description="Cookie category, e.g. essential or analytics")
    source: str = Field(description="first_party | third_party")
    consent_status: str = Field(description="Consent the category needs")
    purpose: str = Field(description="Purpose of the category")
    description: str = Field(description="Human-readable description")
    last_seen: datetime | None = Field(description="When the cookie was last classified")


class CookieConsentRequest(BaseModel):
    """A visitor's consent choices from the banner."""

    consent_choices: dict[str, bool] = Field(description="Granted flag per cookie category")
    session_id: str | None = Field(default=None, description="Visitor session identifier")
    user_id: str | None = Field(default=None, description="Logged-in customer identifier")
    consent_method: str | None = Field(default=None, description="banner | preference_center | api")


class CookieConsentResponse(BaseModel):
    id: uuid.UUID = Field(description="Consent record UUID")
    merchant_id: uuid.UUID = Field(description="Owning merchant UUID")
    session_id: str | None = Field(description="Visitor session identifier")
    user_id: str | None = Field(description="Logged-in customer identifier")
    consent_choices: dict[str, bool] = Field(description="Granted flag per cookie category")
    consent_method: str = Field(description="How consent was collected")
    expires_at: datetime | None = Field(description="When the consent lapses")
    withdrawn_at: datetime | None = Field(description="Withdrawal timestamp")
    created_at: datetime = Field(description="Creation timestamp (UTC)")


# ---------------------------------------------------------------------------
# Job schemas
# ---------------------------------------------------------------------------


class JobResultResponse(BaseModel):
    job: str = Field(description="Job name")
    processed: int = Field(description="Alerts created, merchants checked or alerts removed")
