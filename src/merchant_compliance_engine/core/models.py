"""SQLAlchemy ORM models for the compliance engine.

All models use the `mce_` table prefix and extend TimestampedModel for the
UUID id, created_at and updated_at columns. Merchant-owned rows carry a
merchant_id foreign key with ON DELETE CASCADE.

Models:
- Merchant              — onboarded store with its running compliance score
- PrivacyPolicy         — versioned privacy policy documents
- DataCollectionPoint   — mapped place where personal data is collected
- ComplianceAudit       — one audit run; mutated exactly once to a terminal status
- RegulatoryRule        — catalog entry evaluated by the gap analyzer
- ThirdPartyApp         — installed app with its latest risk assessment fields
- AppRiskAssessment     — append-only fleet risk assessment history
- Alert                 — monitoring alert with forward-only status
- DataSubjectRequest    — access / erasure / portability / ... requests
- ConsentRecord         — marketing and processing consent events
- BreachIncident        — reported data breaches
- DetectedCookie        — cookies observed on the storefront
- CookieConsentRecord   — visitor cookie consent choices
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from merchant_compliance_engine.database import TimestampedModel


def _merchant_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        ForeignKey("mce_merchants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning merchant",
    )


class Merchant(TimestampedModel):
    """An onboarded store.

    compliance_score and compliance_status are written only by the audit
    pipeline after each completed audit.

    Attributes:
        shop_domain: Storefront domain, unique.
        shop_name: Display name.
        business_type: e.g. ecommerce | saas | marketplace.
        jurisdiction: Primary jurisdiction code, e.g. EU, UK, US-CA, CA.
        data_types: Data types processed, e.g. personal_data.
        implemented_controls: Control keys already in place.
        compliance_score: Latest audit score, 0-100.
        compliance_status: pending | compliant | non_compliant | under_review.
        last_audit_date: Completion time of the latest successful audit.
    """

    __tablename__ = "mce_merchants"

    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    shop_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subscription_plan: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="free",
        comment="free | basic | premium | enterprise",
    )
    business_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    jurisdiction: Mapped[str | None] = mapped_column(String(20), nullable=True)
    data_types: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    implemented_controls: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONB,
        nullable=False,
        default=list,
        comment="Control keys, e.g. consent_management, dsar_workflow, cookie_consent",
    )
    compliance_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    compliance_status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="pending",
        index=True,
        comment="pending | compliant | non_compliant | under_review",
    )
    last_audit_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PrivacyPolicy(TimestampedModel):
    __tablename__ = "mce_privacy_policies"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        comment="draft | published | archived",
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    policy_metadata: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        "metadata", JSONB, nullable=False, default=dict
    )


class DataCollectionPoint(TimestampedModel):
    """A mapped place where the merchant collects personal data.

    Attributes:
        collection_type: e.g. checkout_form, newsletter_signup.
        data_categories: Collected fields, e.g. ["email", "name"].
        purpose: Why the data is collected.
        legal_basis: Lawful basis; absence is an audit finding, not an error.
        retention_period: Retention in days; absence is an audit finding.
    """

    __tablename__ = "mce_data_collection_points"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    collection_type: Mapped[str] = mapped_column(String(100), nullable=False)
    data_categories: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    purpose: Mapped[str] = mapped_column(Text, nullable=False, default="")
    legal_basis: Mapped[str | None] = mapped_column(String(100), nullable=True)
    retention_period: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="Days")
    third_party_sharing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    data_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    processing_location: Mapped[str | None] = mapped_column(String(100), nullable=True)


class ComplianceAudit(TimestampedModel):
    """One audit run.

    Created with status processing and mutated exactly once to completed or
    failed. A failed audit records the error in audit_data["error"].
    """

    __tablename__ = "mce_compliance_audits"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    audit_type: Mapped[str] = mapped_column(String(50), nullable=False, default="comprehensive")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="processing",
        index=True,
        comment="processing | completed | failed",
    )
    risk_score: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="100 minus the compliance score"
    )
    findings: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    recommendations: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    audit_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RegulatoryRule(TimestampedModel):
    """A regulatory requirement evaluated by the gap analyzer.

    applicability_conditions keys: business_types, data_types, jurisdictions.
    An absent key never excludes the rule.
    """

    __tablename__ = "mce_regulatory_rules"

    regulation: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    legal_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    requirement: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="mandatory",
        comment="mandatory | recommended | optional",
    )
    implementation_guidance: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    applicability_conditions: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    penalties: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ThirdPartyApp(TimestampedModel):
    """An installed app. Prior rows are deleted on every inventory scan."""

    __tablename__ = "mce_third_party_apps"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    app_id: Mapped[str] = mapped_column(String(100), nullable=False)
    app_name: Mapped[str] = mapped_column(String(255), nullable=False)
    developer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    installed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    permissions: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        JSONB,
        nullable=False,
        default=dict,
        comment="scopes, data_access, webhooks, api_endpoints",
    )
    data_access_level: Mapped[str] = mapped_column(String(20), nullable=False, default="read_only")
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False, default="low")
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    risk_factors: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    compliance_issues: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_risk_assessment: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AppRiskAssessment(TimestampedModel):
    """Fleet risk assessment. One row per run, never updated."""

    __tablename__ = "mce_app_risk_assessments"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    total_apps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_risk_apps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium_risk_apps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_risk_apps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_risk_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    risk_breakdown: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    recommendations: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    compliance_gaps: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]


class Alert(TimestampedModel):
    """Monitoring alert. Status only moves forward out of active."""

    __tablename__ = "mce_alerts"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        index=True,
        comment="active | acknowledged | resolved | dismissed",
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    alert_metadata: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        "metadata", JSONB, nullable=False, default=dict
    )
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    acknowledged_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class DataSubjectRequest(TimestampedModel):
    __tablename__ = "mce_data_subject_requests"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    request_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="access | portability | rectification | erasure | restriction | objection",
    )
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal")
    request_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    response_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # type: ignore[type-arg]
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ConsentRecord(TimestampedModel):
    __tablename__ = "mce_consent_records"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    consent_type: Mapped[str] = mapped_column(String(50), nullable=False)
    consent_given: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    consent_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    consent_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class BreachIncident(TimestampedModel):
    __tablename__ = "mce_breach_incidents"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    incident_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    affected_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="investigating",
        comment="investigating | contained | resolved | closed",
    )
    reported_to_authority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DetectedCookie(TimestampedModel):
    """A cookie observed on the storefront. Replaced on every classification run."""

    __tablename__ = "mce_detected_cookies"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False, default="/")
    expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    http_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    secure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    same_site: Mapped[str | None] = mapped_column(String(10), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    consent_status: Mapped[str] = mapped_column(String(20), nullable=False)
    purpose: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cookie_metadata: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        "metadata", JSONB, nullable=False, default=dict
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CookieConsentRecord(TimestampedModel):
    __tablename__ = "mce_cookie_consent_records"

    merchant_id: Mapped[uuid.UUID] = _merchant_fk()
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    consent_choices: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)  # type: ignore[type-arg]
    consent_method: Mapped[str] = mapped_column(String(30), nullable=False, default="banner")
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
