"""Test fixtures for merchant-compliance-engine.

Provides:
- merchant_id: A fixed merchant UUID
- fixed_now: A fixed reference time for deterministic deadlines
- mock_merchant_repo: A mock IMerchantRepository returning a fake merchant
- mock_audit_repo: A mock IAuditRepository that captures lifecycle calls
- mock_alert_sink: A mock IAlertSink

And make_fake_* builders for ORM-shaped test objects.
"""

import uuid
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from merchant_compliance_engine.core.alerts import AlertStats


@pytest.fixture()
def merchant_id() -> uuid.UUID:
    """Return a fixed merchant UUID for consistent test assertions."""
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def mock_merchant_repo(merchant_id: uuid.UUID) -> AsyncMock:
    """Create a mock IMerchantRepository.

    Returns:
        AsyncMock whose get_by_id() and update_compliance() return a fake merchant.
    """
    repo = AsyncMock()
    merchant = make_fake_merchant(merchant_id)
    repo.get_by_id.return_value = merchant
    repo.update_compliance.return_value = merchant
    repo.list_all.return_value = [merchant]
    return repo


@pytest.fixture()
def mock_audit_repo(merchant_id: uuid.UUID) -> AsyncMock:
    """Create a mock IAuditRepository.

    create() returns a processing audit; mark_completed() and mark_failed()
    return the audit they were given.
    """
    repo = AsyncMock()
    repo.create.return_value = make_fake_audit(merchant_id)

    async def _passthrough(audit: Any, *args: Any, **kwargs: Any) -> Any:
        return audit

    repo.mark_completed.side_effect = _passthrough
    repo.mark_failed.side_effect = _passthrough
    repo.get_latest.return_value = None
    repo.count_processing.return_value = 0
    return repo


@pytest.fixture()
def mock_alert_sink() -> AsyncMock:
    sink = AsyncMock()
    sink.create_alert.return_value = MagicMock(id=uuid.uuid4())
    sink.get_alert_stats.return_value = AlertStats()
    sink.cleanup_expired_alerts.return_value = 0
    return sink


def make_fake_merchant(
    merchant_id: uuid.UUID,
    business_type: str | None = "ecommerce",
    jurisdiction: str | None = "EU",
    data_types: list[str] | None = None,
    implemented_controls: list[str] | None = None,
) -> MagicMock:
    """Create a fake Merchant ORM object for tests."""
    merchant = MagicMock()
    merchant.id = merchant_id
    merchant.shop_domain = "example-store.myshopify.com"
    merchant.shop_name = "Example Store"
    merchant.business_type = business_type
    merchant.jurisdiction = jurisdiction
    merchant.data_types = data_types if data_types is not None else ["personal_data"]
    merchant.implemented_controls = implemented_controls or []
    merchant.compliance_score = 0
    merchant.compliance_status = "pending"
    merchant.last_audit_date = None
    merchant.created_at = datetime.now(UTC)
    return merchant


def make_fake_policy(status: str = "published") -> MagicMock:
    policy = MagicMock()
    policy.id = uuid.uuid4()
    policy.status = status
    policy.created_at = datetime.now(UTC)
    return policy


def make_fake_data_point(
    collection_type: str = "checkout_form",
    data_categories: list[str] | None = None,
    purpose: str = "Order fulfillment",
    legal_basis: str | None = "contract",
    retention_period: int | None = 365,
) -> MagicMock:
    """Create a fake DataCollectionPoint ORM object for tests."""
    point = MagicMock()
    point.id = uuid.uuid4()
    point.collection_type = collection_type
    point.data_categories = data_categories if data_categories is not None else ["email", "name"]
    point.purpose = purpose
    point.legal_basis = legal_basis
    point.retention_period = retention_period
    return point


def make_fake_audit(merchant_id: uuid.UUID, status: str = "processing") -> MagicMock:
    audit = MagicMock()
    audit.id = uuid.uuid4()
    audit.merchant_id = merchant_id
    audit.audit_type = "comprehensive"
    audit.status = status
    audit.risk_score = None
    audit.findings = []
    audit.recommendations = []
    audit.audit_data = {}
    audit.completed_at = None
    audit.created_at = datetime.now(UTC)
    return audit


def make_fake_rule(
    category: str = "data_collection",
    requirement: str = "mandatory",
    title: str = "Test Rule",
    regulation: str = "gdpr",
    applicability_conditions: dict[str, Any] | None = None,
) -> MagicMock:
    """Create a fake RegulatoryRule ORM object for tests."""
    rule = MagicMock()
    rule.id = uuid.uuid4()
    rule.regulation = regulation
    rule.category = category
    rule.title = title
    rule.description = f"{title} description"
    rule.legal_reference = "Article 1"
    rule.requirement = requirement
    rule.applicability_conditions = applicability_conditions or {}
    rule.effective_date = None
    return rule


def make_fake_app(
    app_name: str = "Test App",
    data_access_level: str = "read_only",
    scopes: list[str] | None = None,
    data_types: list[str] | None = None,
    privacy_policy_url: str | None = "https://example.com/privacy",
    encryption_status: str = "aes256",
    data_retention_period: str = "1 year",
    developer: str | None = "Trusted Dev",
    risk_score: int = 0,
) -> MagicMock:
    """Create a fake ThirdPartyApp ORM object for tests.

    The defaults describe an app that triggers no risk finding.
    """
    app = MagicMock()
    app.id = uuid.uuid4()
    app.app_id = f"app_{uuid.uuid4().hex[:6]}"
    app.app_name = app_name
    app.developer = developer
    app.category = "other"
    app.data_access_level = data_access_level
    app.permissions = {"scopes": scopes or [], "data_access": [], "webhooks": [], "api_endpoints": []}
    app.risk_factors = {
        "data_types": data_types or [],
        "privacy_policy_url": privacy_policy_url,
        "encryption_status": encryption_status,
        "data_retention_period": data_retention_period,
    }
    app.risk_level = "low"
    app.risk_score = risk_score
    app.compliance_issues = []
    app.last_risk_assessment = None
    return app


def make_fake_alert(
    merchant_id: uuid.UUID,
    status: str = "active",
    severity: str = "medium",
    alert_type: str = "compliance_violation",
) -> MagicMock:
    """Create a fake Alert ORM object for tests."""
    alert = MagicMock()
    alert.id = uuid.uuid4()
    alert.merchant_id = merchant_id
    alert.type = alert_type
    alert.severity = severity
    alert.status = status
    alert.title = "Test Alert"
    alert.description = "Something needs attention"
    alert.alert_metadata = {}
    alert.acknowledged_by = None
    alert.acknowledged_at = None
    alert.resolved_by = None
    alert.resolved_at = None
    alert.resolution_notes = None
    alert.expires_at = None
    alert.created_at = datetime.now(UTC)
    return alert


def make_fake_request(
    merchant_id: uuid.UUID,
    request_type: str = "access",
    status: str = "pending",
    created_at: datetime | None = None,
    deadline: datetime | None = None,
    completed_at: datetime | None = None,
) -> MagicMock:
    """Create a fake DataSubjectRequest ORM object for tests."""
    request = MagicMock()
    request.id = uuid.uuid4()
    request.merchant_id = merchant_id
    request.request_type = request_type
    request.customer_email = "jane@example.com"
    request.customer_id = "cust_42"
    request.status = status
    request.priority = "normal"
    request.request_data = {}
    request.response_data = None
    request.created_at = created_at or datetime.now(UTC)
    request.deadline = deadline
    request.completed_at = completed_at
    return request
