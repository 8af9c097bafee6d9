"""Tests for API endpoints (router layer).

Tests the FastAPI routes by calling the service layer through dependency
injection overrides. Does not test service logic, which is in test_services.py.

Tests verify:
- Merchant header enforcement
- HTTP status codes, including domain error mapping
- Response schema shapes
- Cross-merchant records are hidden
"""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from merchant_compliance_engine.adapters.auth import MERCHANT_HEADER
from merchant_compliance_engine.api.router import (
    get_alert_service,
    get_audit_service,
    get_cookie_service,
    get_dsr_service,
    get_merchant_service,
    get_monitoring_service,
    get_regulatory_service,
    register_exception_handlers,
    router,
)
from merchant_compliance_engine.core.cookies import (
    ConsentRequirements,
    CookieIssue,
    CookieObservation,
    CookieScanResult,
)
from merchant_compliance_engine.core.data_subject_rights import RequestStatistics
from merchant_compliance_engine.core.enums import CookieCategory, Severity
from merchant_compliance_engine.core.gap_analysis import GapAnalysis, MerchantProfile
from merchant_compliance_engine.core.health_check import HealthIssue, HealthReport
from merchant_compliance_engine.errors import InvalidStateError, NotFoundError, ValidationError
from tests.conftest import (
    make_fake_alert,
    make_fake_audit,
    make_fake_merchant,
    make_fake_request,
    make_fake_rule,
)


@pytest.fixture()
def test_app() -> FastAPI:
    """Create a FastAPI test app with the router and error handlers."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    return app


@pytest.fixture()
def headers(merchant_id: uuid.UUID) -> dict[str, str]:
    return {MERCHANT_HEADER: str(merchant_id)}


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestMerchantHeader:
    @pytest.mark.asyncio()
    async def test_missing_header_returns_401(self, test_app: FastAPI) -> None:
        test_app.dependency_overrides[get_audit_service] = lambda: AsyncMock()

        async with _client(test_app) as client:
            response = await client.get("/api/v1/audits")

        assert response.status_code == 401

    @pytest.mark.asyncio()
    async def test_malformed_header_returns_401(self, test_app: FastAPI) -> None:
        test_app.dependency_overrides[get_audit_service] = lambda: AsyncMock()

        async with _client(test_app) as client:
            response = await client.get("/api/v1/audits", headers={MERCHANT_HEADER: "not-a-uuid"})

        assert response.status_code == 401


class TestAuditEndpoints:
    @pytest.mark.asyncio()
    async def test_run_audit_returns_201(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        audit = make_fake_audit(merchant_id, status="completed")
        audit.risk_score = 55
        service = AsyncMock()
        service.run_audit.return_value = audit
        test_app.dependency_overrides[get_audit_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post("/api/v1/audits", headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "completed"
        assert body["risk_score"] == 55
        service.run_audit.assert_awaited_once_with(merchant_id)

    @pytest.mark.asyncio()
    async def test_unknown_merchant_returns_404(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.run_audit.side_effect = NotFoundError("Merchant", "x")
        test_app.dependency_overrides[get_audit_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post("/api/v1/audits", headers=headers)

        assert response.status_code == 404
        assert response.json()["resource"] == "Merchant"

    @pytest.mark.asyncio()
    async def test_other_merchants_audit_is_hidden(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.get_audit.return_value = make_fake_audit(uuid.uuid4())
        test_app.dependency_overrides[get_audit_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get(f"/api/v1/audits/{uuid.uuid4()}", headers=headers)

        assert response.status_code == 404

    @pytest.mark.asyncio()
    async def test_audit_history_passes_limit(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.get_audit_history.return_value = [make_fake_audit(merchant_id)]
        test_app.dependency_overrides[get_audit_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/audits?limit=5", headers=headers)

        assert response.status_code == 200
        assert len(response.json()) == 1
        service.get_audit_history.assert_awaited_once_with(merchant_id, limit=5)


class TestGapAnalysisEndpoint:
    @pytest.mark.asyncio()
    async def test_body_overrides_stored_profile(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.build_profile.return_value = MerchantProfile(jurisdiction="EU")
        service.perform_gap_analysis.return_value = GapAnalysis(merchant_id=merchant_id)
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/gap-analysis",
                headers=headers,
                json={"implemented_controls": ["consent_management"]},
            )

        assert response.status_code == 200
        assert response.json()["overall_compliance_score"] == 100
        profile = service.perform_gap_analysis.call_args.args[1]
        assert profile.jurisdiction == "EU"
        assert profile.implemented_controls == ("consent_management",)


class TestMonitoringEndpoints:
    @pytest.mark.asyncio()
    async def test_health_check_returns_issues(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.perform_health_check.return_value = HealthReport(
            merchant_id=merchant_id,
            overall_score=80,
            issues=[HealthIssue("audit_overdue", Severity.HIGH, "Compliance audit is overdue", "Audit now")],
        )
        test_app.dependency_overrides[get_monitoring_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/monitoring/health", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["overall_score"] == 80
        assert body["issues"][0]["severity"] == "high"


class TestAlertEndpoints:
    @pytest.mark.asyncio()
    async def test_acknowledge_uses_actor_header(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        alert = make_fake_alert(merchant_id)
        acknowledged = make_fake_alert(merchant_id, status="acknowledged")
        service = AsyncMock()
        service.get_alert.return_value = alert
        service.acknowledge_alert.return_value = acknowledged
        test_app.dependency_overrides[get_alert_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                f"/api/v1/alerts/{alert.id}/acknowledge",
                headers={**headers, "X-Actor": "ops@example.com"},
            )

        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        service.acknowledge_alert.assert_awaited_once_with(alert.id, "ops@example.com")

    @pytest.mark.asyncio()
    async def test_invalid_transition_returns_409(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        alert = make_fake_alert(merchant_id, status="resolved")
        service = AsyncMock()
        service.get_alert.return_value = alert
        service.dismiss_alert.side_effect = InvalidStateError("Alert cannot move", current_state="resolved")
        test_app.dependency_overrides[get_alert_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/alerts/{alert.id}/dismiss", headers=headers)

        assert response.status_code == 409
        assert response.json()["current_state"] == "resolved"

    @pytest.mark.asyncio()
    async def test_list_alerts_maps_query_aliases(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.list_alerts.return_value = [make_fake_alert(merchant_id)]
        test_app.dependency_overrides[get_alert_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/alerts?type=data_breach&status=active", headers=headers)

        assert response.status_code == 200
        filters = service.list_alerts.call_args.args[0]
        assert filters.merchant_id == merchant_id
        assert filters.alert_type == "data_breach"
        assert filters.status == "active"


class TestDataSubjectRequestEndpoints:
    @pytest.mark.asyncio()
    async def test_create_request_returns_201(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.create_request.return_value = make_fake_request(merchant_id, request_type="erasure")
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/data-subject-requests",
                headers=headers,
                json={"request_type": "erasure", "customer_email": "jane@example.com"},
            )

        assert response.status_code == 201
        assert response.json()["request_type"] == "erasure"

    @pytest.mark.asyncio()
    async def test_unknown_type_returns_422(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.create_request.side_effect = ValidationError("Unknown request type", field="request_type")
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/data-subject-requests",
                headers=headers,
                json={"request_type": "forget_me", "customer_email": "jane@example.com"},
            )

        assert response.status_code == 422
        assert response.json()["field"] == "request_type"

    @pytest.mark.asyncio()
    async def test_statistics(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.get_request_statistics.return_value = RequestStatistics(total=2, by_status={"pending": 2})
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/data-subject-requests/statistics", headers=headers)

        assert response.status_code == 200
        assert response.json()["by_status"] == {"pending": 2}

    @pytest.mark.asyncio()
    async def test_process_dispatches_on_request_type(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        request = make_fake_request(merchant_id, request_type="erasure")
        service = AsyncMock()
        service.get_request.return_value = request
        service.process_erasure_request.return_value = {"erased_records": 3}
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/data-subject-requests/{request.id}/process", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["response_data"] == {"erased_records": 3}
        service.process_erasure_request.assert_awaited_once_with(request.id)
        service.process_access_request.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_manual_request_type_returns_409(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        request = make_fake_request(merchant_id, request_type="rectification")
        service = AsyncMock()
        service.get_request.return_value = request
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/data-subject-requests/{request.id}/process", headers=headers)

        assert response.status_code == 409
        assert response.json()["current_state"] == "rectification"

    @pytest.mark.asyncio()
    async def test_other_merchants_request_is_hidden(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        request = make_fake_request(uuid.uuid4())
        service = AsyncMock()
        service.get_request.return_value = request
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/data-subject-requests/{request.id}/process", headers=headers)

        assert response.status_code == 404
        service.process_access_request.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_status_update(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        request = make_fake_request(merchant_id, request_type="objection")
        service = AsyncMock()
        service.get_request.return_value = request
        rejected = make_fake_request(merchant_id, request_type="objection", status="rejected")
        service.update_status.return_value = rejected
        test_app.dependency_overrides[get_dsr_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.patch(
                f"/api/v1/data-subject-requests/{request.id}/status",
                headers=headers,
                json={"status": "rejected"},
            )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        service.update_status.assert_awaited_once_with(request.id, "rejected", None)


class TestMerchantEndpoints:
    @pytest.mark.asyncio()
    async def test_create_merchant_needs_no_header(self, test_app: FastAPI, merchant_id: uuid.UUID) -> None:
        service = AsyncMock()
        service.create_merchant.return_value = make_fake_merchant(merchant_id)
        test_app.dependency_overrides[get_merchant_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/merchants",
                json={"shop_domain": "example-store.myshopify.com", "shop_name": "Example Store"},
            )

        assert response.status_code == 201
        assert response.json()["id"] == str(merchant_id)
        assert service.create_merchant.call_args.kwargs["shop_domain"] == "example-store.myshopify.com"

    @pytest.mark.asyncio()
    async def test_current_merchant_profile(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.get_merchant.return_value = make_fake_merchant(merchant_id)
        test_app.dependency_overrides[get_merchant_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/merchants/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["jurisdiction"] == "EU"
        service.get_merchant.assert_awaited_once_with(merchant_id)


class TestRuleEndpoints:
    @pytest.mark.asyncio()
    async def test_seed_reports_created_count(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.seed_initial_rules.return_value = 24
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post("/api/v1/rules/seed", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"created": 24}

    @pytest.mark.asyncio()
    async def test_update_sends_only_given_fields(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        rule = make_fake_rule(title="Updated")
        service = AsyncMock()
        service.update_rule.return_value = rule
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.patch(
                f"/api/v1/rules/{rule.id}",
                headers=headers,
                json={"title": "Updated", "is_active": False},
            )

        assert response.status_code == 200
        assert response.json()["title"] == "Updated"
        service.update_rule.assert_awaited_once_with(rule.id, {"title": "Updated", "is_active": False})

    @pytest.mark.asyncio()
    async def test_empty_update_returns_422(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.patch(f"/api/v1/rules/{uuid.uuid4()}", headers=headers, json={})

        assert response.status_code == 422
        service.update_rule.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_rules_by_category(self, test_app: FastAPI, headers: dict[str, str]) -> None:
        service = AsyncMock()
        service.get_rules_by_category.return_value = [make_fake_rule("consent_management")]
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get(
                "/api/v1/rules/categories/consent_management?regulation=gdpr",
                headers=headers,
            )

        assert response.status_code == 200
        assert response.json()[0]["category"] == "consent_management"
        service.get_rules_by_category.assert_awaited_once_with("consent_management", "gdpr")

    @pytest.mark.asyncio()
    async def test_rule_categories(self, test_app: FastAPI) -> None:
        service = MagicMock()
        service.list_categories.return_value = ["privacy_policy", "cookie_management"]
        test_app.dependency_overrides[get_regulatory_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.get("/api/v1/rule-categories")

        assert response.status_code == 200
        assert response.json() == ["privacy_policy", "cookie_management"]


def _fake_consent(merchant_id: uuid.UUID, withdrawn: bool = False) -> MagicMock:
    record = MagicMock()
    record.id = uuid.uuid4()
    record.merchant_id = merchant_id
    record.session_id = "sess_1"
    record.user_id = None
    record.consent_choices = {"essential": True, "analytics": not withdrawn}
    record.consent_method = "banner"
    record.expires_at = None
    record.withdrawn_at = datetime.now(UTC) if withdrawn else None
    record.created_at = datetime.now(UTC)
    return record


class TestCookieEndpoints:
    @pytest.mark.asyncio()
    async def test_scan_classifies_observed_cookies(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.classify_cookies.return_value = CookieScanResult(
            total_cookies=1,
            third_party_cookies=1,
            compliance_issues=[CookieIssue(Severity.HIGH, "Marketing cookie", "Ask for consent")],
            consent_requirements=ConsentRequirements(True, True, (CookieCategory.MARKETING,)),
        )
        test_app.dependency_overrides[get_cookie_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/cookies/scan",
                headers=headers,
                json={
                    "site_url": "https://shop.example.com",
                    "cookies": [{"name": "_fbp", "domain": ".facebook.com"}],
                },
            )

        assert response.status_code == 200
        body = response.json()
        assert body["third_party_cookies"] == 1
        assert body["compliance_issues"][0]["severity"] == "high"
        assert body["consent_requirements"]["categories"] == ["marketing"]
        called_merchant, site_url, observations = service.classify_cookies.call_args.args
        assert called_merchant == merchant_id
        assert site_url == "https://shop.example.com"
        assert observations == [CookieObservation(name="_fbp", domain=".facebook.com")]

    @pytest.mark.asyncio()
    async def test_record_consent_captures_user_agent(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        service = AsyncMock()
        service.record_consent.return_value = _fake_consent(merchant_id)
        test_app.dependency_overrides[get_cookie_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(
                "/api/v1/cookies/consent",
                headers={**headers, "User-Agent": "Mozilla/5.0"},
                json={"consent_choices": {"analytics": True}, "session_id": "sess_1"},
            )

        assert response.status_code == 201
        assert response.json()["consent_choices"]["analytics"] is True
        kwargs = service.record_consent.call_args.kwargs
        assert kwargs["user_agent"] == "Mozilla/5.0"
        assert kwargs["session_id"] == "sess_1"

    @pytest.mark.asyncio()
    async def test_withdraw_other_merchants_consent_is_hidden(
        self,
        test_app: FastAPI,
        headers: dict[str, str],
    ) -> None:
        record = _fake_consent(uuid.uuid4())
        service = AsyncMock()
        service.get_consent.return_value = record
        test_app.dependency_overrides[get_cookie_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/cookies/consent/{record.id}/withdraw", headers=headers)

        assert response.status_code == 404
        service.withdraw_consent.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_withdraw_own_consent(
        self,
        test_app: FastAPI,
        merchant_id: uuid.UUID,
        headers: dict[str, str],
    ) -> None:
        record = _fake_consent(merchant_id)
        service = AsyncMock()
        service.get_consent.return_value = record
        service.withdraw_consent.return_value = _fake_consent(merchant_id, withdrawn=True)
        test_app.dependency_overrides[get_cookie_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post(f"/api/v1/cookies/consent/{record.id}/withdraw", headers=headers)

        assert response.status_code == 200
        assert response.json()["withdrawn_at"] is not None
        service.withdraw_consent.assert_awaited_once_with(record.id)


class TestJobEndpoints:
    @pytest.mark.asyncio()
    async def test_overdue_request_sweep_needs_no_header(self, test_app: FastAPI) -> None:
        service = AsyncMock()
        service.monitor_overdue_requests.return_value = 2
        test_app.dependency_overrides[get_monitoring_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post("/api/v1/jobs/overdue-requests")

        assert response.status_code == 200
        assert response.json() == {"job": "overdue-requests", "processed": 2}

    @pytest.mark.asyncio()
    async def test_health_check_sweep(self, test_app: FastAPI) -> None:
        service = AsyncMock()
        service.run_daily_health_checks.return_value = 5
        test_app.dependency_overrides[get_monitoring_service] = lambda: service

        async with _client(test_app) as client:
            response = await client.post("/api/v1/jobs/health-checks")

        assert response.json()["processed"] == 5
        service.run_daily_health_checks.assert_awaited_once()
