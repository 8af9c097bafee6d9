"""Tests for core business logic services.

Tests ComplianceAuditService, RegulatoryService, AppRiskService, AlertService,
MonitoringService, DataSubjectRightsService and CookieConsentService against
mock repositories.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from merchant_compliance_engine.core.alerts import AlertStats
from merchant_compliance_engine.core.app_inventory import AppDescriptor
from merchant_compliance_engine.core.cookies import CookieObservation
from merchant_compliance_engine.core.enums import (
    AlertStatus,
    ComplianceStatus,
    GapStatus,
    RequestPriority,
    RequestStatus,
    Severity,
)
from merchant_compliance_engine.core.gap_analysis import MerchantProfile
from merchant_compliance_engine.core.services import (
    AlertService,
    AppRiskService,
    ComplianceAuditService,
    CookieConsentService,
    DataSubjectRightsService,
    MerchantService,
    MonitoringService,
    RegulatoryService,
)
from merchant_compliance_engine.errors import InvalidStateError, NotFoundError, ValidationError
from tests.conftest import (
    make_fake_alert,
    make_fake_app,
    make_fake_audit,
    make_fake_data_point,
    make_fake_policy,
    make_fake_request,
    make_fake_rule,
)


# ---------------------------------------------------------------------------
# MerchantService tests
# ---------------------------------------------------------------------------


class TestMerchantService:
    @pytest.mark.asyncio()
    async def test_create_merchant_rejects_blank_domain(self, mock_merchant_repo: AsyncMock) -> None:
        service = MerchantService(mock_merchant_repo)

        with pytest.raises(ValidationError):
            await service.create_merchant("   ", "Example Store")

        mock_merchant_repo.create.assert_not_called()

    @pytest.mark.asyncio()
    async def test_create_merchant_defaults_lists(self, mock_merchant_repo: AsyncMock) -> None:
        mock_merchant_repo.create.return_value = MagicMock(id=uuid.uuid4())
        service = MerchantService(mock_merchant_repo)

        await service.create_merchant("shop.myshopify.com", "Shop")

        kwargs = mock_merchant_repo.create.call_args.kwargs
        assert kwargs["data_types"] == []
        assert kwargs["implemented_controls"] == []


# ---------------------------------------------------------------------------
# ComplianceAuditService tests
# ---------------------------------------------------------------------------


class TestComplianceAuditService:
    def _make_service(
        self,
        merchant_repo: AsyncMock,
        audit_repo: AsyncMock,
        policy_repo: AsyncMock | None = None,
        data_point_repo: AsyncMock | None = None,
    ) -> ComplianceAuditService:
        if policy_repo is None:
            policy_repo = AsyncMock()
            policy_repo.list_for_merchant.return_value = []
        if data_point_repo is None:
            data_point_repo = AsyncMock()
            data_point_repo.list_for_merchant.return_value = []
        return ComplianceAuditService(
            merchant_repo=merchant_repo,
            policy_repo=policy_repo,
            data_point_repo=data_point_repo,
            audit_repo=audit_repo,
        )

    @pytest.mark.asyncio()
    async def test_run_audit_completes_and_updates_merchant(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
    ) -> None:
        """No policy and no mapped data scores 45 and marks the merchant non-compliant."""
        service = self._make_service(mock_merchant_repo, mock_audit_repo)

        await service.run_audit(merchant_id)

        mock_audit_repo.create.assert_awaited_once_with(merchant_id)
        kwargs = mock_audit_repo.mark_completed.call_args.kwargs
        assert kwargs["risk_score"] == 55
        assert [f["category"] for f in kwargs["findings"]] == ["Privacy Policy", "Data Mapping"]
        assert len(kwargs["recommendations"]) == 2
        mock_audit_repo.mark_failed.assert_not_called()

        args = mock_merchant_repo.update_compliance.call_args.args
        assert args[0] == merchant_id
        assert args[1] == 45
        assert args[2] == ComplianceStatus.NON_COMPLIANT
        assert args[3] == kwargs["completed_at"]

    @pytest.mark.asyncio()
    async def test_run_audit_with_clean_state_is_compliant(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
    ) -> None:
        policy_repo = AsyncMock()
        policy_repo.list_for_merchant.return_value = [make_fake_policy("published")]
        data_point_repo = AsyncMock()
        data_point_repo.list_for_merchant.return_value = [make_fake_data_point()]
        service = self._make_service(mock_merchant_repo, mock_audit_repo, policy_repo, data_point_repo)

        await service.run_audit(merchant_id)

        assert mock_audit_repo.mark_completed.call_args.kwargs["risk_score"] == 0
        args = mock_merchant_repo.update_compliance.call_args.args
        assert args[1] == 100
        assert args[2] == ComplianceStatus.COMPLIANT

    @pytest.mark.asyncio()
    async def test_run_audit_failure_marks_audit_failed_and_reraises(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
    ) -> None:
        data_point_repo = AsyncMock()
        data_point_repo.list_for_merchant.side_effect = RuntimeError("database unavailable")
        service = self._make_service(mock_merchant_repo, mock_audit_repo, data_point_repo=data_point_repo)

        with pytest.raises(RuntimeError, match="database unavailable"):
            await service.run_audit(merchant_id)

        audit = mock_audit_repo.create.return_value
        mock_audit_repo.mark_failed.assert_awaited_once_with(audit, "database unavailable")
        mock_audit_repo.mark_completed.assert_not_called()
        mock_merchant_repo.update_compliance.assert_not_called()

    @pytest.mark.asyncio()
    async def test_run_audit_unknown_merchant_creates_no_audit(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
    ) -> None:
        mock_merchant_repo.get_by_id.side_effect = NotFoundError("Merchant", str(merchant_id))
        service = self._make_service(mock_merchant_repo, mock_audit_repo)

        with pytest.raises(NotFoundError):
            await service.run_audit(merchant_id)

        mock_audit_repo.create.assert_not_called()

    @pytest.mark.asyncio()
    async def test_audit_history_defaults_to_ten(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
    ) -> None:
        mock_audit_repo.list_for_merchant.return_value = [make_fake_audit(merchant_id, "completed")]
        service = self._make_service(mock_merchant_repo, mock_audit_repo)

        history = await service.get_audit_history(merchant_id)

        assert len(history) == 1
        mock_audit_repo.list_for_merchant.assert_awaited_once_with(merchant_id, 10)


# ---------------------------------------------------------------------------
# RegulatoryService tests
# ---------------------------------------------------------------------------


class TestRegulatoryService:
    def _make_service(
        self,
        mock_merchant_repo: AsyncMock,
        rules: list[MagicMock] | None = None,
        policies: list[MagicMock] | None = None,
    ) -> tuple[RegulatoryService, AsyncMock]:
        rule_repo = AsyncMock()
        rule_repo.find_active.return_value = rules or []
        policy_repo = AsyncMock()
        policy_repo.list_for_merchant.return_value = policies or []
        return RegulatoryService(rule_repo, mock_merchant_repo, policy_repo), rule_repo

    @pytest.mark.asyncio()
    async def test_applicability_conditions_filter_rules(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        rules = [
            make_fake_rule("privacy_policy", title="EU only", applicability_conditions={"jurisdictions": ["EU"]}),
            make_fake_rule("privacy_policy", title="CA only", applicability_conditions={"jurisdictions": ["CA"]}),
        ]
        service, _ = self._make_service(mock_merchant_repo, rules)

        analysis = await service.perform_gap_analysis(merchant_id)

        assert [rule.title for rule in analysis.applicable_rules] == ["EU only"]

    @pytest.mark.asyncio()
    async def test_published_policy_satisfies_privacy_policy_rule(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, _ = self._make_service(
            mock_merchant_repo,
            rules=[make_fake_rule("privacy_policy")],
            policies=[make_fake_policy("draft"), make_fake_policy("published")],
        )

        analysis = await service.perform_gap_analysis(merchant_id)

        assert analysis.gaps[0].current_status == GapStatus.COMPLIANT
        assert analysis.overall_compliance_score == 100

    @pytest.mark.asyncio()
    async def test_explicit_profile_skips_stored_state(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, _ = self._make_service(mock_merchant_repo, rules=[make_fake_rule("consent_management")])

        analysis = await service.perform_gap_analysis(
            merchant_id, MerchantProfile(implemented_controls=("consent_management",))
        )

        assert analysis.overall_compliance_score == 100
        mock_merchant_repo.get_by_id.assert_not_called()

    @pytest.mark.asyncio()
    async def test_no_applicable_rules_scores_100(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, _ = self._make_service(mock_merchant_repo)

        analysis = await service.perform_gap_analysis(merchant_id)

        assert analysis.overall_compliance_score == 100
        assert analysis.gaps == []
        assert analysis.priority_actions == []

    @pytest.mark.asyncio()
    async def test_seed_is_skipped_when_rules_exist(self, mock_merchant_repo: AsyncMock) -> None:
        service, rule_repo = self._make_service(mock_merchant_repo)
        rule_repo.count.return_value = 3

        assert await service.seed_initial_rules() == 0
        rule_repo.bulk_create.assert_not_called()

    @pytest.mark.asyncio()
    async def test_seed_loads_bundled_catalog(self, mock_merchant_repo: AsyncMock) -> None:
        service, rule_repo = self._make_service(mock_merchant_repo)
        rule_repo.count.return_value = 0

        async def _echo(rows):
            return rows

        rule_repo.bulk_create.side_effect = _echo

        created = await service.seed_initial_rules()

        rows = rule_repo.bulk_create.call_args.args[0]
        assert created == len(rows) > 0
        assert {row["regulation"] for row in rows} >= {"gdpr", "ccpa"}

    @pytest.mark.asyncio()
    async def test_rules_by_category_passes_filters(self, mock_merchant_repo: AsyncMock) -> None:
        service, rule_repo = self._make_service(mock_merchant_repo)
        rule_repo.list_by_category.return_value = [make_fake_rule("cookie_management")]

        rules = await service.get_rules_by_category("cookie_management", "gdpr")

        assert len(rules) == 1
        rule_repo.list_by_category.assert_awaited_once_with("cookie_management", "gdpr")

    def test_enumerations(self, mock_merchant_repo: AsyncMock) -> None:
        service, _ = self._make_service(mock_merchant_repo)

        assert "uk_gdpr" in service.list_regulations()
        assert "cookie_management" in service.list_categories()

    @pytest.mark.asyncio()
    async def test_update_rule_stamps_last_updated(self, mock_merchant_repo: AsyncMock) -> None:
        service, rule_repo = self._make_service(mock_merchant_repo)
        rule_id = uuid.uuid4()

        await service.update_rule(rule_id, {"title": "Renamed"})

        updates = rule_repo.update.call_args.args[1]
        assert updates["title"] == "Renamed"
        assert isinstance(updates["last_updated"], datetime)


# ---------------------------------------------------------------------------
# AppRiskService tests
# ---------------------------------------------------------------------------


class TestAppRiskService:
    def _make_service(
        self,
        mock_merchant_repo: AsyncMock,
        apps: list[MagicMock] | None = None,
        descriptors: list[AppDescriptor] | None = None,
    ) -> tuple[AppRiskService, AsyncMock, AsyncMock]:
        app_repo = AsyncMock()
        app_repo.list_active.return_value = apps or []
        assessment_repo = AsyncMock()
        inventory = AsyncMock()
        inventory.list_installed_apps.return_value = descriptors or []
        service = AppRiskService(app_repo, assessment_repo, mock_merchant_repo, inventory)
        return service, app_repo, assessment_repo

    @pytest.mark.asyncio()
    async def test_empty_fleet_produces_zero_assessment(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, app_repo, assessment_repo = self._make_service(mock_merchant_repo)

        await service.perform_risk_assessment(merchant_id)

        fleet = assessment_repo.create.call_args.args[1]
        assert fleet.total_apps == 0
        assert fleet.high_risk_apps == 0
        assert fleet.overall_risk_score == 0
        app_repo.save_risk.assert_not_called()

    @pytest.mark.asyncio()
    async def test_assessment_persists_each_app_score(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        apps = [make_fake_app("Safe"), make_fake_app("Also Safe")]
        service, app_repo, assessment_repo = self._make_service(mock_merchant_repo, apps)

        await service.perform_risk_assessment(merchant_id)

        assert app_repo.save_risk.await_count == 2
        assert assessment_repo.create.call_args.args[1].total_apps == 2

    @pytest.mark.asyncio()
    async def test_scan_replaces_recorded_apps(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        descriptor = AppDescriptor(app_id="app_1", title="Review Widget", scopes=("read_products",))
        service, app_repo, _ = self._make_service(mock_merchant_repo, descriptors=[descriptor])

        apps = await service.scan_apps(merchant_id)

        assert len(apps) == 1
        app_repo.delete_for_merchant.assert_awaited_once_with(merchant_id)
        assert app_repo.create.call_args.kwargs["app_id"] == "app_1"


# ---------------------------------------------------------------------------
# AlertService tests
# ---------------------------------------------------------------------------


class TestAlertService:
    @pytest.mark.asyncio()
    async def test_create_alert_is_active(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        alert_repo = AsyncMock()
        alert_repo.create.return_value = make_fake_alert(merchant_id)
        service = AlertService(alert_repo, mock_merchant_repo)

        await service.create_alert(merchant_id, "data_breach", "critical", "Breach", "Details")

        kwargs = alert_repo.create.call_args.kwargs
        assert kwargs["status"] == AlertStatus.ACTIVE
        assert kwargs["severity"] == Severity.CRITICAL
        assert kwargs["alert_metadata"] == {}

    @pytest.mark.asyncio()
    async def test_acknowledge_then_resolve(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        alert = make_fake_alert(merchant_id)
        alert_repo = AsyncMock()
        alert_repo.get_by_id.return_value = alert
        alert_repo.save.side_effect = lambda a: a
        service = AlertService(alert_repo, mock_merchant_repo)

        await service.acknowledge_alert(alert.id, "ops@example.com")
        assert alert.status == AlertStatus.ACKNOWLEDGED
        assert alert.acknowledged_by == "ops@example.com"

        await service.resolve_alert(alert.id, resolution_notes="Fixed")
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolved_by == "system"
        assert alert.resolution_notes == "Fixed"

    @pytest.mark.asyncio()
    async def test_resolved_alert_cannot_be_dismissed(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        alert_repo = AsyncMock()
        alert_repo.get_by_id.return_value = make_fake_alert(merchant_id, status="resolved")
        service = AlertService(alert_repo, mock_merchant_repo)

        with pytest.raises(InvalidStateError):
            await service.dismiss_alert(uuid.uuid4())

        alert_repo.save.assert_not_called()


# ---------------------------------------------------------------------------
# MonitoringService tests
# ---------------------------------------------------------------------------


def _count_repo(**counts: int) -> AsyncMock:
    repo = AsyncMock()
    for name, value in counts.items():
        getattr(repo, name).return_value = value
    return repo


class TestMonitoringService:
    def _make_service(
        self,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
        request_repo: AsyncMock | None = None,
        consent_withdrawals: int = 0,
        breaches: int = 0,
    ) -> MonitoringService:
        return MonitoringService(
            merchant_repo=mock_merchant_repo,
            audit_repo=mock_audit_repo,
            request_repo=request_repo or _count_repo(count_pending=0, count_pending_before=0),
            consent_repo=_count_repo(count_withdrawn_since=consent_withdrawals),
            breach_repo=_count_repo(count_since=breaches),
            alerts=mock_alert_sink,
        )

    @pytest.mark.asyncio()
    async def test_health_check_combines_penalties(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
    ) -> None:
        mock_audit_repo.get_latest.return_value = make_fake_audit(merchant_id, "completed")
        request_repo = _count_repo(count_pending=2, count_pending_before=1)
        service = self._make_service(
            mock_merchant_repo, mock_audit_repo, mock_alert_sink, request_repo, breaches=1
        )

        report = await service.perform_health_check(merchant_id)

        assert [issue.type for issue in report.issues] == ["overdue_dsr", "recent_breaches"]
        assert report.overall_score == 30

    @pytest.mark.asyncio()
    async def test_overdue_count_skipped_without_pending(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
    ) -> None:
        request_repo = _count_repo(count_pending=0)
        service = self._make_service(mock_merchant_repo, mock_audit_repo, mock_alert_sink, request_repo)

        report = await service.perform_health_check(merchant_id)

        request_repo.count_pending_before.assert_not_called()
        assert [issue.type for issue in report.issues] == ["audit_overdue"]

    @pytest.mark.asyncio()
    async def test_metrics_use_active_alerts(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
    ) -> None:
        stats = AlertStats()
        stats.by_status["active"] = 1
        stats.active_by_severity["critical"] = 1
        mock_alert_sink.get_alert_stats.return_value = stats
        request_repo = _count_repo(count_pending=2)
        service = self._make_service(mock_merchant_repo, mock_audit_repo, mock_alert_sink, request_repo)

        metrics = await service.get_monitoring_metrics(merchant_id)

        assert metrics.total_merchants == 1
        assert metrics.compliance_score == 100 - 4 - 15
        assert metrics.alert_counts["active"] == 1
        assert metrics.alert_counts["critical"] == 1

    @pytest.mark.asyncio()
    async def test_overdue_requests_raise_critical_alerts(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
    ) -> None:
        request_repo = AsyncMock()
        request_repo.list_pending_before.return_value = [
            make_fake_request(merchant_id, created_at=datetime.now(UTC) - timedelta(days=40)),
            make_fake_request(merchant_id, created_at=datetime.now(UTC) - timedelta(days=35)),
        ]
        service = self._make_service(mock_merchant_repo, mock_audit_repo, mock_alert_sink, request_repo)

        created = await service.monitor_overdue_requests()

        assert created == 2
        kwargs = mock_alert_sink.create_alert.call_args.kwargs
        assert kwargs["severity"] == Severity.CRITICAL
        assert kwargs["title"] == "Overdue Data Subject Request"
        assert kwargs["metadata"]["days_pending"] == 35

    @pytest.mark.asyncio()
    async def test_daily_sweep_continues_after_a_failure(
        self,
        mock_merchant_repo: AsyncMock,
        mock_audit_repo: AsyncMock,
        mock_alert_sink: AsyncMock,
    ) -> None:
        broken, healthy = MagicMock(id=uuid.uuid4()), MagicMock(id=uuid.uuid4())
        mock_merchant_repo.list_all.return_value = [broken, healthy]
        mock_merchant_repo.get_by_id.side_effect = [RuntimeError("boom"), healthy]
        service = self._make_service(mock_merchant_repo, mock_audit_repo, mock_alert_sink, breaches=1)

        checked = await service.run_daily_health_checks()

        assert checked == 1
        mock_alert_sink.create_alert.assert_awaited_once()
        kwargs = mock_alert_sink.create_alert.call_args.kwargs
        assert kwargs["merchant_id"] == healthy.id
        assert kwargs["title"] == "Compliance Issue: recent_breaches"


# ---------------------------------------------------------------------------
# DataSubjectRightsService tests
# ---------------------------------------------------------------------------


class TestDataSubjectRightsService:
    def _make_service(
        self,
        mock_merchant_repo: AsyncMock,
        request: MagicMock | None = None,
    ) -> tuple[DataSubjectRightsService, AsyncMock]:
        request_repo = AsyncMock()
        request_repo.get_by_id.return_value = request
        request_repo.update_status.side_effect = lambda r, *args, **kwargs: r
        data_point_repo = AsyncMock()
        data_point_repo.list_for_merchant.return_value = [make_fake_data_point()]
        return DataSubjectRightsService(request_repo, mock_merchant_repo, data_point_repo), request_repo

    @pytest.mark.asyncio()
    async def test_erasure_request_is_high_priority_with_15_day_deadline(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, request_repo = self._make_service(mock_merchant_repo)

        await service.create_request(merchant_id, "erasure", "jane@example.com")

        kwargs = request_repo.create.call_args.kwargs
        assert kwargs["status"] == RequestStatus.PENDING
        assert kwargs["priority"] == RequestPriority.HIGH
        received = datetime.fromisoformat(kwargs["request_data"]["received_at"])
        assert kwargs["deadline"] - received == timedelta(days=15)

    @pytest.mark.asyncio()
    async def test_unknown_request_type_is_rejected(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        service, request_repo = self._make_service(mock_merchant_repo)

        with pytest.raises(ValidationError):
            await service.create_request(merchant_id, "delete_everything", "jane@example.com")

        request_repo.create.assert_not_called()

    @pytest.mark.asyncio()
    async def test_access_request_completes_with_export(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        request = make_fake_request(merchant_id)
        service, request_repo = self._make_service(mock_merchant_repo, request)

        export = await service.process_access_request(request.id)

        assert export["data_categories"] == ["email", "name"]
        statuses = [c.args[1] for c in request_repo.update_status.call_args_list]
        assert statuses == [RequestStatus.PROCESSING, RequestStatus.COMPLETED]

    @pytest.mark.asyncio()
    async def test_processing_wrong_request_type_is_rejected(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        request = make_fake_request(merchant_id, request_type="access")
        service, request_repo = self._make_service(mock_merchant_repo, request)

        with pytest.raises(InvalidStateError):
            await service.process_erasure_request(request.id)

        request_repo.update_status.assert_not_called()

    @pytest.mark.asyncio()
    async def test_completed_request_cannot_be_reprocessed(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        request = make_fake_request(merchant_id, request_type="portability", status="completed")
        service, _ = self._make_service(mock_merchant_repo, request)

        with pytest.raises(InvalidStateError):
            await service.process_portability_request(request.id)

    @pytest.mark.asyncio()
    async def test_update_status_completes_manual_request(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        request = make_fake_request(merchant_id, request_type="rectification")
        service, request_repo = self._make_service(mock_merchant_repo, request)

        await service.update_status(request.id, "completed", {"note": "address corrected"})

        args = request_repo.update_status.call_args.args
        assert args[1] == RequestStatus.COMPLETED
        assert args[2] == {"note": "address corrected"}
        assert args[3] is not None

    @pytest.mark.asyncio()
    async def test_update_status_rejects_unknown_status(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        request = make_fake_request(merchant_id)
        service, request_repo = self._make_service(mock_merchant_repo, request)

        with pytest.raises(ValidationError):
            await service.update_status(request.id, "archived")

        request_repo.update_status.assert_not_called()


# ---------------------------------------------------------------------------
# CookieConsentService tests
# ---------------------------------------------------------------------------


class TestCookieConsentService:
    @pytest.mark.asyncio()
    async def test_classify_replaces_stored_cookies(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        cookie_repo = AsyncMock()
        service = CookieConsentService(cookie_repo, mock_merchant_repo)
        cookies = [
            CookieObservation(name="_ga", domain=".example-store.com", secure=True),
            CookieObservation(name="_fbp", domain=".facebook.com", secure=True),
        ]

        result = await service.classify_cookies(merchant_id, "https://example-store.com", cookies)

        rows = cookie_repo.replace_for_merchant.call_args.args[1]
        assert [row["category"] for row in rows] == ["analytics", "marketing"]
        assert result.third_party_cookies == 1
        assert result.consent_requirements.opt_in_required

    @pytest.mark.asyncio()
    async def test_record_consent_fills_missing_categories(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        cookie_repo = AsyncMock()
        service = CookieConsentService(cookie_repo, mock_merchant_repo)

        await service.record_consent(merchant_id, {"analytics": True})

        kwargs = cookie_repo.create_consent.call_args.kwargs
        assert kwargs["consent_choices"]["essential"] is True
        assert kwargs["consent_choices"]["analytics"] is True
        assert kwargs["consent_choices"]["marketing"] is False
        assert kwargs["consent_method"] == "banner"

    @pytest.mark.asyncio()
    async def test_withdrawn_consent_cannot_be_withdrawn_again(self, mock_merchant_repo: AsyncMock) -> None:
        cookie_repo = AsyncMock()
        cookie_repo.get_consent.return_value = MagicMock(withdrawn_at=datetime.now(UTC))
        service = CookieConsentService(cookie_repo, mock_merchant_repo)

        with pytest.raises(InvalidStateError):
            await service.withdraw_consent(uuid.uuid4())

    @pytest.mark.asyncio()
    async def test_banner_config_lists_categories_in_use(
        self,
        merchant_id: uuid.UUID,
        mock_merchant_repo: AsyncMock,
    ) -> None:
        cookie_repo = AsyncMock()
        cookie_repo.list_active.return_value = [
            MagicMock(category="essential"),
            MagicMock(category="analytics"),
            MagicMock(category="analytics"),
        ]
        service = CookieConsentService(cookie_repo, mock_merchant_repo)

        config = await service.build_banner_config(merchant_id)

        categories = config["consent_options"]["categories"]
        assert [c["category"] for c in categories] == ["essential", "analytics"]
        assert categories[0]["required"] is True
        assert categories[1]["default_enabled"] is False
        assert config["banner_settings"]["company_name"] == "Example Store"
        assert config["legal_settings"]["consent_duration"] == 365
