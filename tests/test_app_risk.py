"""Tests for third-party app risk scoring, fleet aggregation and inventory normalization."""

import pytest

from merchant_compliance_engine.core.app_inventory import (
    SAMPLE_APPS,
    AppDescriptor,
    build_app_fields,
    categorize_app,
    determine_data_access_level,
    extract_data_access,
    extract_data_types,
)
from merchant_compliance_engine.core.app_risk import (
    aggregate_fleet,
    analyze_app,
    analyze_data_access,
    analyze_permissions,
    risk_breakdown,
)
from merchant_compliance_engine.core.enums import AppCategory, DataAccessLevel, RiskLevel, Severity
from tests.conftest import make_fake_app


def _risky_app(name: str = "Risky App", risk_score: int = 0):
    return make_fake_app(
        app_name=name,
        data_access_level="full_access",
        scopes=["read_customers", "write_customers", "read_orders", "write_orders", "read_users"],
        data_types=["personal_data"],
        privacy_policy_url=None,
        encryption_status="unknown",
        data_retention_period="unknown",
        developer="Unknown Developer",
        risk_score=risk_score,
    )


class TestSubFactors:
    def test_full_access_with_sensitive_data_is_additive(self) -> None:
        result = analyze_data_access(_risky_app())

        assert result.score == 120
        assert [f.severity for f in result.findings] == [Severity.CRITICAL, Severity.HIGH]

    def test_read_only_without_sensitive_data_scores_zero(self) -> None:
        assert analyze_data_access(make_fake_app()).score == 0

    @pytest.mark.parametrize(
        ("scopes", "expected"),
        [
            ([], 0),
            (["read_products"], 0),
            (["read_orders"], 40),
            (["read_orders", "write_orders", "read_customers"], 40),
            (["read_orders", "write_orders", "read_customers", "write_customers"], 70),
        ],
    )
    def test_permission_bands(self, scopes: list[str], expected: int) -> None:
        assert analyze_permissions(make_fake_app(scopes=scopes)).score == expected


class TestAnalyzeApp:
    def test_clean_app_is_low_risk(self) -> None:
        analysis = analyze_app(make_fake_app())

        assert analysis.risk_score == 0
        assert analysis.risk_level == RiskLevel.LOW
        assert analysis.findings == ()
        assert analysis.recommendations == ()

    def test_risky_app_is_critical(self) -> None:
        analysis = analyze_app(_risky_app())

        assert analysis.risk_score == 80
        assert analysis.risk_level == RiskLevel.CRITICAL
        assert analysis.subscores == {
            "data_access": 120,
            "permissions": 70,
            "compliance": 90,
            "security": 30,
            "reputation": 40,
        }
        assert "Request privacy policy from app developer" in analysis.recommendations
        assert analysis.compliance_gaps[0].regulation == "GDPR"

    def test_removal_hint_uses_stored_score(self) -> None:
        fresh = analyze_app(_risky_app(risk_score=0))
        reassessed = analyze_app(_risky_app(risk_score=80))

        assert "Consider removing or replacing this high-risk app" not in fresh.recommendations
        assert "Consider removing or replacing this high-risk app" in reassessed.recommendations

    def test_compliance_issues_are_unresolved(self) -> None:
        issues = analyze_app(_risky_app()).compliance_issues()

        assert issues
        assert all(issue["resolved"] is False for issue in issues)
        assert issues[0]["recommendation"] == "Address data access risk"


class TestAggregateFleet:
    def test_empty_fleet(self) -> None:
        fleet = aggregate_fleet([])

        assert fleet.total_apps == 0
        assert fleet.high_risk_apps == fleet.medium_risk_apps == fleet.low_risk_apps == 0
        assert fleet.overall_risk_score == 0
        assert set(fleet.risk_breakdown.values()) == {0}
        assert fleet.recommendations == []
        assert fleet.compliance_gaps == []

    def test_counts_and_mean(self) -> None:
        analyses = [analyze_app(_risky_app("A")), analyze_app(make_fake_app(app_name="B"))]
        fleet = aggregate_fleet(analyses)

        assert fleet.total_apps == 2
        assert fleet.high_risk_apps == 1
        assert fleet.low_risk_apps == 1
        assert fleet.overall_risk_score == 40
        assert fleet.recommendations[0]["affected_apps"] == ["A"]

    def test_dpa_gap_names_apps_without_their_own_gdpr_gap(self) -> None:
        analyses = [analyze_app(_risky_app("A")), analyze_app(make_fake_app(app_name="B"))]
        fleet = aggregate_fleet(analyses)

        assert fleet.compliance_gaps[0]["affected_apps"] == ["B"]

    def test_breakdown_modes(self) -> None:
        analyses = [analyze_app(_risky_app())]

        legacy = risk_breakdown(analyses)
        corrected = risk_breakdown(analyses, corrected=True)

        assert legacy["data_access"] == 24
        assert corrected["data_access"] == 36
        assert corrected["reputation"] == 4


class TestAppInventory:
    def test_categorize_by_keyword_order(self) -> None:
        assert categorize_app("Google Analytics Enhanced Ecommerce") == AppCategory.ANALYTICS
        assert categorize_app("Mailchimp Email Marketing") == AppCategory.MARKETING
        assert categorize_app("Widget", "does nothing in particular") == AppCategory.OTHER

    @pytest.mark.parametrize(
        ("scopes", "expected"),
        [
            ((), DataAccessLevel.READ_ONLY),
            (("read_orders",), DataAccessLevel.READ_ONLY),
            (("write_orders",), DataAccessLevel.READ_WRITE),
            (("write_a", "write_b", "write_c", "write_d"), DataAccessLevel.FULL_ACCESS),
            (("read_all_orders",), DataAccessLevel.FULL_ACCESS),
        ],
    )
    def test_data_access_level(self, scopes: tuple[str, ...], expected: DataAccessLevel) -> None:
        assert determine_data_access_level(scopes) == expected

    def test_data_access_and_types(self) -> None:
        scopes = ["read_customers", "write_customers", "read_orders", "write_script_tags"]

        assert extract_data_access(scopes) == ["customer_data", "order_data", "write_script_tags"]
        assert extract_data_types(scopes) == [
            "personal_data",
            "contact_information",
            "transaction_data",
            "payment_information",
        ]

    def test_build_fields_starts_unknown(self) -> None:
        fields = build_app_fields(AppDescriptor(app_id="x", title="Stock Sync", scopes=("read_inventory",)))

        assert fields["category"] == AppCategory.INVENTORY
        assert fields["risk_factors"]["encryption_status"] == "unknown"
        assert fields["risk_factors"]["data_retention_period"] == "unknown"
        assert fields["permissions"]["data_access"] == ["inventory_data"]

    def test_sample_inventory(self) -> None:
        levels = {app.app_id: determine_data_access_level(app.scopes) for app in SAMPLE_APPS}

        assert levels == {
            "app_123": DataAccessLevel.READ_WRITE,
            "app_456": DataAccessLevel.READ_WRITE,
            "app_789": DataAccessLevel.FULL_ACCESS,
        }
