"""Third-party app risk model.

Each app is scored by five independent analyzers. A weighted sum of their
subscores gives the app's risk score, which is thresholded into a risk level.
The fleet aggregate summarizes every app of a merchant in one assessment.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from merchant_compliance_engine.core.enums import DataAccessLevel, Priority, RiskLevel, Severity
from merchant_compliance_engine.core.findings import Finding
from merchant_compliance_engine.core.scoring import (
    RISK_THRESHOLDS,
    RiskThresholds,
    clamp_score,
    risk_level_from_score,
    round_half_up,
)

HIGH_RISK_PERMISSIONS: tuple[str, ...] = (
    "read_customers",
    "write_customers",
    "read_orders",
    "write_orders",
    "read_all_orders",
    "write_all_orders",
    "read_users",
    "write_users",
    "read_script_tags",
    "write_script_tags",
)
SENSITIVE_DATA_TYPES: frozenset[str] = frozenset({"personal_data", "payment_information"})
UNKNOWN = "unknown"
UNKNOWN_DEVELOPER = "Unknown Developer"

# Apps above this score are called out for removal
HIGH_RISK_APP_SCORE = 70


@dataclass(frozen=True)
class RiskWeights:
    """Weight of each sub-factor in the composite app risk score. Sums to 1.0."""

    data_access: float = 0.30
    permissions: float = 0.25
    compliance: float = 0.20
    security: float = 0.15
    reputation: float = 0.10

    def items(self) -> tuple[tuple[str, float], ...]:
        return (
            ("data_access", self.data_access),
            ("permissions", self.permissions),
            ("compliance", self.compliance),
            ("security", self.security),
            ("reputation", self.reputation),
        )


RISK_WEIGHTS = RiskWeights()


@dataclass(frozen=True)
class SubScore:
    """Findings and 0-100 subscore of one risk sub-factor."""

    findings: tuple[Finding, ...] = ()
    score: int = 0


@dataclass(frozen=True)
class AppGap:
    regulation: str
    requirement: str
    description: str
    remediation: str

    def to_dict(self) -> dict[str, str]:
        return {
            "regulation": self.regulation,
            "requirement": self.requirement,
            "description": self.description,
            "remediation": self.remediation,
        }


@dataclass(frozen=True)
class AppRiskAnalysis:
    """Risk analysis of a single app."""

    app_id: str
    app_name: str
    risk_score: int
    risk_level: RiskLevel
    findings: tuple[Finding, ...]
    subscores: dict[str, int]
    recommendations: tuple[str, ...] = ()
    compliance_gaps: tuple[AppGap, ...] = ()

    def compliance_issues(self) -> list[dict[str, Any]]:
        """Per-app issues as stored on the app record, all unresolved."""
        return [
            {
                "severity": str(finding.severity),
                "category": finding.category,
                "description": finding.description,
                "recommendation": f"Address {finding.category.lower()} risk",
                "resolved": False,
            }
            for finding in self.findings
        ]


@dataclass
class FleetAssessment:
    """Aggregate of every app analysis for one merchant."""

    total_apps: int = 0
    high_risk_apps: int = 0
    medium_risk_apps: int = 0
    low_risk_apps: int = 0
    overall_risk_score: int = 0
    risk_breakdown: dict[str, int] = field(default_factory=dict)
    recommendations: list[dict[str, Any]] = field(default_factory=list)
    compliance_gaps: list[dict[str, Any]] = field(default_factory=list)


def _risk_factors(app: Any) -> dict[str, Any]:
    return app.risk_factors or {}


def _scopes(app: Any) -> list[str]:
    return (app.permissions or {}).get("scopes") or []


# ---------------------------------------------------------------------------
# Sub-factor analyzers
# ---------------------------------------------------------------------------


def analyze_data_access(app: Any) -> SubScore:
    """Access-level finding plus an additive finding for sensitive data types."""
    findings: list[Finding] = []
    score = 0

    if app.data_access_level == DataAccessLevel.FULL_ACCESS:
        findings.append(
            Finding(
                category="Data Access",
                severity=Severity.CRITICAL,
                description="App has full access to store data",
                impact="Complete data exposure risk",
            )
        )
        score += 80
    elif app.data_access_level == DataAccessLevel.READ_WRITE:
        findings.append(
            Finding(
                category="Data Access",
                severity=Severity.HIGH,
                description="App can read and modify store data",
                impact="Data modification and exposure risk",
            )
        )
        score += 60

    data_types = _risk_factors(app).get("data_types") or []
    if SENSITIVE_DATA_TYPES.intersection(data_types):
        findings.append(
            Finding(
                category="Sensitive Data",
                severity=Severity.HIGH,
                description="App accesses sensitive personal or payment data",
                impact="Privacy and security compliance risk",
            )
        )
        score += 40

    return SubScore(tuple(findings), score)


def analyze_permissions(app: Any) -> SubScore:
    """Count scopes matching the high-risk permission patterns."""
    high_risk = sum(
        1 for scope in _scopes(app) if any(pattern in scope for pattern in HIGH_RISK_PERMISSIONS)
    )

    if high_risk > 3:
        finding = Finding(
            category="Permissions",
            severity=Severity.HIGH,
            description="App requests excessive high-risk permissions",
            impact="Broad access to sensitive operations",
        )
        return SubScore((finding,), 70)
    if high_risk > 0:
        finding = Finding(
            category="Permissions",
            severity=Severity.MEDIUM,
            description="App requests some high-risk permissions",
            impact="Limited access to sensitive operations",
        )
        return SubScore((finding,), 40)
    return SubScore()


def analyze_compliance(app: Any) -> SubScore:
    findings: list[Finding] = []
    score = 0
    factors = _risk_factors(app)

    if not factors.get("privacy_policy_url"):
        findings.append(
            Finding(
                category="Compliance",
                severity=Severity.HIGH,
                description="App lacks privacy policy",
                impact="GDPR compliance risk",
            )
        )
        score += 60

    if factors.get("data_retention_period") == UNKNOWN:
        findings.append(
            Finding(
                category="Data Retention",
                severity=Severity.MEDIUM,
                description="Data retention period not specified",
                impact="Data minimization compliance risk",
            )
        )
        score += 30

    return SubScore(tuple(findings), score)


def analyze_security(app: Any) -> SubScore:
    if _risk_factors(app).get("encryption_status") != UNKNOWN:
        return SubScore()
    finding = Finding(
        category="Security",
        severity=Severity.MEDIUM,
        description="Encryption status unknown",
        impact="Data security risk",
    )
    return SubScore((finding,), 30)


def analyze_reputation(app: Any) -> SubScore:
    if app.developer and app.developer != UNKNOWN_DEVELOPER:
        return SubScore()
    finding = Finding(
        category="Developer Reputation",
        severity=Severity.MEDIUM,
        description="Unknown or unverified developer",
        impact="Trust and reliability concerns",
    )
    return SubScore((finding,), 40)


_ANALYZERS = {
    "data_access": analyze_data_access,
    "permissions": analyze_permissions,
    "compliance": analyze_compliance,
    "security": analyze_security,
    "reputation": analyze_reputation,
}


# ---------------------------------------------------------------------------
# Per-app and fleet scoring
# ---------------------------------------------------------------------------


def app_recommendations(app: Any, findings: Sequence[Finding]) -> tuple[str, ...]:
    """Remediation hints for one app.

    The removal hint uses the score stored on the app from its previous
    assessment, so a newly scanned app never receives it.
    """
    recommendations: list[str] = []
    if any(finding.category == "Data Access" for finding in findings):
        recommendations.append("Review and minimize app data access permissions")
    if not _risk_factors(app).get("privacy_policy_url"):
        recommendations.append("Request privacy policy from app developer")
    if (app.risk_score or 0) > HIGH_RISK_APP_SCORE:
        recommendations.append("Consider removing or replacing this high-risk app")
    return tuple(recommendations)


def app_compliance_gaps(app: Any) -> tuple[AppGap, ...]:
    if _risk_factors(app).get("privacy_policy_url"):
        return ()
    return (
        AppGap(
            regulation="GDPR",
            requirement="Article 28 - Processor agreements",
            description="Third-party processor lacks privacy policy",
            remediation="Obtain data processing agreement and privacy policy",
        ),
    )


def analyze_app(
    app: Any,
    weights: RiskWeights = RISK_WEIGHTS,
    thresholds: RiskThresholds = RISK_THRESHOLDS,
) -> AppRiskAnalysis:
    """Score one app from its five sub-factors.

    Args:
        app: App record with data_access_level, permissions, risk_factors,
            developer and risk_score attributes.
        weights: Sub-factor weights.
        thresholds: Risk level thresholds.

    Returns:
        AppRiskAnalysis with score = clamp(round(sum(subscore * weight))).
    """
    findings: list[Finding] = []
    subscores: dict[str, int] = {}
    weighted = 0.0

    for name, weight in weights.items():
        result = _ANALYZERS[name](app)
        findings.extend(result.findings)
        subscores[name] = result.score
        weighted += result.score * weight

    score = clamp_score(weighted)
    return AppRiskAnalysis(
        app_id=app.app_id,
        app_name=app.app_name,
        risk_score=score,
        risk_level=risk_level_from_score(score, thresholds),
        findings=tuple(findings),
        subscores=subscores,
        recommendations=app_recommendations(app, findings),
        compliance_gaps=app_compliance_gaps(app),
    )


def risk_breakdown(
    analyses: Sequence[AppRiskAnalysis],
    weights: RiskWeights = RISK_WEIGHTS,
    corrected: bool = False,
) -> dict[str, int]:
    """Mean contribution of each sub-factor across apps.

    By default each weight is applied to the app's composite risk score, so
    the parts only approximate the overall score. With corrected=True each
    weight is applied to that sub-factor's own subscore, so the parts add up
    to the mean composite before rounding.
    """
    if not analyses:
        return {name: 0 for name, _ in weights.items()}

    count = len(analyses)
    breakdown: dict[str, int] = {}
    for name, weight in weights.items():
        if corrected:
            total = sum(analysis.subscores.get(name, 0) * weight for analysis in analyses)
        else:
            total = sum(analysis.risk_score * weight for analysis in analyses)
        breakdown[name] = round_half_up(total / count)
    return breakdown


def fleet_recommendations(analyses: Sequence[AppRiskAnalysis]) -> list[dict[str, Any]]:
    risky = [analysis for analysis in analyses if analysis.risk_score > HIGH_RISK_APP_SCORE]
    if not risky:
        return []
    return [
        {
            "priority": str(Priority.URGENT),
            "category": "High Risk Apps",
            "description": f"{len(risky)} apps pose high security risks",
            "action_items": [
                "Review high-risk app permissions",
                "Consider removing unnecessary apps",
                "Implement additional monitoring",
            ],
            "affected_apps": [analysis.app_name for analysis in risky],
        }
    ]


def fleet_compliance_gaps(analyses: Sequence[AppRiskAnalysis]) -> list[dict[str, Any]]:
    """Shared data-processing-agreement gap.

    Apps are selected when they carry no GDPR gap of their own, which is the
    long-standing selection used by existing reports.
    """
    affected = [
        analysis.app_name
        for analysis in analyses
        if not any(gap.regulation == "GDPR" for gap in analysis.compliance_gaps)
    ]
    if not affected:
        return []
    return [
        {
            "regulation": "GDPR",
            "requirement": "Data Processing Agreements",
            "affected_apps": affected,
            "risk_level": str(RiskLevel.HIGH),
            "remediation": "Obtain data processing agreements from all third-party apps",
        }
    ]


def aggregate_fleet(
    analyses: Sequence[AppRiskAnalysis],
    weights: RiskWeights = RISK_WEIGHTS,
    corrected_breakdown: bool = False,
) -> FleetAssessment:
    """Aggregate per-app analyses. An empty fleet yields all-zero counts."""
    assessment = FleetAssessment(total_apps=len(analyses))

    for analysis in analyses:
        match analysis.risk_level:
            case RiskLevel.HIGH | RiskLevel.CRITICAL:
                assessment.high_risk_apps += 1
            case RiskLevel.MEDIUM:
                assessment.medium_risk_apps += 1
            case _:
                assessment.low_risk_apps += 1

    if analyses:
        mean = sum(analysis.risk_score for analysis in analyses) / len(analyses)
        assessment.overall_risk_score = round_half_up(mean)

    assessment.risk_breakdown = risk_breakdown(analyses, weights, corrected_breakdown)
    assessment.recommendations = fleet_recommendations(analyses)
    assessment.compliance_gaps = fleet_compliance_gaps(analyses)
    return assessment
