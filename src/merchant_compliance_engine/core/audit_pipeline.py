"""Audit check pipeline.

Four independent checks run against a merchant's stored privacy policies and
data-collection points. Each returns an immutable CheckResult; the outcome is
a fold over those results, never a running total mutated inside the checks.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from merchant_compliance_engine.core.enums import ComplianceStatus, Priority, Severity
from merchant_compliance_engine.core.findings import CheckResult, Finding, Recommendation
from merchant_compliance_engine.core.scoring import clamp_score, compliance_status_from_score

PUBLISHED_POLICY_STATUS = "published"


@dataclass(frozen=True)
class AuditDeductions:
    """Score deductions applied by each audit check. Flat, never scaled by count."""

    missing_policy: int = 30
    unpublished_policy: int = 15
    no_data_mapping: int = 25
    missing_legal_basis: int = 20
    missing_retention: int = 10


AUDIT_DEDUCTIONS = AuditDeductions()


@dataclass(frozen=True)
class AuditOutcome:
    """Aggregated result of one audit run."""

    score: int
    status: ComplianceStatus
    findings: tuple[Finding, ...]
    recommendations: tuple[Recommendation, ...]

    @property
    def risk_score(self) -> int:
        return 100 - self.score


def check_privacy_policy(
    policies: Sequence[Any],
    deductions: AuditDeductions = AUDIT_DEDUCTIONS,
) -> CheckResult:
    """Check that a privacy policy exists and that the latest one is published.

    Args:
        policies: The merchant's policies, newest first.
        deductions: Deduction table to use.

    Returns:
        A critical finding when no policy exists, a high finding when the
        latest policy is unpublished, otherwise an empty result.
    """
    if not policies:
        return CheckResult(
            findings=(
                Finding(
                    category="Privacy Policy",
                    severity=Severity.CRITICAL,
                    description="No privacy policy found",
                    impact="Legal requirement violation - GDPR Article 13/14",
                ),
            ),
            recommendations=(
                Recommendation(
                    priority=Priority.URGENT,
                    title="Create Privacy Policy",
                    description="Generate a GDPR-compliant privacy policy",
                    action_items=(
                        "Use AI policy generator",
                        "Review legal requirements",
                        "Publish policy",
                    ),
                    estimated_effort="2-4 hours",
                ),
            ),
            deduction=deductions.missing_policy,
        )

    if policies[0].status != PUBLISHED_POLICY_STATUS:
        return CheckResult(
            findings=(
                Finding(
                    category="Privacy Policy",
                    severity=Severity.HIGH,
                    description="Privacy policy exists but is not published",
                    impact="Policy not accessible to data subjects",
                ),
            ),
            deduction=deductions.unpublished_policy,
        )

    return CheckResult()


def check_data_mapping(
    data_points: Sequence[Any],
    deductions: AuditDeductions = AUDIT_DEDUCTIONS,
) -> CheckResult:
    """Check that at least one data-collection point has been mapped."""
    if data_points:
        return CheckResult()

    return CheckResult(
        findings=(
            Finding(
                category="Data Mapping",
                severity=Severity.HIGH,
                description="No data collection points mapped",
                impact="Cannot demonstrate data processing compliance",
            ),
        ),
        recommendations=(
            Recommendation(
                priority=Priority.HIGH,
                title="Map Data Collection Points",
                description="Identify and document all personal data collection",
                action_items=(
                    "Audit data collection forms",
                    "Document processing purposes",
                    "Define legal basis",
                ),
                estimated_effort="4-8 hours",
            ),
        ),
        deduction=deductions.no_data_mapping,
    )


def check_legal_basis(
    data_points: Sequence[Any],
    deductions: AuditDeductions = AUDIT_DEDUCTIONS,
) -> CheckResult:
    """Flag data-collection points that record no legal basis."""
    missing = sum(1 for point in data_points if not point.legal_basis)
    if missing == 0:
        return CheckResult()

    return CheckResult(
        findings=(
            Finding(
                category="Legal Basis",
                severity=Severity.CRITICAL,
                description=f"{missing} data collection points lack legal basis",
                impact="GDPR Article 6 violation - unlawful processing",
            ),
        ),
        deduction=deductions.missing_legal_basis,
    )


def check_retention(
    data_points: Sequence[Any],
    deductions: AuditDeductions = AUDIT_DEDUCTIONS,
) -> CheckResult:
    """Flag data-collection points without a retention period."""
    missing = sum(1 for point in data_points if not point.retention_period)
    if missing == 0:
        return CheckResult()

    return CheckResult(
        findings=(
            Finding(
                category="Data Retention",
                severity=Severity.MEDIUM,
                description=f"{missing} data points lack retention policies",
                impact="GDPR Article 5(1)(e) - storage limitation principle",
            ),
        ),
        deduction=deductions.missing_retention,
    )


def aggregate_checks(results: Sequence[CheckResult]) -> AuditOutcome:
    """Fold check results into a bounded score, a status and the combined findings.

    Args:
        results: One CheckResult per check, in reporting order.

    Returns:
        AuditOutcome with score = clamp(100 - sum(deductions), 0, 100).
    """
    score = clamp_score(100 - sum(result.deduction for result in results))
    return AuditOutcome(
        score=score,
        status=compliance_status_from_score(score),
        findings=tuple(finding for result in results for finding in result.findings),
        recommendations=tuple(rec for result in results for rec in result.recommendations),
    )


def perform_audit_checks(
    policies: Sequence[Any],
    data_points: Sequence[Any],
    deductions: AuditDeductions = AUDIT_DEDUCTIONS,
) -> AuditOutcome:
    """Run every audit check and aggregate the results.

    Args:
        policies: The merchant's privacy policies, newest first.
        data_points: The merchant's data-collection points.
        deductions: Deduction table to use.

    Returns:
        The aggregated AuditOutcome.
    """
    return aggregate_checks(
        [
            check_privacy_policy(policies, deductions),
            check_data_mapping(data_points, deductions),
            check_legal_basis(data_points, deductions),
            check_retention(data_points, deductions),
        ]
    )
