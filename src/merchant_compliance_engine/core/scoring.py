"""Scoring primitives.

Pure functions shared by the audit pipeline, the gap analyzer, the app risk
model and the health check. Weight and threshold tables are named constant
structures passed explicitly, with the module default as the default argument,
so they can be tuned and tested independently.
"""

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from merchant_compliance_engine.core.enums import (
    ComplianceStatus,
    GapStatus,
    RequirementLevel,
    RiskLevel,
)

SCORE_MIN = 0
SCORE_MAX = 100


@dataclass(frozen=True)
class RequirementWeights:
    """Contribution of a rule to the weighted maximum, by requirement level."""

    mandatory: int = 10
    recommended: int = 5
    optional: int = 1
    default: int = 5


@dataclass(frozen=True)
class RiskThresholds:
    """Inclusive lower bounds mapping a 0-100 score to a risk level."""

    critical: int = 80
    high: int = 60
    medium: int = 40


@dataclass(frozen=True)
class ComplianceThresholds:
    """Inclusive lower bounds mapping an audit score to a compliance status."""

    compliant: int = 80
    under_review: int = 60


@dataclass(frozen=True)
class DeadlinePolicy:
    """Remediation windows in days."""

    mandatory_non_compliant: int = 15
    mandatory_partial: int = 30
    non_mandatory: int = 60


REQUIREMENT_WEIGHTS = RequirementWeights()
RISK_THRESHOLDS = RiskThresholds()
COMPLIANCE_THRESHOLDS = ComplianceThresholds()
DEADLINE_POLICY = DeadlinePolicy()

# Ordering only; ranks are never summed
RISK_RANK: dict[RiskLevel, int] = {
    RiskLevel.CRITICAL: 4,
    RiskLevel.HIGH: 3,
    RiskLevel.MEDIUM: 2,
    RiskLevel.LOW: 1,
}
_DEFAULT_RISK_RANK = 2

_ESCALATION_ORDER: tuple[RiskLevel, ...] = (
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, e.g. 60.5 -> 61."""
    return math.floor(value + 0.5)


def clamp_score(value: float, low: int = SCORE_MIN, high: int = SCORE_MAX) -> int:
    """Round a raw score half-up and clamp it into [low, high]."""
    return max(low, min(high, round_half_up(value)))


def requirement_weight(
    requirement: str | None,
    weights: RequirementWeights = REQUIREMENT_WEIGHTS,
) -> int:
    """Return the scoring weight of a requirement level.

    Args:
        requirement: mandatory | recommended | optional. Anything else gets the default.
        weights: Weight table to use.

    Returns:
        The integer weight.
    """
    match requirement:
        case RequirementLevel.MANDATORY:
            return weights.mandatory
        case RequirementLevel.RECOMMENDED:
            return weights.recommended
        case RequirementLevel.OPTIONAL:
            return weights.optional
        case _:
            return weights.default


def risk_rank(level: str | None) -> int:
    """Return the sort rank of a risk level (critical=4 ... low=1, unknown=2)."""
    try:
        return RISK_RANK[RiskLevel(level)]
    except ValueError:
        return _DEFAULT_RISK_RANK


def risk_level_from_score(
    score: float,
    thresholds: RiskThresholds = RISK_THRESHOLDS,
) -> RiskLevel:
    """Map a 0-100 risk score to a risk level using inclusive lower bounds.

    Args:
        score: The risk score.
        thresholds: Threshold table to use.

    Returns:
        critical at >= 80, high at >= 60, medium at >= 40, otherwise low.
    """
    if score >= thresholds.critical:
        return RiskLevel.CRITICAL
    if score >= thresholds.high:
        return RiskLevel.HIGH
    if score >= thresholds.medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def compliance_status_from_score(
    score: float,
    thresholds: ComplianceThresholds = COMPLIANCE_THRESHOLDS,
) -> ComplianceStatus:
    """Map an audit score to compliant / under_review / non_compliant."""
    if score >= thresholds.compliant:
        return ComplianceStatus.COMPLIANT
    if score >= thresholds.under_review:
        return ComplianceStatus.UNDER_REVIEW
    return ComplianceStatus.NON_COMPLIANT


def escalate_risk(level: RiskLevel) -> RiskLevel:
    """Move a risk level one step up the ordered scale, saturating at critical."""
    index = _ESCALATION_ORDER.index(level)
    return _ESCALATION_ORDER[min(index + 1, len(_ESCALATION_ORDER) - 1)]


def remediation_deadline(
    requirement: str | None,
    status: GapStatus,
    now: datetime | None = None,
    policy: DeadlinePolicy = DEADLINE_POLICY,
) -> datetime | None:
    """Compute the remediation deadline for a gap.

    Args:
        requirement: Requirement level of the rule.
        status: The gap's current status.
        now: Reference time. Defaults to the current UTC time.
        policy: Remediation windows to use.

    Returns:
        None when compliant, otherwise now plus 15 days (mandatory and
        non-compliant), 30 days (mandatory and partial) or 60 days
        (recommended or optional).
    """
    if status == GapStatus.COMPLIANT:
        return None

    reference = now or datetime.now(UTC)
    if requirement == RequirementLevel.MANDATORY:
        days = (
            policy.mandatory_non_compliant
            if status == GapStatus.NON_COMPLIANT
            else policy.mandatory_partial
        )
    else:
        days = policy.non_mandatory
    return reference + timedelta(days=days)
