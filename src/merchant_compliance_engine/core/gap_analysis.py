"""Regulatory gap analysis.

Classifies every applicable rule against a merchant profile, weights the
result by requirement level and derives a short, ordered list of the most
urgent remediation actions.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from merchant_compliance_engine.core.enums import GapStatus, RequirementLevel, RiskLevel, RuleCategory
from merchant_compliance_engine.core.findings import ComplianceGap
from merchant_compliance_engine.core.scoring import (
    REQUIREMENT_WEIGHTS,
    RequirementWeights,
    escalate_risk,
    remediation_deadline,
    requirement_weight,
    risk_rank,
    round_half_up,
)

PRIORITY_ACTION_LIMIT = 5
PARTIAL_CREDIT = 0.5

PRIVACY_POLICY_KEY = "privacy_policy"
CONSENT_CONTROL = "consent_management"
DSAR_CONTROL = "dsar_workflow"
COOKIE_CONTROL = "cookie_consent"


@dataclass(frozen=True)
class MerchantProfile:
    """What the merchant does and what it has already put in place."""

    business_type: str | None = None
    jurisdiction: str | None = None
    data_types: tuple[str, ...] = ()
    current_policies: tuple[str, ...] = ()
    implemented_controls: tuple[str, ...] = ()


@dataclass(frozen=True)
class RuleQuery:
    """Filter for the regulatory rule catalog. Empty fields are not applied."""

    regulation: str | None = None
    category: str | None = None
    business_type: str | None = None
    jurisdiction: str | None = None
    data_types: tuple[str, ...] = ()

    @classmethod
    def for_profile(cls, profile: MerchantProfile) -> "RuleQuery":
        return cls(
            business_type=profile.business_type,
            jurisdiction=profile.jurisdiction,
            data_types=profile.data_types,
        )


@dataclass
class GapAnalysis:
    """Result of a gap analysis for one merchant."""

    merchant_id: Any
    applicable_rules: list[Any] = field(default_factory=list)
    gaps: list[ComplianceGap] = field(default_factory=list)
    overall_compliance_score: int = 100
    priority_actions: list[str] = field(default_factory=list)


def rule_matches(rule: Any, query: RuleQuery) -> bool:
    """Return True when the rule's applicability conditions admit the query.

    A condition that is unset on the rule never excludes it. A query field
    that is empty is not checked at all.
    """
    conditions: dict[str, Any] = rule.applicability_conditions or {}

    if query.business_type:
        business_types = conditions.get("business_types")
        if business_types and query.business_type not in business_types:
            return False

    if query.jurisdiction:
        jurisdictions = conditions.get("jurisdictions")
        if jurisdictions and query.jurisdiction not in jurisdictions:
            return False

    if query.data_types:
        data_types = conditions.get("data_types")
        if data_types and not set(query.data_types) & set(data_types):
            return False

    return True


def _coerce_category(value: Any) -> RuleCategory | None:
    try:
        return RuleCategory(value)
    except ValueError:
        return None


def classify_rule(
    rule: Any,
    profile: MerchantProfile,
    now: datetime | None = None,
) -> ComplianceGap:
    """Classify a single rule against the merchant profile.

    Args:
        rule: Rule with category, title and requirement attributes.
        profile: The merchant profile.
        now: Reference time for the remediation deadline.

    Returns:
        ComplianceGap with escalated risk and deadline.
    """
    status = GapStatus.NON_COMPLIANT
    risk = RiskLevel.MEDIUM
    action = f"Implement {rule.title}"
    controls = profile.implemented_controls

    match _coerce_category(rule.category):
        case RuleCategory.PRIVACY_POLICY:
            if PRIVACY_POLICY_KEY in profile.current_policies:
                status, risk = GapStatus.COMPLIANT, RiskLevel.LOW
                action = "Review and update privacy policy regularly"
            else:
                risk = RiskLevel.CRITICAL
                action = "Create and publish privacy policy immediately"
        case RuleCategory.CONSENT_MANAGEMENT:
            if CONSENT_CONTROL in controls:
                status, risk = GapStatus.COMPLIANT, RiskLevel.LOW
            else:
                risk = RiskLevel.HIGH
                action = "Implement consent management system"
        case RuleCategory.DATA_SUBJECT_RIGHTS:
            # A workflow alone is never enough for full compliance
            if DSAR_CONTROL in controls:
                status, risk = GapStatus.PARTIAL, RiskLevel.MEDIUM
                action = "Enhance data subject rights workflow"
            else:
                risk = RiskLevel.HIGH
                action = "Implement data subject rights management"
        case RuleCategory.COOKIE_MANAGEMENT:
            if COOKIE_CONTROL in controls:
                status, risk = GapStatus.COMPLIANT, RiskLevel.LOW
            else:
                action = "Implement cookie consent management"
        case _:
            if str(rule.category).lower() in controls:
                status, risk = GapStatus.PARTIAL, RiskLevel.MEDIUM

    if rule.requirement == RequirementLevel.MANDATORY and status == GapStatus.NON_COMPLIANT:
        risk = escalate_risk(risk)

    return ComplianceGap(
        rule=rule,
        current_status=status,
        risk_level=risk,
        action_required=action,
        deadline=remediation_deadline(rule.requirement, status, now),
    )


def score_gaps(
    gaps: Iterable[ComplianceGap],
    weights: RequirementWeights = REQUIREMENT_WEIGHTS,
) -> int:
    """Weighted compliance score in [0, 100]; 100 when there is nothing to score."""
    total = 0.0
    maximum = 0
    for gap in gaps:
        weight = requirement_weight(gap.rule.requirement, weights)
        maximum += weight
        if gap.current_status == GapStatus.COMPLIANT:
            total += weight
        elif gap.current_status == GapStatus.PARTIAL:
            total += weight * PARTIAL_CREDIT

    if maximum == 0:
        return 100
    return round_half_up(total / maximum * 100)


def priority_actions(
    gaps: Sequence[ComplianceGap],
    limit: int = PRIORITY_ACTION_LIMIT,
) -> list[str]:
    """Actions of the highest-risk gaps, critical first, keeping input order on ties."""
    urgent = [gap for gap in gaps if gap.risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH)]
    ranked = sorted(urgent, key=lambda gap: -risk_rank(gap.risk_level))
    return [gap.action_required for gap in ranked[:limit]]


def analyze_gaps(
    merchant_id: Any,
    profile: MerchantProfile,
    rules: Sequence[Any],
    now: datetime | None = None,
    weights: RequirementWeights = REQUIREMENT_WEIGHTS,
) -> GapAnalysis:
    """Run a gap analysis over an already-filtered list of applicable rules.

    Args:
        merchant_id: Merchant the analysis is for.
        profile: The merchant profile.
        rules: Applicable, active rules.
        now: Reference time for deadlines.
        weights: Requirement weight table.

    Returns:
        GapAnalysis with one gap per rule.
    """
    gaps = [classify_rule(rule, profile, now) for rule in rules]
    return GapAnalysis(
        merchant_id=merchant_id,
        applicable_rules=list(rules),
        gaps=gaps,
        overall_compliance_score=score_gaps(gaps, weights),
        priority_actions=priority_actions(gaps),
    )
