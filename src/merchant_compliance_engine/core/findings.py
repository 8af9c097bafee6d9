"""Value types shared by every scoring pipeline.

Findings and recommendations are produced fresh on each evaluation and only
ever persisted embedded in an audit or assessment record, so they are frozen
dataclasses with a to_dict() for the JSONB columns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from merchant_compliance_engine.core.enums import GapStatus, Priority, RiskLevel, Severity


@dataclass(frozen=True)
class Finding:
    """A single detected compliance issue.

    Attributes:
        category: Area the finding belongs to, e.g. "Privacy Policy".
        severity: How serious the issue is.
        description: What was detected.
        impact: Why it matters, usually the regulatory consequence.
    """

    category: str
    severity: Severity
    description: str
    impact: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "severity": str(self.severity),
            "description": self.description,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class Recommendation:
    """A remediation step suggested alongside findings.

    Attributes:
        priority: How soon the merchant should act.
        title: Short imperative title.
        description: One-sentence explanation.
        action_items: Ordered concrete steps.
        estimated_effort: Free-text effort estimate, e.g. "2-4 hours".
    """

    priority: Priority
    title: str
    description: str
    action_items: tuple[str, ...] = ()
    estimated_effort: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": str(self.priority),
            "title": self.title,
            "description": self.description,
            "action_items": list(self.action_items),
            "estimated_effort": self.estimated_effort,
        }


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one independent check: its findings and its score deduction."""

    findings: tuple[Finding, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    deduction: int = 0


@dataclass(frozen=True)
class ComplianceGap:
    """Delta between one regulatory rule and the merchant's implementation.

    Attributes:
        rule: The rule evaluated (ORM instance or any object with rule attributes).
        current_status: compliant | partial | non_compliant.
        risk_level: Risk after requirement-level escalation.
        action_required: Human-readable remediation action.
        deadline: Remediation deadline, None when compliant.
    """

    rule: Any
    current_status: GapStatus
    risk_level: RiskLevel
    action_required: str
    deadline: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        rule_id = getattr(self.rule, "id", None)
        return {
            "rule_id": str(rule_id) if rule_id is not None else None,
            "rule_title": getattr(self.rule, "title", ""),
            "regulation": str(getattr(self.rule, "regulation", "")),
            "category": str(getattr(self.rule, "category", "")),
            "requirement": str(getattr(self.rule, "requirement", "")),
            "current_status": str(self.current_status),
            "risk_level": str(self.risk_level),
            "action_required": self.action_required,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }

