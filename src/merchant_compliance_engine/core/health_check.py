"""Compliance health check and monitoring metrics scoring.

Two separate formulas live here. evaluate_health() scores a single merchant
from audit staleness, request backlog, consent withdrawals and breaches.
score_monitoring_metrics() scores a merchant or the whole fleet from raw
backlog sizes and active alert counts. They are not interchangeable.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from merchant_compliance_engine.core.enums import Severity
from merchant_compliance_engine.core.scoring import clamp_score


@dataclass(frozen=True)
class HealthPenalties:
    audit_overdue: int = 20
    audit_due_soon: int = 10
    overdue_requests: int = 30
    high_pending_requests: int = 15
    consent_withdrawals: int = 15
    recent_breaches: int = 40


@dataclass(frozen=True)
class HealthThresholds:
    """Day and count limits the health check compares against."""

    audit_interval_days: int = 90
    audit_due_soon_days: int = 60
    pending_requests: int = 5
    consent_withdrawals: int = 10
    window_days: int = 30


@dataclass(frozen=True)
class MetricsPenalties:
    """Per-item deductions of the monitoring metrics score."""

    pending_request: int = 2
    withdrawn_consent: int = 1
    breach_incident: int = 10
    critical_alert: int = 15
    high_alert: int = 10
    medium_alert: int = 5
    low_alert: int = 1


HEALTH_PENALTIES = HealthPenalties()
HEALTH_THRESHOLDS = HealthThresholds()
METRICS_PENALTIES = MetricsPenalties()


@dataclass(frozen=True)
class HealthSignals:
    """Already-fetched state the health check is computed from.

    Attributes:
        last_audit_at: Creation time of the most recent audit, None if never audited.
        pending_requests: Pending data-subject requests.
        overdue_requests: Pending requests older than the response window.
        recent_withdrawals: Consent withdrawals in the trailing window.
        recent_breaches: Breach incidents in the trailing window.
    """

    last_audit_at: datetime | None = None
    pending_requests: int = 0
    overdue_requests: int = 0
    recent_withdrawals: int = 0
    recent_breaches: int = 0


@dataclass(frozen=True)
class HealthIssue:
    type: str
    severity: Severity
    description: str
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": str(self.severity),
            "description": self.description,
            "recommendation": self.recommendation,
        }


@dataclass
class HealthReport:
    merchant_id: Any
    overall_score: int
    issues: list[HealthIssue] = field(default_factory=list)
    last_audit_date: datetime | None = None
    next_audit_due: datetime | None = None


def _days_since(moment: datetime, now: datetime) -> float:
    return (now - moment) // timedelta(days=1)


def evaluate_health(
    merchant_id: Any,
    signals: HealthSignals,
    now: datetime | None = None,
    penalties: HealthPenalties = HEALTH_PENALTIES,
    thresholds: HealthThresholds = HEALTH_THRESHOLDS,
) -> HealthReport:
    """Score a merchant's compliance health.

    Starts at 100 and subtracts each triggered penalty independently. The
    result is clamped at zero once at the end.

    Args:
        merchant_id: Merchant being checked.
        signals: Pre-fetched counts and the last audit time.
        now: Reference time. Defaults to the current UTC time.
        penalties: Penalty table to use.
        thresholds: Day and count limits.

    Returns:
        HealthReport. A never-audited merchant is treated as overdue and its
        next audit is due immediately.
    """
    reference = now or datetime.now(UTC)
    issues: list[HealthIssue] = []
    score = 100

    days = (
        _days_since(signals.last_audit_at, reference)
        if signals.last_audit_at is not None
        else float("inf")
    )
    if days > thresholds.audit_interval_days:
        issues.append(
            HealthIssue(
                type="audit_overdue",
                severity=Severity.HIGH,
                description="Compliance audit is overdue",
                recommendation="Schedule and complete a compliance audit immediately",
            )
        )
        score -= penalties.audit_overdue
    elif days > thresholds.audit_due_soon_days:
        issues.append(
            HealthIssue(
                type="audit_due_soon",
                severity=Severity.MEDIUM,
                description="Compliance audit due soon",
                recommendation="Schedule a compliance audit within the next 30 days",
            )
        )
        score -= penalties.audit_due_soon

    if signals.pending_requests > 0:
        if signals.overdue_requests > 0:
            issues.append(
                HealthIssue(
                    type="overdue_dsr",
                    severity=Severity.CRITICAL,
                    description=f"{signals.overdue_requests} data subject requests are overdue",
                    recommendation="Process overdue data subject requests immediately",
                )
            )
            score -= penalties.overdue_requests
        elif signals.pending_requests > thresholds.pending_requests:
            issues.append(
                HealthIssue(
                    type="high_pending_dsr",
                    severity=Severity.HIGH,
                    description=f"{signals.pending_requests} pending data subject requests",
                    recommendation="Review and process pending requests",
                )
            )
            score -= penalties.high_pending_requests

    if signals.recent_withdrawals > thresholds.consent_withdrawals:
        issues.append(
            HealthIssue(
                type="high_consent_withdrawals",
                severity=Severity.MEDIUM,
                description=(
                    f"{signals.recent_withdrawals} consent withdrawals "
                    f"in the last {thresholds.window_days} days"
                ),
                recommendation="Review consent collection practices and user experience",
            )
        )
        score -= penalties.consent_withdrawals

    if signals.recent_breaches > 0:
        issues.append(
            HealthIssue(
                type="recent_breaches",
                severity=Severity.CRITICAL,
                description=(
                    f"{signals.recent_breaches} breach incidents "
                    f"in the last {thresholds.window_days} days"
                ),
                recommendation=(
                    "Review breach response procedures and implement additional security measures"
                ),
            )
        )
        score -= penalties.recent_breaches

    next_audit_due = (
        signals.last_audit_at + timedelta(days=thresholds.audit_interval_days)
        if signals.last_audit_at is not None
        else reference
    )

    return HealthReport(
        merchant_id=merchant_id,
        overall_score=max(0, score),
        issues=issues,
        last_audit_date=signals.last_audit_at,
        next_audit_due=next_audit_due,
    )


def score_monitoring_metrics(
    pending_requests: int,
    withdrawn_consents: int,
    breach_incidents: int,
    alerts_by_severity: dict[str, int],
    penalties: MetricsPenalties = METRICS_PENALTIES,
) -> int:
    """Backlog and alert based score, clamped to [0, 100].

    Args:
        pending_requests: Pending data-subject requests.
        withdrawn_consents: Consent withdrawals in the monitoring window.
        breach_incidents: Breach incidents in the monitoring window.
        alerts_by_severity: Alert counts keyed by severity value.
        penalties: Per-item deductions.

    Returns:
        The score.
    """
    score = 100
    score -= pending_requests * penalties.pending_request
    score -= withdrawn_consents * penalties.withdrawn_consent
    score -= breach_incidents * penalties.breach_incident
    score -= alerts_by_severity.get(Severity.CRITICAL, 0) * penalties.critical_alert
    score -= alerts_by_severity.get(Severity.HIGH, 0) * penalties.high_alert
    score -= alerts_by_severity.get(Severity.MEDIUM, 0) * penalties.medium_alert
    score -= alerts_by_severity.get(Severity.LOW, 0) * penalties.low_alert
    return clamp_score(score)
