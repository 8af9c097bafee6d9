"""Alert lifecycle rules and statistics."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from merchant_compliance_engine.core.enums import AlertStatus, AlertType, Severity
from merchant_compliance_engine.errors import InvalidStateError

# Forward-only: nothing ever returns to ACTIVE, terminal states have no exits
ALERT_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset(
        {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.DISMISSED}
    ),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.DISMISSED: frozenset(),
}


def check_transition(current: str, target: AlertStatus) -> None:
    """Raise InvalidStateError unless current -> target is a forward transition."""
    allowed = ALERT_TRANSITIONS.get(AlertStatus(current), frozenset())
    if target not in allowed:
        raise InvalidStateError(
            f"Alert cannot move from {current} to {target}",
            current_state=str(current),
        )


@dataclass
class AlertStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=lambda: {str(s): 0 for s in AlertStatus})
    by_severity: dict[str, int] = field(default_factory=lambda: {str(s): 0 for s in Severity})
    by_type: dict[str, int] = field(default_factory=lambda: {str(t): 0 for t in AlertType})
    active_by_severity: dict[str, int] = field(default_factory=lambda: {str(s): 0 for s in Severity})

    @property
    def active(self) -> int:
        return self.by_status[AlertStatus.ACTIVE]


def alert_stats(alerts: Sequence[Any]) -> AlertStats:
    stats = AlertStats(total=len(alerts))
    for alert in alerts:
        stats.by_status[str(alert.status)] = stats.by_status.get(str(alert.status), 0) + 1
        stats.by_severity[str(alert.severity)] = stats.by_severity.get(str(alert.severity), 0) + 1
        stats.by_type[str(alert.type)] = stats.by_type.get(str(alert.type), 0) + 1
        if alert.status == AlertStatus.ACTIVE:
            stats.active_by_severity[str(alert.severity)] += 1
    return stats
