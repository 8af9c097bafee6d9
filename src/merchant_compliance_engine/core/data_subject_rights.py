"""Data-subject request policy: priority, deadline, exports and statistics."""

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from merchant_compliance_engine.core.enums import RequestPriority, RequestStatus, RequestType

ERASURE_RESPONSE_DAYS = 15
DEFAULT_RESPONSE_DAYS = 30

# Records that must survive an erasure request
LEGALLY_RETAINED_RECORDS: tuple[str, ...] = (
    "Tax records (7 years)",
    "Fraud prevention data (5 years)",
)


def request_priority(request_type: str) -> RequestPriority:
    match request_type:
        case RequestType.ERASURE | RequestType.RESTRICTION:
            return RequestPriority.HIGH
        case RequestType.RECTIFICATION | RequestType.OBJECTION:
            return RequestPriority.LOW
        case _:
            return RequestPriority.NORMAL


def request_deadline(request_type: str, now: datetime | None = None) -> datetime:
    """Erasure requests are due in 15 days, everything else in 30."""
    reference = now or datetime.now(UTC)
    days = ERASURE_RESPONSE_DAYS if request_type == RequestType.ERASURE else DEFAULT_RESPONSE_DAYS
    return reference + timedelta(days=days)


def build_access_export(request: Any, data_points: Sequence[Any], now: datetime | None = None) -> dict[str, Any]:
    """Describe what the merchant holds about a data subject.

    The description is derived from the merchant's mapped data-collection
    points: which categories are collected, for which purposes, on which legal
    basis and for how long.
    """
    categories: dict[str, None] = {}
    purposes: dict[str, None] = {}
    bases: dict[str, None] = {}
    retention: dict[str, str] = {}
    for point in data_points:
        for category in point.data_categories or []:
            categories.setdefault(category, None)
        if point.purpose:
            purposes.setdefault(point.purpose, None)
        if point.legal_basis:
            bases.setdefault(point.legal_basis, None)
        retention[point.collection_type] = (
            f"{point.retention_period} days" if point.retention_period else "undefined"
        )

    return {
        "personal_data": {
            "email": request.customer_email,
            "customer_id": request.customer_id,
        },
        "data_categories": list(categories),
        "processing_purposes": list(purposes),
        "legal_basis": list(bases),
        "retention_periods": retention,
        "exported_at": (now or datetime.now(UTC)).isoformat(),
    }


def build_erasure_report(data_points: Sequence[Any], now: datetime | None = None) -> dict[str, Any]:
    return {
        "erased_categories": sorted({c for point in data_points for c in point.data_categories or []}),
        "retained_records": {"legally_required": list(LEGALLY_RETAINED_RECORDS)},
        "deletion_date": (now or datetime.now(UTC)).isoformat(),
    }


def build_portable_document(request: Any, export: dict[str, Any]) -> dict[str, Any]:
    return {
        "data_subject": {
            "email": request.customer_email,
            "customer_id": request.customer_id,
        },
        "export_date": export["exported_at"],
        "data": export["personal_data"],
        "metadata": {
            "data_categories": export["data_categories"],
            "processing_purposes": export["processing_purposes"],
            "legal_basis": export["legal_basis"],
        },
    }


@dataclass
class RequestStatistics:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    average_processing_seconds: float = 0.0
    overdue_requests: int = 0


def request_statistics(requests: Sequence[Any], now: datetime | None = None) -> RequestStatistics:
    """Counts by status and type, overdue count and mean processing time.

    A request is overdue when its deadline has passed and it is not completed.
    """
    reference = now or datetime.now(UTC)
    stats = RequestStatistics(
        total=len(requests),
        by_status=dict(Counter(str(request.status) for request in requests)),
        by_type=dict(Counter(str(request.request_type) for request in requests)),
    )
    stats.overdue_requests = sum(
        1
        for request in requests
        if request.deadline is not None
        and request.deadline < reference
        and request.status != RequestStatus.COMPLETED
    )

    durations = [
        (request.completed_at - request.created_at).total_seconds()
        for request in requests
        if request.completed_at is not None
    ]
    if durations:
        stats.average_processing_seconds = sum(durations) / len(durations)
    return stats
