"""Summary of a merchant's mapped data-collection points."""

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

# Retention longer than seven years is flagged as excessive
EXCESSIVE_RETENTION_DAYS = 2555

# Checked in order; the first keyword contained in the legal basis wins
_LEGAL_BASIS_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("consent", "consent"),
    ("contract", "contract"),
    ("legal", "legal_obligation"),
    ("vital", "vital_interests"),
    ("public", "public_task"),
    ("legitimate", "legitimate_interests"),
)


@dataclass
class CategorizedData:
    personal: int = 0
    sensitive: int = 0
    marketing: int = 0
    analytics: int = 0


@dataclass
class LegalBasisCoverage:
    consent: int = 0
    contract: int = 0
    legal_obligation: int = 0
    vital_interests: int = 0
    public_task: int = 0
    legitimate_interests: int = 0


@dataclass
class RetentionCompliance:
    defined: int = 0
    undefined: int = 0
    excessive: int = 0


@dataclass
class DataMappingSummary:
    """Counts describing what data a merchant collects and on what terms."""

    total_data_points: int = 0
    categorized_data: CategorizedData = field(default_factory=CategorizedData)
    legal_basis_coverage: LegalBasisCoverage = field(default_factory=LegalBasisCoverage)
    retention_compliance: RetentionCompliance = field(default_factory=RetentionCompliance)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize_data_mapping(data_points: Sequence[Any]) -> DataMappingSummary:
    """Bucket data-collection points by category, legal basis and retention.

    Args:
        data_points: Objects with data_categories, purpose, legal_basis and
            retention_period attributes.

    Returns:
        DataMappingSummary. An empty input yields all-zero counts.
    """
    summary = DataMappingSummary(total_data_points=len(data_points))

    for point in data_points:
        categories = point.data_categories or []
        purpose = (point.purpose or "").lower()

        if any("email" in category or "name" in category for category in categories):
            summary.categorized_data.personal += 1
        if any("sensitive" in category for category in categories):
            summary.categorized_data.sensitive += 1
        if "marketing" in purpose:
            summary.categorized_data.marketing += 1
        if "analytics" in purpose:
            summary.categorized_data.analytics += 1

        if point.legal_basis:
            basis = point.legal_basis.lower()
            for keyword, bucket in _LEGAL_BASIS_KEYWORDS:
                if keyword in basis:
                    coverage = summary.legal_basis_coverage
                    setattr(coverage, bucket, getattr(coverage, bucket) + 1)
                    break

        if not point.retention_period:
            summary.retention_compliance.undefined += 1
        elif point.retention_period > EXCESSIVE_RETENTION_DAYS:
            summary.retention_compliance.excessive += 1
        else:
            summary.retention_compliance.defined += 1

    return summary
