"""Bundled regulatory rule definitions.

Rule definitions ship as YAML files, one per regulation, inside the package's
catalog directory. They are parsed into RuleDefinition objects and used to
seed an empty rule table.
"""

from datetime import date
from pathlib import Path
from typing import Any

import yaml

from merchant_compliance_engine.core.enums import Regulation, RequirementLevel, RuleCategory
from merchant_compliance_engine.observability import get_logger

logger = get_logger(__name__)

_CATALOG_DIR = Path(__file__).parent.parent / "catalog"


class RuleDefinition:
    """Parsed representation of a single catalog rule.

    Args:
        regulation: Regulation the rule belongs to.
        data: Raw YAML-parsed dict for the rule.
    """

    def __init__(self, regulation: str, data: dict[str, Any]) -> None:
        self.regulation = Regulation(regulation)
        self.category = RuleCategory(data["category"])
        self.title: str = data["title"]
        self.description: str = data.get("description", "").strip()
        self.legal_reference: str = data["legal_reference"]
        self.requirement = RequirementLevel(data.get("requirement", RequirementLevel.MANDATORY))
        self.implementation_guidance: dict[str, Any] = data.get("implementation_guidance", {})
        self.applicability_conditions: dict[str, Any] = data.get("applicability_conditions", {})
        self.penalties: dict[str, Any] = data.get("penalties", {})
        effective = data.get("effective_date")
        self.effective_date: date | None = (
            effective if isinstance(effective, date) or effective is None else date.fromisoformat(str(effective))
        )

    def to_model_fields(self) -> dict[str, Any]:
        """Column values for a RegulatoryRule row."""
        return {
            "regulation": self.regulation,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "legal_reference": self.legal_reference,
            "requirement": self.requirement,
            "implementation_guidance": self.implementation_guidance,
            "applicability_conditions": self.applicability_conditions,
            "penalties": self.penalties,
            "effective_date": self.effective_date,
            "is_active": True,
        }


def load_rule_definitions(catalog_dir: Path = _CATALOG_DIR) -> list[RuleDefinition]:
    """Load every rule from the *.yaml files in catalog_dir.

    Files that fail to parse are logged and skipped.

    Args:
        catalog_dir: Directory containing one YAML file per regulation.

    Returns:
        Rule definitions in file order, then rule order within each file.
    """
    if not catalog_dir.exists():
        logger.warning("Rule catalog directory not found, no rules loaded", catalog_dir=str(catalog_dir))
        return []

    definitions: list[RuleDefinition] = []
    for yaml_file in sorted(catalog_dir.glob("*.yaml")):
        try:
            raw = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
            parsed = [RuleDefinition(raw["regulation"], rule) for rule in raw.get("rules", [])]
        except (yaml.YAMLError, KeyError, ValueError, TypeError) as exc:
            logger.error("Failed to load rule catalog file", yaml_file=str(yaml_file), error=str(exc))
            continue
        definitions.extend(parsed)
        logger.debug("Loaded rule catalog file", yaml_file=yaml_file.name, rule_count=len(parsed))

    logger.info("Rule catalog loaded", count=len(definitions))
    return definitions
