"""
Field-level conflict detection for concurrent edits of organization records.

Classifies each differing field by its semantics:

  identity fields   high severity, never auto-resolved
  contact fields    low severity, take the incoming value
  address fields    medium severity, take the incoming value
  numeric fields    medium severity, "prefer_larger" or "prefer_latest"
  one side null     medium severity, take the non-null value
  anything else     medium severity, manual

Response shape::

    {
        "has_conflicts": true,
        "suggested_action": "manual_review",
        "conflicts": [{"field": "name", "severity": "high", ...}],
        "merged": {"phone": "...", ...}
    }
"""

from dataclasses import dataclass, field
from decimal import Decimal

IGNORED_FIELDS = {"id", "created_at", "updated_at", "version"}
IDENTITY_FIELDS = {"name", "abn", "employer_type", "role_category", "enterprise_agreement_status"}
CONTACT_FIELDS = {"phone", "email", "website"}
ADDRESS_FIELDS = {"address", "suburb", "state", "postcode"}
NUMERIC_FIELDS = {"estimated_worker_count"}

NUMERIC_STRATEGIES = ("prefer_larger", "prefer_latest")


@dataclass
class FieldConflict:
    field: str
    current_value: object
    incoming_value: object
    severity: str             # "low" | "medium" | "high"
    auto_resolvable: bool
    strategy: str             # "prefer_latest" | "prefer_larger" | "merge_safe" | "manual"
    resolved_value: object = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "current_value": self.current_value,
            "incoming_value": self.incoming_value,
            "severity": self.severity,
            "auto_resolvable": self.auto_resolvable,
            "strategy": self.strategy,
            "resolved_value": self.resolved_value,
        }


@dataclass
class ConflictReport:
    conflicts: list[FieldConflict] = field(default_factory=list)
    merged: dict = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def suggested_action(self) -> str:
        if not self.conflicts:
            return "none"
        if any(c.severity == "high" for c in self.conflicts):
            return "manual_review"
        if all(c.auto_resolvable for c in self.conflicts):
            return "auto_merge"
        return "partial_merge"

    def to_dict(self) -> dict:
        return {
            "has_conflicts": self.has_conflicts,
            "suggested_action": self.suggested_action,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "merged": self.merged,
        }


def _is_number(value) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def classify_field(name: str, current, incoming, numeric_strategy: str = "prefer_larger") -> FieldConflict:
    if current is None or incoming is None:
        return FieldConflict(
            name, current, incoming, "medium", True, "merge_safe",
            resolved_value=incoming if current is None else current,
        )
    if name in IDENTITY_FIELDS:
        return FieldConflict(name, current, incoming, "high", False, "manual")
    if name in CONTACT_FIELDS:
        return FieldConflict(name, current, incoming, "low", True, "prefer_latest", resolved_value=incoming)
    if name in ADDRESS_FIELDS:
        return FieldConflict(name, current, incoming, "medium", True, "prefer_latest", resolved_value=incoming)
    if name in NUMERIC_FIELDS or (_is_number(current) and _is_number(incoming)):
        if numeric_strategy == "prefer_larger":
            resolved = max(current, incoming)
        else:
            resolved = incoming
        return FieldConflict(name, current, incoming, "medium", True, numeric_strategy, resolved_value=resolved)
    return FieldConflict(name, current, incoming, "medium", False, "manual")


def detect_conflicts(current: dict, incoming: dict, numeric_strategy: str = "prefer_larger") -> ConflictReport:
    """Compare a stored record with an incoming edit.

    Only fields present in ``incoming`` are considered. ``merged`` holds the
    auto-resolved values; manual conflicts are left out of it.
    """
    if numeric_strategy not in NUMERIC_STRATEGIES:
        raise ValueError(f"numeric_strategy must be one of {NUMERIC_STRATEGIES}")

    report = ConflictReport()
    for name, incoming_value in incoming.items():
        if name in IGNORED_FIELDS:
            continue
        current_value = current.get(name)
        if current_value == incoming_value:
            continue
        conflict = classify_field(name, current_value, incoming_value, numeric_strategy)
        report.conflicts.append(conflict)
        if conflict.auto_resolvable:
            report.merged[name] = conflict.resolved_value
    return report
