"""
Interaction checker.

Cross-references a queried substance name against a subject's active
allergy records:

* **direct** -- the record's allergen name equals the queried term exactly;
* **cross-sensitivity** -- both names appear in the same group of the
  static cross-sensitivity table.

Each record yields at most one result, and a direct match wins over a
cross-sensitivity match.  Results follow the order in which the subject's
records were created.  No match is an empty list, never an error.
"""

from __future__ import annotations

from typing import Iterable, Optional

from allergyledger.config import CrossSensitivityGroup
from allergyledger.models import AllergenClass, AllergyRecord, InteractionResult, MatchKind


class CrossSensitivityTable:
    """Read-only lookup over a list of cross-sensitivity groups."""

    def __init__(self, groups: Iterable[CrossSensitivityGroup] = ()) -> None:
        self._groups: list[frozenset[str]] = []
        self._names: list[str] = []
        for group in groups:
            self._groups.append(frozenset(group.members))
            self._names.append(group.name)

    def groups_for(self, substance: str) -> list[str]:
        """Return the names of every group containing ``substance``."""
        return [
            name for name, members in zip(self._names, self._groups)
            if substance in members
        ]

    def are_cross_sensitive(self, first: str, second: str) -> bool:
        """True if ``first`` and ``second`` are distinct members of one group."""
        if first == second:
            return False
        return any(first in members and second in members for members in self._groups)

    def __len__(self) -> int:
        return len(self._groups)


def classify_match(
    record: AllergyRecord,
    queried_term: str,
    table: CrossSensitivityTable,
) -> Optional[MatchKind]:
    if record.allergen_name == queried_term:
        return MatchKind.DIRECT
    if table.are_cross_sensitive(record.allergen_name, queried_term):
        return MatchKind.CROSS_SENSITIVITY
    return None


def check_interactions(
    records: Iterable[AllergyRecord],
    queried_term: str,
    table: CrossSensitivityTable,
    allergen_classes: Optional[Iterable[AllergenClass]] = None,
) -> list[InteractionResult]:
    """Return one ``InteractionResult`` per matching active record.

    Args:
        records: The subject's records in creation order.  Resolved records
            are skipped.
        queried_term: Substance name to check, compared exactly.
        table: Cross-sensitivity lookup.
        allergen_classes: If given, only records of these classes are
            considered.

    Returns:
        Matches in record order; empty when nothing matches.
    """
    classes = set(allergen_classes) if allergen_classes is not None else None
    results: list[InteractionResult] = []
    for record in records:
        if not record.is_active:
            continue
        if classes is not None and record.allergen_class not in classes:
            continue
        kind = classify_match(record, queried_term, table)
        if kind is None:
            continue
        results.append(InteractionResult(
            record_id=record.record_id,
            allergen_name=record.allergen_name,
            severity=record.severity,
            reactions=tuple(record.reactions),
            match_kind=kind,
        ))
    return results
