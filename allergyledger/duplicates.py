"""Duplicate suppression for new allergy records."""

from __future__ import annotations

from typing import Iterable

from allergyledger.models import AllergenClass, AllergyRecord


def has_active_duplicate(
    records: Iterable[AllergyRecord],
    allergen_name: str,
    allergen_class: AllergenClass,
) -> bool:
    """Return True if an *active* record matches name and class exactly.

    Resolved records never count: a re-occurrence after resolution is a new
    clinical event and gets its own record.
    """
    return any(
        record.is_active
        and record.allergen_name == allergen_name
        and record.allergen_class == allergen_class
        for record in records
    )
