"""
Tests for allergyledger.duplicates -- active-duplicate detection.
"""

from allergyledger.duplicates import has_active_duplicate
from allergyledger.models import AllergenClass, AllergyRecord, AllergyStatus, Severity


def _make_record(
    record_id: int = 0,
    allergen_name: str = "Penicillin",
    allergen_class: AllergenClass = AllergenClass.MEDICATION,
    status: AllergyStatus = AllergyStatus.ACTIVE,
) -> AllergyRecord:
    return AllergyRecord(
        record_id=record_id,
        subject_id="patient_1",
        recorded_by="dr_smith",
        allergen_name=allergen_name,
        allergen_class=allergen_class,
        severity=Severity.MODERATE,
        recorded_at=0,
        status=status,
    )


class TestDuplicateGuard:
    def test_empty_collection_has_no_duplicate(self):
        assert has_active_duplicate([], "Penicillin", AllergenClass.MEDICATION) is False

    def test_active_exact_match_is_duplicate(self):
        records = [_make_record()]
        assert has_active_duplicate(records, "Penicillin", AllergenClass.MEDICATION) is True

    def test_resolved_match_is_not_duplicate(self):
        records = [_make_record(status=AllergyStatus.RESOLVED)]
        assert has_active_duplicate(records, "Penicillin", AllergenClass.MEDICATION) is False

    def test_different_class_is_not_duplicate(self):
        records = [_make_record(allergen_name="Egg", allergen_class=AllergenClass.FOOD)]
        assert has_active_duplicate(records, "Egg", AllergenClass.MEDICATION) is False

    def test_name_comparison_is_case_sensitive(self):
        records = [_make_record()]
        assert has_active_duplicate(records, "penicillin", AllergenClass.MEDICATION) is False

    def test_one_resolved_one_active_is_duplicate(self):
        records = [
            _make_record(record_id=0, status=AllergyStatus.RESOLVED),
            _make_record(record_id=1),
        ]
        assert has_active_duplicate(records, "Penicillin", AllergenClass.MEDICATION) is True
