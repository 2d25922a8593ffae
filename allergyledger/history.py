"""
Severity history tracker and resolution.

This module owns the per-record state machine:

    ACTIVE --(apply_update)--> ACTIVE
    ACTIVE --(resolve)-------> RESOLVED

``RESOLVED`` is terminal.  Severity changes are recorded as immutable
``SeverityUpdate`` entries appended to the record's history tuple; there is
no operation that edits or removes an existing entry.

Both functions mutate the record they are given.  The engine hands them a
private copy loaded from the store and writes it back inside the same
transaction, so a raised error never leaves a half-updated record behind.
"""

from __future__ import annotations

from typing import Union

from allergyledger.errors import AlreadyResolvedError
from allergyledger.models import AllergyRecord, AllergyStatus, Severity, SeverityUpdate
from allergyledger.validation import validate_not_future, validate_severity


# ---------------------------------------------------------------------------
# Valid state transitions
# ---------------------------------------------------------------------------

_VALID_TRANSITIONS: dict[AllergyStatus, set[AllergyStatus]] = {
    AllergyStatus.ACTIVE: {AllergyStatus.ACTIVE, AllergyStatus.RESOLVED},
    AllergyStatus.RESOLVED: set(),  # terminal state
}


def _validate_transition(record: AllergyRecord, target: AllergyStatus) -> None:
    if target not in _VALID_TRANSITIONS.get(record.status, set()):
        raise AlreadyResolvedError(
            f"Allergy record {record.record_id} is {record.status.value}; "
            f"cannot transition to {target.value}."
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def apply_update(
    record: AllergyRecord,
    new_severity: Union[str, Severity],
    actor_id: str,
    reason: str,
    now: int,
) -> SeverityUpdate:
    """Change the record's severity and append the change to its history.

    The current tier becomes the entry's ``previous_severity``.  Setting the
    same tier again is a valid update and is still recorded.

    Args:
        record: The record to update (mutated in place).
        new_severity: Target tier.
        actor_id: Actor performing the update.
        reason: Free-text clinical reason.
        now: Current logical time.

    Returns:
        The appended ``SeverityUpdate``.

    Raises:
        InvalidSeverityError: If ``new_severity`` is not a known tier.
        AlreadyResolvedError: If the record is resolved.
    """
    severity = validate_severity(new_severity)
    _validate_transition(record, AllergyStatus.ACTIVE)

    update = SeverityUpdate(
        previous_severity=record.severity,
        new_severity=severity,
        updated_by=actor_id,
        updated_at=now,
        reason=reason,
    )
    record.severity = severity
    record.severity_history = record.severity_history + (update,)
    return update


def resolve(
    record: AllergyRecord,
    actor_id: str,
    resolution_time: int,
    reason: str,
    now: int,
) -> None:
    """Move the record to the terminal ``RESOLVED`` state.

    Raises:
        InvalidDateError: If ``resolution_time`` is later than ``now``.
        AlreadyResolvedError: If the record is already resolved.
    """
    validate_not_future(resolution_time, now)
    _validate_transition(record, AllergyStatus.RESOLVED)

    record.status = AllergyStatus.RESOLVED
    record.resolved_at = resolution_time
    record.resolution_reason = reason
    record.resolved_by = actor_id
