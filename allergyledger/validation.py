"""
Vocabulary and temporal validators.

Pure functions with no side effects.  Each one either returns the value in
its closed, typed form or raises the matching engine error, so nothing
downstream ever handles a raw vocabulary string.
"""

from __future__ import annotations

from typing import Iterable, Union

from allergyledger.errors import (
    InvalidAllergenClassError,
    InvalidDateError,
    InvalidReactionsError,
    InvalidSeverityError,
)
from allergyledger.models import AllergenClass, Severity


def validate_allergen_class(value: Union[str, AllergenClass]) -> AllergenClass:
    """Return ``value`` as an ``AllergenClass``.

    Matching is exact: ``"Medication"`` and ``"med"`` are rejected.

    Raises:
        InvalidAllergenClassError: If ``value`` is outside the closed set.
    """
    if isinstance(value, AllergenClass):
        return value
    try:
        return AllergenClass(value)
    except ValueError:
        allowed = [c.value for c in AllergenClass]
        raise InvalidAllergenClassError(
            f"Invalid allergen class {value!r}; expected one of {allowed}."
        ) from None


def validate_severity(value: Union[str, Severity]) -> Severity:
    """Return ``value`` as a ``Severity``.

    Raises:
        InvalidSeverityError: If ``value`` is outside the closed set.
    """
    if isinstance(value, Severity):
        return value
    try:
        return Severity(value)
    except ValueError:
        allowed = [s.value for s in Severity]
        raise InvalidSeverityError(
            f"Invalid severity {value!r}; expected one of {allowed}."
        ) from None


def validate_reactions(reactions: Iterable[str]) -> list[str]:
    """Return ``reactions`` as a list of descriptors, order preserved.

    A bare string is rejected rather than split into characters.

    Raises:
        InvalidReactionsError: If ``reactions`` is a string, is not
            iterable, or holds anything other than strings.
    """
    if isinstance(reactions, (str, bytes)):
        raise InvalidReactionsError(
            f"Reactions must be a sequence of descriptors, got a single string {reactions!r}."
        )
    try:
        descriptors = list(reactions)
    except TypeError:
        raise InvalidReactionsError(
            f"Reactions must be a sequence of descriptors, got {type(reactions).__name__}."
        ) from None
    for item in descriptors:
        if not isinstance(item, str):
            raise InvalidReactionsError(
                f"Reaction descriptors must be strings, got {item!r}."
            )
    return descriptors


def validate_timestamp(timestamp: int) -> None:
    """Reject negative logical timestamps.

    Raises:
        InvalidDateError: If ``timestamp`` is not a non-negative integer.
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
        raise InvalidDateError(f"Timestamp must be a non-negative integer, got {timestamp!r}.")


def validate_not_future(timestamp: int, now: int) -> None:
    """Reject timestamps later than the current logical clock.

    ``timestamp == now`` is accepted.

    Raises:
        InvalidDateError: If ``timestamp > now`` or ``timestamp`` is negative.
    """
    if timestamp < 0:
        raise InvalidDateError(f"Timestamp must be non-negative, got {timestamp}.")
    if timestamp > now:
        raise InvalidDateError(
            f"Timestamp {timestamp} is in the future (current logical time {now})."
        )
