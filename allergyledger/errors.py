"""
Typed failures raised by the record engine.

Every public operation either commits completely or raises one of these
before anything is written.  ``code`` is a stable identifier callers can
map onto their own transport (RPC status, CLI exit message, ...).
"""

from __future__ import annotations


class AllergyLedgerError(Exception):
    """Base class for all engine failures."""

    code = "Error"


class NotFoundError(AllergyLedgerError, KeyError):
    """Raised when a record id is unknown."""

    code = "NotFound"

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return Exception.__str__(self)


class UnauthorizedError(AllergyLedgerError):
    """Raised when the identity layer has not authenticated the caller."""

    code = "Unauthorized"


class AccessDeniedError(AllergyLedgerError, PermissionError):
    """Raised when an authenticated requester lacks access to a subject."""

    code = "AccessDenied"


class InvalidAllergenClassError(AllergyLedgerError, ValueError):
    code = "InvalidAllergenClass"


class InvalidSeverityError(AllergyLedgerError, ValueError):
    code = "InvalidSeverity"


class InvalidDateError(AllergyLedgerError, ValueError):
    """Raised for timestamps later than the current logical clock."""

    code = "InvalidDate"


class DuplicateRecordError(AllergyLedgerError):
    """Raised when an active record for the same allergen already exists."""

    code = "DuplicateRecord"


class AlreadyResolvedError(AllergyLedgerError):
    """Raised when a mutation targets a record in the terminal state."""

    code = "AlreadyResolved"


class AlreadyInitializedError(AllergyLedgerError):
    code = "AlreadyInitialized"


class InvalidReactionsError(AllergyLedgerError, ValueError):
    """Raised when reactions are not a sequence of text descriptors."""

    code = "InvalidReactions"
