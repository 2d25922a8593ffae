"""
Core data models for the AllergyLedger record engine.

Records are created once and then only move through the transitions the
engine allows: severity updates while ``ACTIVE``, and a single, terminal
resolution.  Every mutation is attributed to an actor and stamped with the
logical ledger clock.

Identities (subjects, actors, the administrator) are opaque strings.  The
engine never interprets them beyond equality.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AllergenClass(str, enum.Enum):
    """Closed vocabulary of allergen classes."""

    MEDICATION = "medication"
    FOOD = "food"
    ENVIRONMENTAL = "environmental"


class Severity(str, enum.Enum):
    """Severity tiers, listed from least to most severe."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


class AllergyStatus(str, enum.Enum):
    """Lifecycle states for an allergy record.

    ``RESOLVED`` is terminal: no transition leaves it.
    """

    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"


class MatchKind(str, enum.Enum):
    """How a queried term matched an active allergy record."""

    DIRECT = "direct"
    CROSS_SENSITIVITY = "cross-sensitivity"


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

class SeverityUpdate(BaseModel):
    """One entry of a record's severity audit trail.  Immutable once built."""

    model_config = ConfigDict(frozen=True)

    previous_severity: Severity = Field(
        ...,
        description="Tier the record held immediately before this update.",
    )
    new_severity: Severity = Field(
        ...,
        description="Tier the record holds after this update.",
    )
    updated_by: str = Field(
        ...,
        description="Actor who performed the update.",
    )
    updated_at: int = Field(
        ...,
        ge=0,
        description="Logical clock value at the time of the update.",
    )
    reason: str = Field(
        default="",
        description="Free-text clinical reason for the change.",
    )


class RecordAllergyRequest(BaseModel):
    """Clinical payload for recording a new allergy.

    Vocabulary fields are accepted as raw strings here; the engine's
    validator converts them into ``AllergenClass`` / ``Severity`` before
    anything is written.
    """

    allergen_name: str = Field(
        ...,
        description="Free-text allergen name, compared exactly (case-sensitive).",
    )
    allergen_class: str = Field(
        ...,
        description="One of 'medication', 'food', 'environmental'.",
    )
    reactions: list[str] = Field(
        default_factory=list,
        description="Reaction descriptors in the order they were reported.",
    )
    severity: str = Field(
        ...,
        description="One of 'mild', 'moderate', 'severe', 'critical'.",
    )
    onset_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Optional logical time the reaction first occurred.",
    )
    verified: bool = Field(
        default=False,
        description="Whether the allergy has been clinically verified.",
    )


class AllergyRecord(BaseModel):
    """A single allergy record owned by one subject.

    ``record_id``, ``subject_id``, ``recorded_by`` and ``recorded_at`` are
    fixed at creation.  ``severity_history`` only ever grows by one entry
    per successful severity update.
    """

    record_id: int = Field(
        ...,
        ge=0,
        description="Allocator-issued identifier; never reused.",
    )
    subject_id: str = Field(
        ...,
        description="The patient this record belongs to.",
    )
    recorded_by: str = Field(
        ...,
        description="Actor who created the record.",
    )
    allergen_name: str = Field(...)
    allergen_class: AllergenClass = Field(...)
    reactions: list[str] = Field(default_factory=list)
    severity: Severity = Field(
        ...,
        description="Current severity tier.",
    )
    onset_time: Optional[int] = Field(default=None, ge=0)
    recorded_at: int = Field(
        ...,
        ge=0,
        description="Logical clock value at creation.",
    )
    verified: bool = Field(default=False)
    status: AllergyStatus = Field(
        default=AllergyStatus.ACTIVE,
        description="Current lifecycle state.",
    )
    resolved_at: Optional[int] = Field(
        default=None,
        ge=0,
        description="Logical time the allergy was resolved, if resolved.",
    )
    resolution_reason: Optional[str] = Field(default=None)
    resolved_by: Optional[str] = Field(
        default=None,
        description="Actor who resolved the record.",
    )
    severity_history: tuple[SeverityUpdate, ...] = Field(
        default_factory=tuple,
        description="Append-only trail of severity changes, oldest first.",
    )

    @property
    def is_active(self) -> bool:
        return self.status == AllergyStatus.ACTIVE


class InteractionResult(BaseModel):
    """A derived, non-persisted match between a queried term and a record."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    allergen_name: str
    severity: Severity
    reactions: tuple[str, ...] = Field(default_factory=tuple)
    match_kind: MatchKind
