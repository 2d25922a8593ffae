"""
Append-Only, Tamper-Evident Audit Trail (Hash-Chained).

Every committed mutation of the record engine -- initialisation, allergy
recording, severity updates, resolutions, access grants and revocations --
is appended here as a structured entry.  Entries are linked via a SHA-256
hash chain: if any entry is modified after the fact, ``verify_chain()``
reports the first broken link.

Entries are appended only after the store transaction has committed, so a
rejected operation never shows up in the trail.
"""

from __future__ import annotations

import enum
import hashlib
import json
import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Audit event types
# ---------------------------------------------------------------------------

class AuditEventType(str, enum.Enum):
    ENGINE_INITIALIZED = "ENGINE_INITIALIZED"
    ALLERGY_RECORDED = "ALLERGY_RECORDED"
    SEVERITY_UPDATED = "SEVERITY_UPDATED"
    ALLERGY_RESOLVED = "ALLERGY_RESOLVED"
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_REVOKED = "ACCESS_REVOKED"


# ---------------------------------------------------------------------------
# Audit entry model
# ---------------------------------------------------------------------------

class AuditEntry(BaseModel):
    """A single audit entry: who did what to which subject, and when."""

    entry_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier for this audit entry (UUID).",
    )
    timestamp: int = Field(
        ...,
        ge=0,
        description="Logical clock value when the mutation committed.",
    )
    subject_id: str = Field(
        default="",
        description="Subject whose records were affected.  Empty for engine-level events.",
    )
    actor_id: str = Field(
        ...,
        description="Authenticated identity that performed the mutation.",
    )
    event_type: AuditEventType = Field(...)
    target_entity: str = Field(
        default="",
        description="Record id or grantee identity the event concerns.",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    previous_hash: str = Field(
        default="",
        description=(
            "SHA-256 hash of the previous entry's canonical representation. "
            "Empty string for the first entry in the chain."
        ),
    )

    def canonical_bytes(self) -> bytes:
        """Deterministic byte representation used for hashing."""
        data = {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp,
            "subject_id": self.subject_id,
            "actor_id": self.actor_id,
            "event_type": self.event_type.value,
            "target_entity": self.target_entity,
            "metadata": self.metadata,
            "previous_hash": self.previous_hash,
        }
        return json.dumps(data, sort_keys=True, default=str).encode("utf-8")

    def compute_hash(self) -> str:
        return hashlib.sha256(self.canonical_bytes()).hexdigest()


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

class AuditLog:
    """Append-only audit log with SHA-256 hash chaining.

    There are no ``update()`` or ``delete()`` methods.  ``query()`` returns
    deep copies, so callers cannot alter stored entries through results.
    """

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._hashes: list[str] = []  # parallel list of computed hashes

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Link ``entry`` to the current chain head and append it.

        Returns:
            The entry with ``previous_hash`` populated.
        """
        entry.previous_hash = self._hashes[-1] if self._hashes else ""
        self._entries.append(entry)
        self._hashes.append(entry.compute_hash())
        return entry

    def verify_chain(self) -> tuple[bool, Optional[int]]:
        """Walk the log and validate every hash link.

        Returns:
            ``(valid, broken_at)`` where ``broken_at`` is the index of the
            first broken link, or None when the chain is intact.
        """
        for i, entry in enumerate(self._entries):
            if i == 0:
                if entry.previous_hash != "":
                    return (False, 0)
            elif entry.previous_hash != self._entries[i - 1].compute_hash():
                return (False, i)

            if self._hashes[i] != entry.compute_hash():
                return (False, i)

        return (True, None)

    def query(
        self,
        subject_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        time_start: Optional[int] = None,
        time_end: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> list[AuditEntry]:
        """Return copies of the entries matching every given filter.

        Time bounds are inclusive.
        """
        results = []
        for entry in self._entries:
            if subject_id is not None and entry.subject_id != subject_id:
                continue
            if event_type is not None and entry.event_type != event_type:
                continue
            if time_start is not None and entry.timestamp < time_start:
                continue
            if time_end is not None and entry.timestamp > time_end:
                continue
            if actor_id is not None and entry.actor_id != actor_id:
                continue
            results.append(entry.model_copy(deep=True))
        return results

    def __len__(self) -> int:
        return len(self._entries)
