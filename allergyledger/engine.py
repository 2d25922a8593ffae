"""
Allergy Record Engine -- the public operation surface.

Every operation composes the subsystems in the same fixed order:

    authenticate caller -> validate inputs -> access check (reads)
    -> duplicate / state precondition (writes) -> mutate -> return

All input validation and precondition checks run before the store
transaction opens, and every write of an operation happens inside a single
``store.transaction()``.  A failure therefore commits nothing: the record,
the subject's record list, and the identifier counter are written together
or not at all.

**Concurrency:**  the engine holds no locks.  It relies on the surrounding
ledger to run one operation at a time.  An embedding without that
guarantee must serialise each mutating call per subject around the whole
read-modify-write sequence.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from allergyledger import history
from allergyledger.access import AccessControlGuard
from allergyledger.allocator import IdentifierAllocator
from allergyledger.audit import AuditEntry, AuditEventType, AuditLog
from allergyledger.config import DEFAULT_CONFIG, EngineConfig
from allergyledger.duplicates import has_active_duplicate
from allergyledger.errors import (
    AlreadyInitializedError,
    AlreadyResolvedError,
    DuplicateRecordError,
    NotFoundError,
)
from allergyledger.identity import Clock, IdentityProvider
from allergyledger.interactions import CrossSensitivityTable, check_interactions
from allergyledger.models import (
    AllergenClass,
    AllergyRecord,
    AllergyStatus,
    InteractionResult,
    RecordAllergyRequest,
    Severity,
    SeverityUpdate,
)
from allergyledger.store import (
    ADMIN_KEY,
    COUNTER_KEY,
    InMemoryRecordStore,
    RecordStore,
    record_key,
    subject_records_key,
)
from allergyledger.validation import (
    validate_allergen_class,
    validate_not_future,
    validate_reactions,
    validate_severity,
    validate_timestamp,
)

logger = logging.getLogger(__name__)


class AllergyRecordEngine:
    """Record lifecycle engine for patient allergies.

    Args:
        identity: Verifies that the calling identity is authenticated.
        clock: Supplies the current logical timestamp.
        store: Key-addressed state store.  A fresh in-memory store is used
            when omitted.
        config: Cross-sensitivity table and interaction scope.
        audit_log: Receives one entry per committed mutation.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        clock: Clock,
        store: Optional[RecordStore] = None,
        config: Optional[EngineConfig] = None,
        audit_log: Optional[AuditLog] = None,
    ) -> None:
        self._identity = identity
        self._clock = clock
        self._store = store if store is not None else InMemoryRecordStore()
        self._config = config if config is not None else DEFAULT_CONFIG
        self._audit_log = audit_log if audit_log is not None else AuditLog()
        self._access = AccessControlGuard(self._store)
        self._allocator = IdentifierAllocator(self._store)
        self._cross_sensitivity = CrossSensitivityTable(
            self._config.cross_sensitivity_groups
        )

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def config(self) -> EngineConfig:
        return self._config

    # -- helpers --

    def _emit_audit(
        self,
        event_type: AuditEventType,
        actor_id: str,
        subject_id: str = "",
        target_entity: str = "",
        metadata: dict | None = None,
    ) -> None:
        self._audit_log.append(AuditEntry(
            timestamp=self._clock.now(),
            subject_id=subject_id,
            actor_id=actor_id,
            event_type=event_type,
            target_entity=target_entity,
            metadata=metadata or {},
        ))

    def _load_record(self, record_id: int) -> AllergyRecord:
        record = self._store.get(record_key(record_id))
        if record is None:
            logger.warning("Allergy record %s not found", record_id)
            raise NotFoundError(f"Allergy record {record_id} does not exist.")
        return record

    def _load_subject_records(self, subject_id: str) -> list[AllergyRecord]:
        """Return the subject's records in creation order."""
        record_ids: list[int] = self._store.get(subject_records_key(subject_id), [])
        records = []
        for record_id in record_ids:
            record = self._store.get(record_key(record_id))
            if record is not None:
                records.append(record)
        return records

    # -- initialisation --

    def initialize(self, admin_id: str) -> None:
        """Set the administrator identity.  Allowed exactly once.

        Raises:
            UnauthorizedError: If ``admin_id`` is not authenticated.
            AlreadyInitializedError: On any second call.
        """
        self._identity.require_auth(admin_id)
        if self._store.has(ADMIN_KEY):
            logger.warning("Rejected re-initialisation attempt by %s", admin_id)
            raise AlreadyInitializedError("Engine has already been initialised.")

        with self._store.transaction():
            self._store.set(ADMIN_KEY, admin_id)
            if not self._store.has(COUNTER_KEY):
                self._store.set(COUNTER_KEY, 0)

        self._emit_audit(AuditEventType.ENGINE_INITIALIZED, actor_id=admin_id)
        logger.info("Engine initialised with administrator %s", admin_id)

    def admin(self) -> Optional[str]:
        """Return the administrator identity, or None before initialisation."""
        return self._access.admin()

    # -- writes --

    def record_allergy(
        self,
        subject_id: str,
        actor_id: str,
        allergen_name: str,
        allergen_class: Union[str, AllergenClass],
        reactions: Iterable[str],
        severity: Union[str, Severity],
        onset_time: Optional[int] = None,
        verified: bool = False,
    ) -> int:
        """Create a new, ``ACTIVE`` allergy record for ``subject_id``.

        Returns:
            The allocated record id.

        Raises:
            UnauthorizedError: If ``actor_id`` is not authenticated.
            InvalidAllergenClassError: If ``allergen_class`` is unknown.
            InvalidSeverityError: If ``severity`` is unknown.
            InvalidReactionsError: If ``reactions`` is a bare string or holds
                non-string descriptors.
            InvalidDateError: If ``onset_time`` is negative.
            DuplicateRecordError: If the subject already has an active record
                with the same allergen name and class.
        """
        self._identity.require_auth(actor_id)
        allergen_class = validate_allergen_class(allergen_class)
        severity = validate_severity(severity)
        reactions = validate_reactions(reactions)
        if onset_time is not None:
            validate_timestamp(onset_time)

        existing = self._load_subject_records(subject_id)
        if has_active_duplicate(existing, allergen_name, allergen_class):
            logger.warning(
                "Duplicate %s allergy rejected for subject %s",
                allergen_class.value, subject_id,
            )
            raise DuplicateRecordError(
                f"Subject '{subject_id}' already has an active "
                f"{allergen_class.value} allergy to {allergen_name!r}."
            )

        now = self._clock.now()
        with self._store.transaction():
            record_id = self._allocator.next_id()
            record = AllergyRecord(
                record_id=record_id,
                subject_id=subject_id,
                recorded_by=actor_id,
                allergen_name=allergen_name,
                allergen_class=allergen_class,
                reactions=reactions,
                severity=severity,
                onset_time=onset_time,
                recorded_at=now,
                verified=verified,
            )
            self._store.set(record_key(record_id), record)
            record_ids = self._store.get(subject_records_key(subject_id), [])
            record_ids.append(record_id)
            self._store.set(subject_records_key(subject_id), record_ids)

        self._emit_audit(
            AuditEventType.ALLERGY_RECORDED,
            actor_id=actor_id,
            subject_id=subject_id,
            target_entity=str(record_id),
            metadata={
                "allergen_class": allergen_class.value,
                "severity": severity.value,
                "verified": verified,
            },
        )
        logger.info("Recorded allergy %d for subject %s by %s", record_id, subject_id, actor_id)
        return record_id

    def submit(
        self,
        subject_id: str,
        actor_id: str,
        request: RecordAllergyRequest,
    ) -> int:
        """``record_allergy`` taking a bundled ``RecordAllergyRequest``."""
        return self.record_allergy(
            subject_id,
            actor_id,
            allergen_name=request.allergen_name,
            allergen_class=request.allergen_class,
            reactions=request.reactions,
            severity=request.severity,
            onset_time=request.onset_time,
            verified=request.verified,
        )

    def update_severity(
        self,
        record_id: int,
        actor_id: str,
        new_severity: Union[str, Severity],
        reason: str,
    ) -> None:
        """Change a record's severity and append the change to its history.

        Raises:
            UnauthorizedError: If ``actor_id`` is not authenticated.
            InvalidSeverityError: If ``new_severity`` is unknown.
            NotFoundError: If ``record_id`` does not exist.
            AlreadyResolvedError: If the record is resolved.
        """
        self._identity.require_auth(actor_id)
        new_severity = validate_severity(new_severity)
        record = self._load_record(record_id)

        now = self._clock.now()
        try:
            with self._store.transaction():
                update = history.apply_update(record, new_severity, actor_id, reason, now)
                self._store.set(record_key(record_id), record)
        except AlreadyResolvedError:
            logger.warning("Severity update rejected: allergy %d is resolved", record_id)
            raise

        self._emit_audit(
            AuditEventType.SEVERITY_UPDATED,
            actor_id=actor_id,
            subject_id=record.subject_id,
            target_entity=str(record_id),
            metadata={
                "previous_severity": update.previous_severity.value,
                "new_severity": update.new_severity.value,
                "history_length": len(record.severity_history),
            },
        )
        logger.info(
            "Allergy %d severity %s -> %s by %s",
            record_id, update.previous_severity.value, update.new_severity.value, actor_id,
        )

    def resolve(
        self,
        record_id: int,
        actor_id: str,
        resolution_time: int,
        reason: str,
    ) -> None:
        """Mark a record as resolved.  Irreversible.

        Raises:
            UnauthorizedError: If ``actor_id`` is not authenticated.
            InvalidDateError: If ``resolution_time`` is in the future.
            NotFoundError: If ``record_id`` does not exist.
            AlreadyResolvedError: If the record is already resolved.
        """
        self._identity.require_auth(actor_id)
        now = self._clock.now()
        validate_not_future(resolution_time, now)
        record = self._load_record(record_id)

        try:
            with self._store.transaction():
                history.resolve(record, actor_id, resolution_time, reason, now)
                self._store.set(record_key(record_id), record)
        except AlreadyResolvedError:
            logger.warning("Resolution rejected: allergy %d is already resolved", record_id)
            raise

        self._emit_audit(
            AuditEventType.ALLERGY_RESOLVED,
            actor_id=actor_id,
            subject_id=record.subject_id,
            target_entity=str(record_id),
            metadata={"resolved_at": resolution_time},
        )
        logger.info("Allergy %d resolved by %s", record_id, actor_id)

    # -- access control --

    def grant_access(self, subject_id: str, actor_id: str) -> None:
        """Let ``actor_id`` read ``subject_id``'s records.  Idempotent.

        Only the subject itself may grant.

        Raises:
            UnauthorizedError: If ``subject_id`` is not authenticated.
        """
        self._identity.require_auth(subject_id)
        with self._store.transaction():
            created = self._access.grant(subject_id, actor_id)

        self._emit_audit(
            AuditEventType.ACCESS_GRANTED,
            actor_id=subject_id,
            subject_id=subject_id,
            target_entity=actor_id,
            metadata={"changed": created},
        )
        logger.info("Subject %s granted access to %s", subject_id, actor_id)

    def revoke_access(self, subject_id: str, actor_id: str) -> None:
        """Withdraw a grant.  Idempotent and immediately effective.

        Raises:
            UnauthorizedError: If ``subject_id`` is not authenticated.
        """
        self._identity.require_auth(subject_id)
        with self._store.transaction():
            removed = self._access.revoke(subject_id, actor_id)

        self._emit_audit(
            AuditEventType.ACCESS_REVOKED,
            actor_id=subject_id,
            subject_id=subject_id,
            target_entity=actor_id,
            metadata={"changed": removed},
        )
        logger.info("Subject %s revoked access from %s", subject_id, actor_id)

    def has_access(self, subject_id: str, requester_id: str) -> bool:
        """Return whether ``requester_id`` may read ``subject_id``'s records.

        Raises:
            UnauthorizedError: If ``requester_id`` is not authenticated.
        """
        self._identity.require_auth(requester_id)
        return self._access.check(subject_id, requester_id)

    # -- reads --

    def check_interaction(
        self, subject_id: str, queried_term: str
    ) -> list[InteractionResult]:
        """Check ``queried_term`` against the subject's active records.

        Returns an empty list when nothing matches.
        """
        records = self._load_subject_records(subject_id)
        results = check_interactions(
            records,
            queried_term,
            self._cross_sensitivity,
            allergen_classes=self._config.interaction_classes,
        )
        logger.debug(
            "Interaction check for subject %s returned %d match(es)",
            subject_id, len(results),
        )
        return results

    def _read_subject(self, subject_id: str, requester_id: str) -> list[AllergyRecord]:
        self._identity.require_auth(requester_id)
        try:
            self._access.require_access(subject_id, requester_id)
        except PermissionError:
            logger.warning("Access denied: %s reading subject %s", requester_id, subject_id)
            raise
        logger.debug("Subject %s records read by %s", subject_id, requester_id)
        return self._load_subject_records(subject_id)

    def get_active_records(
        self, subject_id: str, requester_id: str
    ) -> list[AllergyRecord]:
        """Return the subject's ``ACTIVE`` records in creation order.

        Raises:
            UnauthorizedError: If ``requester_id`` is not authenticated.
            AccessDeniedError: If the requester has no access.
        """
        return [
            r for r in self._read_subject(subject_id, requester_id)
            if r.status == AllergyStatus.ACTIVE
        ]

    def get_all_records(
        self, subject_id: str, requester_id: str
    ) -> list[AllergyRecord]:
        """Return every record of the subject, active and resolved."""
        return self._read_subject(subject_id, requester_id)

    def get_record(self, record_id: int, requester_id: str) -> AllergyRecord:
        """Return one record.

        Existence is checked before access, so an unknown id is
        ``NotFoundError`` for every caller.

        Raises:
            UnauthorizedError: If ``requester_id`` is not authenticated.
            NotFoundError: If ``record_id`` does not exist.
            AccessDeniedError: If the requester has no access to its subject.
        """
        self._identity.require_auth(requester_id)
        record = self._load_record(record_id)
        try:
            self._access.require_access(record.subject_id, requester_id)
        except PermissionError:
            logger.warning("Access denied: %s reading allergy %d", requester_id, record_id)
            raise
        return record

    def get_severity_history(
        self, record_id: int, requester_id: str
    ) -> tuple[SeverityUpdate, ...]:
        """Return a record's severity history, oldest entry first."""
        return self.get_record(record_id, requester_id).severity_history
