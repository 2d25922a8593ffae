"""
Capability-based access control for subject records.

Access is an explicit relation set keyed by ``(subject, actor)``.  Two
identities always have access without a grant and are checked before the
set lookup:

* the subject itself, for its own records;
* the administrator identity set once at engine initialisation.

Grants take effect immediately and revocation is immediate; there is no
grace period and no role hierarchy.
"""

from __future__ import annotations

from typing import Optional

from allergyledger.errors import AccessDeniedError
from allergyledger.store import ADMIN_KEY, RecordStore, access_grant_key


class AccessControlGuard:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def admin(self) -> Optional[str]:
        return self._store.get(ADMIN_KEY)

    def grant(self, subject_id: str, actor_id: str) -> bool:
        """Grant ``actor_id`` read access to ``subject_id``'s records.

        Idempotent.  Must run inside a store transaction.

        Returns:
            True if the grant is new, False if it already existed.
        """
        key = access_grant_key(subject_id, actor_id)
        if self._store.has(key):
            return False
        self._store.set(key, True)
        return True

    def revoke(self, subject_id: str, actor_id: str) -> bool:
        """Remove a grant.  Idempotent.

        Returns:
            True if a grant was removed, False if none existed.
        """
        key = access_grant_key(subject_id, actor_id)
        if not self._store.has(key):
            return False
        self._store.remove(key)
        return True

    def has_grant(self, subject_id: str, actor_id: str) -> bool:
        return self._store.has(access_grant_key(subject_id, actor_id))

    def check(self, subject_id: str, requester_id: str) -> bool:
        """Return True iff ``requester_id`` may read ``subject_id``'s records."""
        if requester_id == subject_id:
            return True
        admin = self.admin()
        if admin is not None and requester_id == admin:
            return True
        return self.has_grant(subject_id, requester_id)

    def require_access(self, subject_id: str, requester_id: str) -> None:
        """Enforce ``check``.

        Raises:
            AccessDeniedError: If the requester has no access.
        """
        if not self.check(subject_id, requester_id):
            raise AccessDeniedError(
                f"Identity '{requester_id}' has no access to records of "
                f"subject '{subject_id}'."
            )
