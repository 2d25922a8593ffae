"""
Record store key space and the in-memory reference store.

The durable storage substrate is external.  The engine only defines the
keys it reads and writes and the shape of the values behind them:

    counter                         -> int
    admin                           -> identity
    record[id]                      -> AllergyRecord
    subject_records[subject]        -> list of record ids, insertion order
    access_grant[(subject, actor)]  -> True (presence flag)

Every mutating engine operation runs inside ``store.transaction()``.  The
in-memory store stages writes made inside the block and commits them only
when the block exits without raising, so a failed operation leaves the
store exactly as it was.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Hashable, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key space
# ---------------------------------------------------------------------------

COUNTER_KEY: tuple = ("counter",)
ADMIN_KEY: tuple = ("admin",)


def record_key(record_id: int) -> tuple:
    return ("record", record_id)


def subject_records_key(subject_id: str) -> tuple:
    return ("subject_records", subject_id)


def access_grant_key(subject_id: str, actor_id: str) -> tuple:
    return ("access_grant", subject_id, actor_id)


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------

class RecordStore(Protocol):
    def get(self, key: Hashable, default: Any = None) -> Any: ...

    def set(self, key: Hashable, value: Any) -> None: ...

    def has(self, key: Hashable) -> bool: ...

    def remove(self, key: Hashable) -> None: ...

    def transaction(self) -> Any: ...


class StoreTransactionError(RuntimeError):
    """Raised when transactions are nested or writes happen outside one."""
    pass


_DELETED = object()


class InMemoryRecordStore:
    """Dictionary-backed store with all-or-nothing transactions.

    Values are deep-copied on the way in and on the way out, so neither the
    engine nor its callers can change stored state without going through
    ``set``.  Writes are only accepted inside ``transaction()``.
    """

    def __init__(self) -> None:
        self._data: dict[Hashable, Any] = {}
        self._pending: Optional[dict[Hashable, Any]] = None

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRecordStore"]:
        """Stage writes for the duration of the block.

        Commits on clean exit.  Any exception discards every staged write
        and is re-raised unchanged.
        """
        if self._pending is not None:
            raise StoreTransactionError("Nested transactions are not supported.")
        self._pending = {}
        try:
            yield self
        except BaseException:
            discarded = len(self._pending)
            self._pending = None
            if discarded:
                logger.debug("Rolled back %d staged write(s)", discarded)
            raise
        pending, self._pending = self._pending, None
        for key, value in pending.items():
            if value is _DELETED:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    @property
    def in_transaction(self) -> bool:
        return self._pending is not None

    def _lookup(self, key: Hashable) -> Any:
        if self._pending is not None and key in self._pending:
            return self._pending[key]
        return self._data.get(key, _DELETED)

    def get(self, key: Hashable, default: Any = None) -> Any:
        value = self._lookup(key)
        if value is _DELETED:
            return default
        return copy.deepcopy(value)

    def has(self, key: Hashable) -> bool:
        return self._lookup(key) is not _DELETED

    def set(self, key: Hashable, value: Any) -> None:
        if self._pending is None:
            raise StoreTransactionError("Writes must happen inside a transaction.")
        self._pending[key] = copy.deepcopy(value)

    def remove(self, key: Hashable) -> None:
        if self._pending is None:
            raise StoreTransactionError("Writes must happen inside a transaction.")
        self._pending[key] = _DELETED

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)
