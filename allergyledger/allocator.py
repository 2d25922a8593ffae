"""
Identifier allocator.

A single counter lives in the record store under ``COUNTER_KEY``.  Each
allocation returns the stored value and writes the increment through the
same store, so when called inside the creating operation's transaction the
increment commits or rolls back together with the new record.
"""

from __future__ import annotations

from allergyledger.store import COUNTER_KEY, RecordStore

MAX_RECORD_ID = 2**64 - 1


class IdentifierAllocator:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def peek(self) -> int:
        """Return the id the next allocation would issue, without allocating."""
        return self._store.get(COUNTER_KEY, 0)

    def next_id(self) -> int:
        """Allocate and return the next record id.

        Raises:
            OverflowError: If the counter would exceed the u64 range.
        """
        current = self.peek()
        if current > MAX_RECORD_ID:
            raise OverflowError("Record identifier space exhausted.")
        self._store.set(COUNTER_KEY, current + 1)
        return current
