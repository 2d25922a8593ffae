"""
Tests for allergyledger.store and allergyledger.allocator.

Covers: commit on clean exit, rollback on exception, writes rejected
outside a transaction, nested transaction rejection, copy isolation of
stored values, and identifier allocation (monotonic, rolled back with its
transaction, bounded by the u64 range).
"""

import pytest

from allergyledger.allocator import MAX_RECORD_ID, IdentifierAllocator
from allergyledger.store import (
    COUNTER_KEY,
    InMemoryRecordStore,
    StoreTransactionError,
    access_grant_key,
    record_key,
    subject_records_key,
)


# ---------------------------------------------------------------------------
# 1. Transactions
# ---------------------------------------------------------------------------

class TestTransactions:
    def test_commit_on_clean_exit(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(record_key(0), "value")
        assert store.get(record_key(0)) == "value"
        assert len(store) == 1

    def test_rollback_on_exception(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(record_key(0), "original")

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.set(record_key(0), "overwritten")
                store.set(record_key(1), "new")
                raise RuntimeError("boom")

        assert store.get(record_key(0)) == "original"
        assert store.has(record_key(1)) is False
        assert store.in_transaction is False

    def test_reads_inside_transaction_see_staged_writes(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(subject_records_key("p1"), [0])
            assert store.get(subject_records_key("p1")) == [0]

    def test_remove_is_staged(self):
        store = InMemoryRecordStore()
        key = access_grant_key("p1", "dr_1")
        with store.transaction():
            store.set(key, True)

        with pytest.raises(ValueError):
            with store.transaction():
                store.remove(key)
                assert store.has(key) is False
                raise ValueError("abort")
        assert store.has(key) is True

        with store.transaction():
            store.remove(key)
        assert key not in store

    def test_write_outside_transaction_rejected(self):
        store = InMemoryRecordStore()
        with pytest.raises(StoreTransactionError):
            store.set(record_key(0), "value")
        with pytest.raises(StoreTransactionError):
            store.remove(record_key(0))

    def test_nested_transaction_rejected(self):
        store = InMemoryRecordStore()
        with store.transaction():
            with pytest.raises(StoreTransactionError):
                with store.transaction():
                    pass


# ---------------------------------------------------------------------------
# 2. Copy isolation
# ---------------------------------------------------------------------------

class TestCopyIsolation:
    def test_mutating_read_value_does_not_change_store(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(subject_records_key("p1"), [0, 1])

        ids = store.get(subject_records_key("p1"))
        ids.append(99)
        assert store.get(subject_records_key("p1")) == [0, 1]

    def test_mutating_written_value_does_not_change_store(self):
        store = InMemoryRecordStore()
        ids = [0]
        with store.transaction():
            store.set(subject_records_key("p1"), ids)
        ids.append(1)
        assert store.get(subject_records_key("p1")) == [0]

    def test_missing_key_returns_default(self):
        store = InMemoryRecordStore()
        assert store.get(record_key(7)) is None
        assert store.get(subject_records_key("nobody"), []) == []


# ---------------------------------------------------------------------------
# 3. Identifier allocator
# ---------------------------------------------------------------------------

class TestIdentifierAllocator:
    def test_ids_start_at_zero_and_increase(self):
        store = InMemoryRecordStore()
        allocator = IdentifierAllocator(store)
        with store.transaction():
            ids = [allocator.next_id() for _ in range(5)]
        assert ids == [0, 1, 2, 3, 4]
        assert store.get(COUNTER_KEY) == 5

    def test_allocation_rolls_back_with_transaction(self):
        store = InMemoryRecordStore()
        allocator = IdentifierAllocator(store)
        with store.transaction():
            allocator.next_id()

        with pytest.raises(RuntimeError):
            with store.transaction():
                allocator.next_id()
                raise RuntimeError("creation failed")

        assert allocator.peek() == 1
        with store.transaction():
            assert allocator.next_id() == 1

    def test_counter_exhaustion_raises(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(COUNTER_KEY, MAX_RECORD_ID + 1)
        allocator = IdentifierAllocator(store)
        with pytest.raises(OverflowError):
            with store.transaction():
                allocator.next_id()

    def test_last_representable_id_is_issued(self):
        store = InMemoryRecordStore()
        with store.transaction():
            store.set(COUNTER_KEY, MAX_RECORD_ID)
        allocator = IdentifierAllocator(store)
        with store.transaction():
            assert allocator.next_id() == MAX_RECORD_ID
