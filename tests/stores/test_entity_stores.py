"""
Tests for the keyed entity stores.

These tests verify:
- Ids start at 1, increase monotonically and are never reused
- A failed build does not consume an id
- A failed update leaves the stored entity untouched
- Export/restore round-trips contents and the id counter
"""

from datetime import datetime, timedelta, timezone

import pytest

from qmx_kernel.domain.builders import CashBuilder, StudentBuilder, StudentUpdater
from qmx_kernel.domain.clock import DeterministicClock
from qmx_kernel.exceptions import (
    CashNotFoundError,
    MissingFieldError,
    ScoreIndexError,
    StudentNotFoundError,
)
from qmx_kernel.stores import CashStore, StoreState, StudentStore

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestIdAssignment:
    def test_ids_start_at_one(self):
        store = StudentStore()
        assert store.insert(StudentBuilder("Alice", 10)) == 1
        assert store.insert(StudentBuilder("Bob", 11)) == 2
        assert store.next_id == 3

    def test_deleted_ids_are_not_reused(self):
        store = StudentStore()
        store.insert(StudentBuilder("Alice", 10))
        store.insert(StudentBuilder("Bob", 11))
        assert store.delete(2)
        assert store.insert(StudentBuilder("Carol", 12)) == 3
        assert 2 not in store

    def test_failed_build_does_not_consume_an_id(self):
        store = StudentStore()
        with pytest.raises(MissingFieldError):
            store.insert(StudentBuilder("Alice"))
        assert len(store) == 0
        assert store.insert(StudentBuilder("Alice", 10)) == 1


class TestReadsAndWrites:
    def test_require_raises_typed_not_found(self):
        with pytest.raises(StudentNotFoundError) as exc_info:
            StudentStore().require(4)
        assert exc_info.value.student_id == 4
        with pytest.raises(CashNotFoundError):
            CashStore().require(4)

    def test_get_returns_none_for_missing(self):
        assert StudentStore().get(1) is None

    def test_delete_missing_returns_false(self):
        assert StudentStore().delete(1) is False

    def test_failed_update_leaves_entity_untouched(self):
        store = StudentStore()
        store.insert(StudentBuilder("Alice", 10).rings([9.0]))
        before = store.require(1)
        with pytest.raises(ScoreIndexError):
            store.update(1, StudentUpdater().age(11).remove_ring_at(3))
        assert store.require(1) is before

    def test_iteration_in_insertion_order(self):
        store = StudentStore()
        for name in ("Alice", "Bob", "Carol"):
            store.insert(StudentBuilder(name, 10))
        assert [entity_id for entity_id, _ in store] == [1, 2, 3]
        assert [s.name for s in store.values()] == ["Alice", "Bob", "Carol"]


class TestCashStore:
    def test_created_at_comes_from_clock(self):
        clock = DeterministicClock(NOW)
        store = CashStore(clock)
        store.insert(CashBuilder(100))
        clock.advance(days=1)
        store.insert(CashBuilder(-50))
        assert store.require(1).created_at == NOW
        assert store.require(2).created_at == NOW + timedelta(days=1)

    def test_for_student(self):
        store = CashStore(DeterministicClock(NOW))
        store.insert(CashBuilder(100).student_id(1))
        store.insert(CashBuilder(200).student_id(2))
        store.insert(CashBuilder(300).student_id(1))
        assert [c.amount for c in store.for_student(1)] == [100, 300]


class TestExportRestore:
    def test_round_trip_keeps_counter(self):
        store = StudentStore()
        store.insert(StudentBuilder("Alice", 10))
        store.insert(StudentBuilder("Bob", 11))
        store.delete(2)
        state = store.export()

        fresh = StudentStore()
        fresh.restore(state)
        assert len(fresh) == 1
        assert fresh.insert(StudentBuilder("Carol", 12)) == 3

    def test_restore_refuses_counter_that_would_reissue(self):
        store = StudentStore()
        store.insert(StudentBuilder("Alice", 10))
        entities = store.export().entities
        with pytest.raises(ValueError):
            StudentStore().restore(StoreState(entities, 1))
