"""
Tests for the SQLAlchemy snapshot repository.

These tests verify:
- An empty database loads as "nothing saved yet"
- Students, cash records, installments and counters survive a reload
- Timestamps come back timezone-aware
- A manager reopened on the same database never reissues an id
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import StatementError

from qmx_kernel.db.base import UTCDateTime
from qmx_kernel.db.engine import create_engine_from_url, create_tables, drop_tables
from qmx_kernel.db.snapshot_repository import SqlSnapshotRepository
from qmx_kernel.domain.builders import CashBuilder, StudentBuilder
from qmx_kernel.domain.snapshot import LedgerSnapshot
from qmx_kernel.domain.values import (
    ClassTier,
    InstallmentStatus,
    PaymentFrequency,
    Subject,
)
from qmx_kernel.services.manager import QmxManager

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def snapshot() -> LedgerSnapshot:
    alice = (
        StudentBuilder("Alice", 10)
        .class_tier(ClassTier.MONTHLY)
        .subject(Subject.ARCHERY)
        .phone("13800000000")
        .note("prefers mornings")
        .rings([9.5, 8.0])
        .lesson_left(6)
        .membership(NOW, NOW + timedelta(days=30))
        .build(1)
    )
    bob = StudentBuilder("Bob", 12).build(3)
    plain = CashBuilder(-250).note("arrows").build(1, NOW)
    plan = (
        CashBuilder(100)
        .student_id(1)
        .installment_plan(
            total_amount=1200,
            total_installments=12,
            due_date=NOW + timedelta(days=30),
            frequency=PaymentFrequency.custom(14),
            status=InstallmentStatus.OVERDUE,
        )
        .build(4, NOW)
    )
    return LedgerSnapshot(
        students=(alice, bob), cash=(plain, plan), next_student_id=5, next_cash_id=7
    )


class TestRoundTrip:
    def test_empty_database_loads_none(self, sql_repository):
        assert sql_repository.load() is None

    def test_save_then_load(self, sql_repository, snapshot):
        sql_repository.save(snapshot)
        assert sql_repository.load() == snapshot

    def test_counters_survive_even_without_entities(self, sql_repository):
        sql_repository.save(LedgerSnapshot(next_student_id=4, next_cash_id=9))
        loaded = sql_repository.load()
        assert loaded.next_student_id == 4
        assert loaded.next_cash_id == 9

    def test_timestamps_are_aware(self, sql_repository, snapshot):
        sql_repository.save(snapshot)
        loaded = sql_repository.load()
        assert loaded.cash[0].created_at.tzinfo is not None
        assert loaded.students[0].membership_end == NOW + timedelta(days=30)

    def test_save_replaces_previous_snapshot(self, sql_repository, snapshot):
        sql_repository.save(snapshot)
        smaller = LedgerSnapshot(
            students=snapshot.students[:1], next_student_id=5, next_cash_id=7
        )
        sql_repository.save(smaller)
        assert sql_repository.load() == smaller

    def test_repository_on_second_engine_sees_saved_data(self, tmp_path, snapshot):
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        first = create_engine_from_url(url)
        create_tables(first)
        SqlSnapshotRepository(first).save(snapshot)
        first.dispose()

        second = create_engine_from_url(url)
        try:
            assert SqlSnapshotRepository(second).load() == snapshot
        finally:
            second.dispose()


class TestSchema:
    def test_create_then_drop_tables(self, tmp_path):
        engine = create_engine_from_url(f"sqlite:///{tmp_path / 'schema.db'}")
        try:
            create_tables(engine)
            assert set(inspect(engine).get_table_names()) == {
                "students",
                "cash_records",
                "id_counters",
            }
            drop_tables(engine)
            assert inspect(engine).get_table_names() == []
        finally:
            engine.dispose()


class TestUTCDateTime:
    def test_naive_datetime_rejected_on_write(self, sql_repository):
        naive = CashBuilder(10).build(1, NOW)
        object.__setattr__(naive, "created_at", datetime(2024, 1, 1))
        with pytest.raises((StatementError, ValueError)):
            sql_repository.save(LedgerSnapshot(cash=(naive,), next_cash_id=2))
        assert sql_repository.load() is None

    def test_offset_datetimes_come_back_as_utc(self):
        plus_eight = timezone(timedelta(hours=8))
        decorator = UTCDateTime()
        stored = decorator.process_bind_param(datetime(2024, 1, 1, 8, tzinfo=plus_eight), None)
        assert stored == datetime(2024, 1, 1, 0, tzinfo=timezone.utc)
        assert decorator.process_result_value(datetime(2024, 1, 1), None).tzinfo is timezone.utc


class TestManagerOnDatabase:
    def test_reopened_manager_continues_counters(self, sqlite_engine, clock):
        first = QmxManager(SqlSnapshotRepository(sqlite_engine), clock=clock)
        first.create_student(StudentBuilder("Alice", 10))
        bob = first.create_student(StudentBuilder("Bob", 11))
        first.delete_student(bob.student_id)
        opening = first.record_cash(
            CashBuilder(100).installment_plan(
                total_amount=300, total_installments=3, due_date=NOW + timedelta(days=7)
            )
        )
        first.generate_next_installment(opening.installment.plan_id)

        second = QmxManager(SqlSnapshotRepository(sqlite_engine), clock=clock)
        assert [s.name for s in second.list_students()] == ["Alice"]
        assert second.create_student(StudentBuilder("Carol", 12)).student_id == 3
        third = second.generate_next_installment(opening.installment.plan_id)
        assert third.installment.current_installment == 3
        assert third.cash_id == 3
