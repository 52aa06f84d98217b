"""
Pytest fixtures for the QMX kernel test suite.

Provides:
- Structured logging configured once per session, with a capture fixture
- A deterministic clock pinned to 2024-01-01 12:00 UTC (a Monday)
- Managers backed by an in-memory repository or a throwaway SQLite file
- Builders for common students and payment plans
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from io import StringIO

import pytest

from qmx_config.schema import ManagerConfig
from qmx_kernel.db.engine import create_engine_from_url, create_tables, drop_tables
from qmx_kernel.db.snapshot_repository import SqlSnapshotRepository
from qmx_kernel.domain.builders import CashBuilder, StudentBuilder
from qmx_kernel.domain.clock import DeterministicClock
from qmx_kernel.domain.values import ClassTier, PaymentFrequency, Subject
from qmx_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from qmx_kernel.services.manager import QmxManager
from qmx_kernel.services.persistence import InMemorySnapshotRepository

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture qmx_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, manager):
            manager.create_student(StudentBuilder("Alice", 10))
            logs = captured_logs()
            assert any(r["message"] == "student_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("qmx_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and managers
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def repository() -> InMemorySnapshotRepository:
    return InMemorySnapshotRepository()


@pytest.fixture
def manager_config() -> ManagerConfig:
    return ManagerConfig(lock_timeout_seconds=2.0)


@pytest.fixture
def manager(repository, clock, manager_config) -> QmxManager:
    return QmxManager(repository, clock=clock, config=manager_config)


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def sql_repository(sqlite_engine) -> SqlSnapshotRepository:
    return SqlSnapshotRepository(sqlite_engine)


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def alice_builder() -> StudentBuilder:
    return (
        StudentBuilder("Alice", 10)
        .class_tier(ClassTier.MONTHLY)
        .subject(Subject.SHOOTING)
        .phone("13800000000")
    )


@pytest.fixture
def plan_builder():
    """Factory for the opening record of a payment plan."""

    def _make(
        total_amount: int = 1200,
        total_installments: int = 12,
        student_id: int | None = None,
        due_date: datetime | None = None,
        frequency: PaymentFrequency | None = None,
    ) -> CashBuilder:
        builder = CashBuilder(total_amount // total_installments).installment_plan(
            total_amount=total_amount,
            total_installments=total_installments,
            due_date=due_date or FIXED_NOW + timedelta(days=30),
            frequency=frequency,
        )
        if student_id is not None:
            builder.student_id(student_id)
        return builder

    return _make
