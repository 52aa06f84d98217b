"""
Module: qmx_kernel.db.snapshot_repository
Responsibility: SQLAlchemy implementation of ``SnapshotRepository``.  Stores
    the whole ledger snapshot in three tables and reads it back.
Architecture position: Kernel > DB.  Implements the contract declared in
    services/persistence.py; the manager never imports this module.

Invariants enforced:
    - A save replaces the previous snapshot inside ONE transaction: either
      every row and counter of the new snapshot is committed, or the previous
      snapshot stays intact.
    - Rows are read back in id order, which is the stores' insertion order
      because ids are issued monotonically.

Failure modes:
    - sqlalchemy.exc.SQLAlchemyError on any database failure; the manager
      wraps it in PersistenceError / SnapshotLoadError.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from qmx_kernel.db.engine import session_scope
from qmx_kernel.db.models import (
    CASH_COUNTER,
    STUDENT_COUNTER,
    CashRow,
    IdCounterRow,
    StudentRow,
)
from qmx_kernel.domain.snapshot import LedgerSnapshot
from qmx_kernel.logging_config import get_logger

logger = get_logger("db.snapshot_repository")


class SqlSnapshotRepository:
    """
    Snapshot repository backed by a relational database.

    Contract:
        The caller creates the engine and the tables
        (``create_tables(engine)``) before the first load.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    def load(self) -> LedgerSnapshot | None:
        with session_scope(self._factory) as session:
            counters = {
                row.name: row.next_value
                for row in session.execute(select(IdCounterRow)).scalars()
            }
            students = tuple(
                row.to_entity()
                for row in session.execute(
                    select(StudentRow).order_by(StudentRow.student_id)
                ).scalars()
            )
            cash = tuple(
                row.to_entity()
                for row in session.execute(
                    select(CashRow).order_by(CashRow.cash_id)
                ).scalars()
            )

        if not counters and not students and not cash:
            logger.info("snapshot_empty")
            return None

        snapshot = LedgerSnapshot(
            students=students,
            cash=cash,
            next_student_id=counters.get(
                STUDENT_COUNTER, max((s.student_id for s in students), default=0) + 1
            ),
            next_cash_id=counters.get(
                CASH_COUNTER, max((c.cash_id for c in cash), default=0) + 1
            ),
        )
        logger.info(
            "snapshot_loaded",
            extra={"student_count": len(students), "cash_count": len(cash)},
        )
        return snapshot

    def save(self, snapshot: LedgerSnapshot) -> None:
        with session_scope(self._factory) as session:
            session.execute(delete(CashRow))
            session.execute(delete(StudentRow))
            session.execute(delete(IdCounterRow))
            session.add_all(StudentRow.from_entity(s) for s in snapshot.students)
            session.add_all(CashRow.from_entity(c) for c in snapshot.cash)
            session.add_all(
                [
                    IdCounterRow(name=STUDENT_COUNTER, next_value=snapshot.next_student_id),
                    IdCounterRow(name=CASH_COUNTER, next_value=snapshot.next_cash_id),
                ]
            )
        logger.debug(
            "snapshot_saved",
            extra={
                "student_count": len(snapshot.students),
                "cash_count": len(snapshot.cash),
            },
        )
