"""
QmxManager -- the single coordination point over both stores.

Responsibility:
    Owns one ``StudentStore`` and one ``CashStore`` and exposes every student,
    cash, installment and statistics operation as an atomic call.  Each
    mutation is validated, applied under the state lock, persisted through the
    injected ``SnapshotRepository`` and answered with a fresh read of the
    affected entity.

Architecture position:
    Kernel > Services -- imperative shell.  The only component that holds a
    lock or talks to the persistence collaborator.  Constructed once at
    process start (see ``qmx_kernel.bootstrap``) and injected into every
    entry point of the command layer; there is no module-level instance.

Invariants enforced:
    - At most one operation runs at a time across BOTH stores (one coarse
      lock), so installment generation and plan cancellation never scan a
      half-applied write.
    - All-or-nothing: if a mutation raises, the stores are restored to the
      state captured just before it.
    - Memory never diverges from disk: if saving fails after a mutation, the
      stores are restored to the last durably saved snapshot and
      PersistenceError is raised.
    - Lock acquisition is bounded by ``lock_timeout_seconds``; a timeout is
      surfaced as LockAcquisitionError and never retried silently.

Failure modes:
    - ValidationError before the lock is taken (malformed ids, builders,
      timestamps, ranges).
    - NotFoundError / DomainConflictError from the stores and the
      installment subsystem; state is left untouched.
    - LockAcquisitionError, PersistenceError (StateError).
    - SnapshotLoadError from the constructor when the repository cannot load.

Audit relevance:
    Every committed mutation logs an INFO event (``student_created``,
    ``installment_generated``, ``installment_plan_cancelled``...) with the
    affected ids; rejected operations log WARNING with the error code; state
    failures log ERROR with the traceback.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, TypeVar

from qmx_config.schema import ManagerConfig
from qmx_kernel.domain import installments, statistics
from qmx_kernel.domain.builders import (
    CashBuilder,
    CashUpdater,
    StudentBuilder,
    StudentUpdater,
)
from qmx_kernel.domain.cash import Cash
from qmx_kernel.domain.clock import Clock, SystemClock
from qmx_kernel.domain.queries import CashQuery, StudentQuery
from qmx_kernel.domain.snapshot import LedgerSnapshot
from qmx_kernel.domain.student import Student
from qmx_kernel.domain.validation import (
    validate_days,
    validate_entity_id,
    validate_plan_id,
    validate_timestamp,
)
from qmx_kernel.domain.values import (
    InstallmentStatus,
    MembershipPlan,
    TimePeriod,
)
from qmx_kernel.exceptions import (
    DomainConflictError,
    InvalidFieldError,
    LockAcquisitionError,
    NothingToCancelError,
    NotAnInstallmentError,
    NotFoundError,
    PersistenceError,
    SnapshotLoadError,
    ValidationError,
)
from qmx_kernel.logging_config import LogContext, get_logger
from qmx_kernel.services.persistence import SnapshotRepository
from qmx_kernel.stores.base import StoreState
from qmx_kernel.stores.cash_store import CashStore
from qmx_kernel.stores.student_store import StudentStore

logger = get_logger("services.manager")

R = TypeVar("R")


def _require_instance(value: Any, expected: type, field: str) -> None:
    if not isinstance(value, expected):
        raise InvalidFieldError(field, value, f"must be a {expected.__name__}")


class QmxManager:
    """
    Locked facade over the student and cash stores.

    Contract:
        Entities returned by the manager are immutable snapshots; callers
        change state only through the manager's operations.

    Usage::

        manager = QmxManager(SqlSnapshotRepository(engine))
        alice = manager.create_student(
            StudentBuilder("Alice", 10).class_tier(ClassTier.MONTHLY)
        )
        manager.add_score(alice.student_id, 9.5)
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        *,
        clock: Clock | None = None,
        config: ManagerConfig | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._config = config or ManagerConfig()
        self._lock = threading.Lock()
        self._students = StudentStore()
        self._cash = CashStore(self._clock)

        try:
            loaded = repository.load()
        except Exception as exc:
            logger.error("snapshot_load_failed", exc_info=True)
            raise SnapshotLoadError(str(exc)) from exc

        self._saved = loaded or LedgerSnapshot.empty()
        self._install(self._saved)
        logger.info(
            "manager_ready",
            extra={
                "student_count": len(self._students),
                "cash_count": len(self._cash),
                "auto_save": self._config.auto_save,
            },
        )

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    def _capture(self) -> LedgerSnapshot:
        students = self._students.export()
        cash = self._cash.export()
        return LedgerSnapshot(
            students=students.entities,
            cash=cash.entities,
            next_student_id=students.next_id,
            next_cash_id=cash.next_id,
        )

    def _install(self, snapshot: LedgerSnapshot) -> None:
        self._students.restore(StoreState(snapshot.students, snapshot.next_student_id))
        self._cash.restore(StoreState(snapshot.cash, snapshot.next_cash_id))

    @contextmanager
    def _locked(self, operation: str, **context: Any) -> Generator[None, None, None]:
        timeout = self._config.lock_timeout_seconds
        if not self._lock.acquire(timeout=timeout):
            logger.error(
                "lock_acquisition_failed",
                extra={"operation": operation, "timeout_seconds": timeout},
            )
            raise LockAcquisitionError(operation, timeout)
        try:
            with LogContext.bind(operation=operation, **context):
                yield
        finally:
            self._lock.release()

    def _persist(self, operation: str) -> LedgerSnapshot:
        """Save the current state; on failure roll back to the last saved one.

        Must be called with the lock held.
        """
        snapshot = self._capture()
        try:
            self._repository.save(snapshot)
        except Exception as exc:
            self._install(self._saved)
            logger.error(
                "persist_failed_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PersistenceError(operation, str(exc)) from exc
        self._saved = snapshot
        return snapshot

    def _write(
        self,
        operation: str,
        mutate: Callable[[], R],
        **context: Any,
    ) -> R:
        """Run ``mutate`` atomically: lock, apply, persist, unlock."""
        with self._locked(operation, **context):
            restore_point = self._capture()
            try:
                result = mutate()
            except (ValidationError, NotFoundError, DomainConflictError) as exc:
                self._install(restore_point)
                logger.warning(
                    "operation_rejected",
                    extra={"operation": operation, "error_code": exc.code},
                )
                raise
            except Exception:
                self._install(restore_point)
                logger.error("operation_failed", extra={"operation": operation}, exc_info=True)
                raise
            if self._config.auto_save:
                self._persist(operation)
            return result

    def _read(self, operation: str, read: Callable[[], R], **context: Any) -> R:
        with self._locked(operation, **context):
            return read()

    def save(self) -> LedgerSnapshot:
        """Durably store the current state (needed when auto_save is off)."""
        with self._locked("save"):
            snapshot = self._persist("save")
        logger.info(
            "snapshot_persisted",
            extra={"student_count": len(snapshot.students), "cash_count": len(snapshot.cash)},
        )
        return snapshot

    def snapshot(self) -> LedgerSnapshot:
        """Point-in-time image of both stores."""
        return self._read("snapshot", self._capture)

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def create_student(self, builder: StudentBuilder) -> Student:
        _require_instance(builder, StudentBuilder, "builder")

        def mutate() -> Student:
            student_id = self._students.insert(builder)
            return self._students.require(student_id)

        student = self._write("create_student", mutate)
        logger.info(
            "student_created",
            extra={"student_id": student.student_id, "student_name": student.name},
        )
        return student

    def get_student(self, student_id: int) -> Student:
        validate_entity_id(student_id, "student_id")
        return self._read(
            "get_student",
            lambda: self._students.require(student_id),
            student_id=student_id,
        )

    def list_students(self) -> list[Student]:
        return self._read("list_students", self._students.values)

    def search_students(self, query: StudentQuery) -> list[Student]:
        _require_instance(query, StudentQuery, "query")
        return self._read("search_students", lambda: query.filter(self._students.values()))

    def update_student(self, student_id: int, updater: StudentUpdater) -> Student:
        validate_entity_id(student_id, "student_id")
        _require_instance(updater, StudentUpdater, "updater")
        student = self._write(
            "update_student",
            lambda: self._students.update(student_id, updater),
            student_id=student_id,
        )
        logger.info(
            "student_updated",
            extra={"student_id": student_id, "fields": updater.staged_fields},
        )
        return student

    def update_students(self, student_ids: list[int], updater: StudentUpdater) -> int:
        """
        Apply one updater to several students as a single atomic batch.

        Ids that do not exist are skipped.  If the updater fails for any
        existing student, no student is changed.

        Returns:
            Number of students updated.
        """
        for student_id in student_ids:
            validate_entity_id(student_id, "student_id")
        _require_instance(updater, StudentUpdater, "updater")

        def mutate() -> int:
            updated = 0
            for student_id in dict.fromkeys(student_ids):
                if student_id in self._students:
                    self._students.update(student_id, updater)
                    updated += 1
            return updated

        updated = self._write("update_students", mutate)
        logger.info(
            "students_batch_updated",
            extra={"requested": len(student_ids), "updated": updated},
        )
        return updated

    def delete_student(self, student_id: int) -> bool:
        """Hard delete.  The student's cash records are kept."""
        validate_entity_id(student_id, "student_id")
        deleted = self._write(
            "delete_student",
            lambda: self._students.delete(student_id),
            student_id=student_id,
        )
        if deleted:
            logger.info("student_deleted", extra={"student_id": student_id})
        else:
            logger.warning("student_delete_missing", extra={"student_id": student_id})
        return deleted

    # Scores

    def add_score(self, student_id: int, score: float) -> Student:
        return self.update_student(student_id, StudentUpdater().add_ring(score))

    def update_score(self, student_id: int, index: int, score: float) -> Student:
        return self.update_student(student_id, StudentUpdater().update_ring_at(index, score))

    def remove_score(self, student_id: int, index: int) -> Student:
        return self.update_student(student_id, StudentUpdater().remove_ring_at(index))

    def get_scores(self, student_id: int) -> tuple[float, ...]:
        return self.get_student(student_id).rings

    # Membership

    def set_membership(self, student_id: int, start: datetime, end: datetime) -> Student:
        validate_timestamp(start, "membership_start")
        validate_timestamp(end, "membership_end")
        return self.update_student(student_id, StudentUpdater().membership(start, end))

    def clear_membership(self, student_id: int) -> Student:
        return self.update_student(student_id, StudentUpdater().clear_membership())

    def extend_membership(
        self,
        student_id: int,
        plan: MembershipPlan,
        start_from_today: bool = True,
    ) -> Student:
        """
        Grant a month (30 days) or year (365 days) of membership.

        With ``start_from_today`` the window starts now; otherwise it starts
        where the current membership ends (or now when there is none).
        """
        validate_entity_id(student_id, "student_id")
        _require_instance(plan, MembershipPlan, "plan")

        def mutate() -> Student:
            student = self._students.require(student_id)
            now = self._clock.now()
            start = now
            if not start_from_today and student.membership_end is not None:
                start = student.membership_end
            updater = StudentUpdater().membership(start, start + plan.duration)
            return self._students.update(student_id, updater)

        student = self._write("extend_membership", mutate, student_id=student_id)
        logger.info(
            "membership_extended",
            extra={
                "student_id": student_id,
                "plan": plan.value,
                "membership_end": student.membership_end,
            },
        )
        return student

    def memberships_expiring_within(self, days: int) -> list[Student]:
        """Students with an active membership that ends within ``days``."""
        validate_days(days)

        def read() -> list[Student]:
            now = self._clock.now()
            cutoff = now + timedelta(days=days)
            return [
                student
                for student in self._students.values()
                if student.is_membership_active(now) and student.membership_end <= cutoff
            ]

        return self._read("memberships_expiring_within", read)

    # ------------------------------------------------------------------
    # Cash
    # ------------------------------------------------------------------

    def record_cash(self, builder: CashBuilder) -> Cash:
        _require_instance(builder, CashBuilder, "builder")

        def mutate() -> Cash:
            cash_id = self._cash.insert(builder)
            return self._cash.require(cash_id)

        cash = self._write("record_cash", mutate)
        logger.info(
            "cash_recorded",
            extra={
                "cash_id": cash.cash_id,
                "amount": cash.amount,
                "plan_id": cash.installment.plan_id if cash.installment else None,
            },
        )
        return cash

    def get_cash(self, cash_id: int) -> Cash:
        validate_entity_id(cash_id, "cash_id")
        return self._read("get_cash", lambda: self._cash.require(cash_id), cash_id=cash_id)

    def list_cash(self) -> list[Cash]:
        return self._read("list_cash", self._cash.values)

    def search_cash(self, query: CashQuery) -> list[Cash]:
        _require_instance(query, CashQuery, "query")
        return self._read("search_cash", lambda: query.filter(self._cash.values()))

    def cash_for_student(self, student_id: int) -> list[Cash]:
        validate_entity_id(student_id, "student_id")
        return self._read(
            "cash_for_student",
            lambda: self._cash.for_student(student_id),
            student_id=student_id,
        )

    def update_cash(self, cash_id: int, updater: CashUpdater) -> Cash:
        validate_entity_id(cash_id, "cash_id")
        _require_instance(updater, CashUpdater, "updater")
        cash = self._write(
            "update_cash",
            lambda: self._cash.update(cash_id, updater),
            cash_id=cash_id,
        )
        logger.info("cash_updated", extra={"cash_id": cash_id, "fields": updater.staged_fields})
        return cash

    def delete_cash(self, cash_id: int) -> bool:
        validate_entity_id(cash_id, "cash_id")
        deleted = self._write("delete_cash", lambda: self._cash.delete(cash_id), cash_id=cash_id)
        if deleted:
            logger.info("cash_deleted", extra={"cash_id": cash_id})
        else:
            logger.warning("cash_delete_missing", extra={"cash_id": cash_id})
        return deleted

    # ------------------------------------------------------------------
    # Installments
    # ------------------------------------------------------------------

    def update_installment_status(self, cash_id: int, status: InstallmentStatus) -> Cash:
        """
        Replace the status of one installment.

        Any status may be set unless the manager is configured with
        ``enforce_status_transitions``, in which case the transition table in
        ``qmx_kernel.domain.installments`` applies.
        """
        validate_entity_id(cash_id, "cash_id")
        updater = CashUpdater().installment_status(status)

        def mutate() -> Cash:
            cash = self._cash.require(cash_id)
            if cash.installment is None:
                raise NotAnInstallmentError(cash_id)
            if self._config.enforce_status_transitions:
                installments.check_transition(cash, status)
            return self._cash.update(cash_id, updater)

        cash = self._write("update_installment_status", mutate, cash_id=cash_id)
        logger.info(
            "installment_status_updated",
            extra={"cash_id": cash_id, "plan_id": cash.installment.plan_id, "status": status.value},
        )
        return cash

    def generate_next_installment(
        self, plan_id: int, due_date: datetime | None = None
    ) -> Cash:
        """
        Record the installment that follows the latest one of ``plan_id``.

        Raises:
            InstallmentPlanNotFoundError: no record carries the plan.
            PlanCompletedError: the plan's last installment already exists.
        """
        validate_plan_id(plan_id)
        if due_date is not None:
            due_date = validate_timestamp(due_date, "due_date").astimezone(timezone.utc)

        def mutate() -> Cash:
            builder = installments.next_installment(self._cash.values(), plan_id, due_date)
            cash_id = self._cash.insert(builder)
            return self._cash.require(cash_id)

        cash = self._write("generate_next_installment", mutate, plan_id=plan_id)
        logger.info(
            "installment_generated",
            extra={
                "plan_id": plan_id,
                "cash_id": cash.cash_id,
                "current_installment": cash.installment.current_installment,
                "total_installments": cash.installment.total_installments,
                "amount": cash.amount,
            },
        )
        return cash

    def cancel_installment_plan(self, plan_id: int, *, strict: bool = False) -> int:
        """
        Cancel every installment of ``plan_id`` that is not cancelled yet.

        Returns:
            Number of records changed; 0 when the plan was already fully
            cancelled (repeat calls are harmless).

        Raises:
            InstallmentPlanNotFoundError: no record carries the plan.
            NothingToCancelError: ``strict`` and nothing was left to cancel.
        """
        validate_plan_id(plan_id)
        updater = CashUpdater().installment_status(InstallmentStatus.CANCELLED)

        def mutate() -> int:
            cash_ids = installments.cancellable_ids(self._cash.values(), plan_id)
            if not cash_ids and strict:
                raise NothingToCancelError(plan_id)
            for cash_id in cash_ids:
                self._cash.update(cash_id, updater)
            return len(cash_ids)

        cancelled = self._write("cancel_installment_plan", mutate, plan_id=plan_id)
        logger.info(
            "installment_plan_cancelled",
            extra={"plan_id": plan_id, "cancelled_count": cancelled},
        )
        return cancelled

    def list_installments(self, plan_id: int) -> list[Cash]:
        validate_plan_id(plan_id)
        return self._read(
            "list_installments",
            lambda: installments.plan_records(self._cash.values(), plan_id),
            plan_id=plan_id,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def dashboard_stats(self) -> statistics.DashboardStats:
        return self._read(
            "dashboard_stats",
            lambda: statistics.dashboard_stats(
                self._students.values(), self._cash.values(), self._clock.now()
            ),
        )

    def student_stats(self, student_id: int) -> statistics.StudentStats:
        validate_entity_id(student_id, "student_id")
        return self._read(
            "student_stats",
            lambda: statistics.student_stats(
                self._students.require(student_id), self._cash.values(), self._clock.now()
            ),
            student_id=student_id,
        )

    def financial_stats(self, period: TimePeriod) -> statistics.FinancialStats:
        _require_instance(period, TimePeriod, "period")
        return self._read(
            "financial_stats",
            lambda: statistics.financial_stats(self._cash.values(), period, self._clock.now()),
        )
