"""
Builders and updaters -- Staged construction and partial update of entities.

Responsibility:
    Translates optional field sets coming from the command layer into
    validated entity values.  Builders accumulate fields and produce a fully
    formed entity only when the owning store calls ``build`` with a freshly
    assigned id.  Updaters stage field replacements and produce a new entity
    from an existing one.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by ``StudentStore`` / ``CashStore`` and by the installment
    subsystem.

Invariants enforced:
    - Every setter validates its input immediately, so malformed input is
      rejected before any store is touched.
    - Updater fields default to "leave unchanged"; an unset field is a no-op,
      never a reset.  ``None`` is a real value for the optional fields that
      can be cleared (``lesson_left``, ``student_id``, ``note``,
      ``installment``).
    - ``apply`` is pure: it returns a new entity or raises, so a failing
      updater can never leave a half-applied record in a store.

Failure modes:
    - ValidationError subclasses from setters.
    - MissingFieldError from ``build`` when a required field was never set.
    - MembershipWindowError / InvalidFieldError when the resulting membership
      window is invalid.
    - ScoreIndexError when a ring operation addresses a missing score.
    - NotAnInstallmentError when a status change targets a plain record.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from qmx_kernel.domain.cash import Cash, Installment
from qmx_kernel.domain.student import Student, check_membership_window
from qmx_kernel.domain.validation import (
    validate_age,
    validate_amount,
    validate_current_installment,
    validate_entity_id,
    validate_installment_count,
    validate_lesson_left,
    validate_note,
    validate_phone,
    validate_plan_id,
    validate_score,
    validate_student_name,
    validate_timestamp,
)
from qmx_kernel.domain.values import (
    ClassTier,
    InstallmentStatus,
    PaymentFrequency,
    Subject,
)
from qmx_kernel.exceptions import (
    InvalidFieldError,
    MissingFieldError,
    NotAnInstallmentError,
    ScoreIndexError,
)


class _Unset:
    """Marker for an updater field that was never staged."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def _require_member(value: Any, enum_type: type[Enum], field: str) -> Any:
    if not isinstance(value, enum_type):
        raise InvalidFieldError(
            field, value, f"must be a {enum_type.__name__} member; parse labels first"
        )
    return value


def _utc(value: datetime, field: str) -> datetime:
    return validate_timestamp(value, field).astimezone(timezone.utc)


def _optional_utc(value: datetime | None, field: str) -> datetime | None:
    return None if value is None else _utc(value, field)


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


class StudentBuilder:
    """
    Staged construction of a ``Student``.

    Usage::

        builder = (
            StudentBuilder("Alice", 10)
            .class_tier(ClassTier.MONTHLY)
            .subject(Subject.SHOOTING)
            .phone("13800000000")
        )
        student_id = store.insert(builder)
    """

    def __init__(self, name: str | None = None, age: int | None = None):
        self._name: str | None = None
        self._age: int | None = None
        self._class_tier = ClassTier.OTHER
        self._subject = Subject.OTHER
        self._phone = ""
        self._note = ""
        self._rings: tuple[float, ...] = ()
        self._lesson_left: int | None = None
        self._membership: tuple[datetime | None, datetime | None] = (None, None)
        if name is not None:
            self.name(name)
        if age is not None:
            self.age(age)

    def name(self, name: str) -> StudentBuilder:
        self._name = validate_student_name(name)
        return self

    def age(self, age: int) -> StudentBuilder:
        self._age = validate_age(age)
        return self

    def class_tier(self, class_tier: ClassTier) -> StudentBuilder:
        self._class_tier = _require_member(class_tier, ClassTier, "class_tier")
        return self

    def subject(self, subject: Subject) -> StudentBuilder:
        self._subject = _require_member(subject, Subject, "subject")
        return self

    def phone(self, phone: str) -> StudentBuilder:
        self._phone = validate_phone(phone)
        return self

    def note(self, note: str) -> StudentBuilder:
        self._note = validate_note(note)
        return self

    def rings(self, scores: list[float] | tuple[float, ...]) -> StudentBuilder:
        self._rings = tuple(validate_score(s) for s in scores)
        return self

    def lesson_left(self, lessons: int | None) -> StudentBuilder:
        self._lesson_left = None if lessons is None else validate_lesson_left(lessons)
        return self

    def membership(self, start: datetime | None, end: datetime | None) -> StudentBuilder:
        start = _optional_utc(start, "membership_start")
        end = _optional_utc(end, "membership_end")
        check_membership_window(start, end)
        self._membership = (start, end)
        return self

    def build(self, student_id: int) -> Student:
        """Terminal step, called by the store with the newly assigned id."""
        if self._name is None:
            raise MissingFieldError("Student", "name")
        if self._age is None:
            raise MissingFieldError("Student", "age")
        return Student(
            student_id=student_id,
            name=self._name,
            age=self._age,
            class_tier=self._class_tier,
            subject=self._subject,
            phone=self._phone,
            note=self._note,
            rings=self._rings,
            lesson_left=self._lesson_left,
            membership_start=self._membership[0],
            membership_end=self._membership[1],
        )


class StudentUpdater:
    """
    Partial update of a ``Student``.

    Ring operations are replayed in the order they were staged, on top of
    ``rings()`` when that was staged too.
    """

    def __init__(self) -> None:
        self._changes: dict[str, Any] = {}
        self._membership_start: Any = UNSET
        self._membership_end: Any = UNSET
        self._ring_ops: list[Callable[[list[float]], None]] = []

    @property
    def is_empty(self) -> bool:
        return (
            not self._changes
            and self._membership_start is UNSET
            and self._membership_end is UNSET
            and not self._ring_ops
        )

    @property
    def staged_fields(self) -> list[str]:
        fields = sorted(self._changes)
        if self._membership_start is not UNSET:
            fields.append("membership_start")
        if self._membership_end is not UNSET:
            fields.append("membership_end")
        if self._ring_ops:
            fields.append("rings")
        return fields

    def name(self, name: str) -> StudentUpdater:
        self._changes["name"] = validate_student_name(name)
        return self

    def age(self, age: int) -> StudentUpdater:
        self._changes["age"] = validate_age(age)
        return self

    def class_tier(self, class_tier: ClassTier) -> StudentUpdater:
        self._changes["class_tier"] = _require_member(class_tier, ClassTier, "class_tier")
        return self

    def subject(self, subject: Subject) -> StudentUpdater:
        self._changes["subject"] = _require_member(subject, Subject, "subject")
        return self

    def phone(self, phone: str) -> StudentUpdater:
        self._changes["phone"] = validate_phone(phone)
        return self

    def note(self, note: str) -> StudentUpdater:
        self._changes["note"] = validate_note(note)
        return self

    def lesson_left(self, lessons: int | None) -> StudentUpdater:
        self._changes["lesson_left"] = (
            None if lessons is None else validate_lesson_left(lessons)
        )
        return self

    def membership(self, start: datetime | None, end: datetime | None) -> StudentUpdater:
        """Replace both bounds; ``(None, None)`` clears the membership."""
        start = _optional_utc(start, "membership_start")
        end = _optional_utc(end, "membership_end")
        check_membership_window(start, end)
        self._membership_start = start
        self._membership_end = end
        return self

    def clear_membership(self) -> StudentUpdater:
        return self.membership(None, None)

    def membership_start(self, start: datetime) -> StudentUpdater:
        """Replace only the start; the end is taken from the stored student."""
        self._membership_start = _utc(start, "membership_start")
        return self

    def membership_end(self, end: datetime) -> StudentUpdater:
        """Replace only the end; the start is taken from the stored student."""
        self._membership_end = _utc(end, "membership_end")
        return self

    def rings(self, scores: list[float] | tuple[float, ...]) -> StudentUpdater:
        self._changes["rings"] = tuple(validate_score(s) for s in scores)
        return self

    def add_ring(self, score: float) -> StudentUpdater:
        score = validate_score(score)
        self._ring_ops.append(lambda rings: rings.append(score))
        return self

    def update_ring_at(self, index: int, score: float) -> StudentUpdater:
        score = validate_score(score)

        def _update(rings: list[float]) -> None:
            _check_ring_index(index, rings)
            rings[index] = score

        self._ring_ops.append(_update)
        return self

    def remove_ring_at(self, index: int) -> StudentUpdater:
        def _remove(rings: list[float]) -> None:
            _check_ring_index(index, rings)
            del rings[index]

        self._ring_ops.append(_remove)
        return self

    def apply(self, student: Student) -> Student:
        """Return ``student`` with every staged field replaced."""
        changes = dict(self._changes)
        if self._ring_ops:
            rings = list(changes.get("rings", student.rings))
            for op in self._ring_ops:
                op(rings)
            changes["rings"] = tuple(rings)
        if self._membership_start is not UNSET or self._membership_end is not UNSET:
            changes["membership_start"] = (
                student.membership_start
                if self._membership_start is UNSET
                else self._membership_start
            )
            changes["membership_end"] = (
                student.membership_end
                if self._membership_end is UNSET
                else self._membership_end
            )
        if not changes:
            return student
        return replace(student, **changes)


def _check_ring_index(index: int, rings: list[float]) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(rings):
        raise ScoreIndexError(index, len(rings))


# ---------------------------------------------------------------------------
# Cash
# ---------------------------------------------------------------------------


class CashBuilder:
    """
    Staged construction of a ``Cash`` record.

    A new payment plan is started with ``installment_plan``; when no plan id
    is given, the plan takes the id of the record that opens it.  A complete
    ``Installment`` value (used when extending an existing plan) is staged
    with ``installment``.
    """

    def __init__(self, amount: int | None = None):
        self._amount: int | None = None
        self._student_id: int | None = None
        self._note: str | None = None
        self._installment: Installment | None = None
        self._plan_terms: dict[str, Any] | None = None
        if amount is not None:
            self.amount(amount)

    def amount(self, amount: int) -> CashBuilder:
        self._amount = validate_amount(amount)
        return self

    def student_id(self, student_id: int) -> CashBuilder:
        self._student_id = validate_entity_id(student_id, "student_id")
        return self

    def note(self, note: str) -> CashBuilder:
        self._note = validate_note(note)
        return self

    def installment(self, installment: Installment) -> CashBuilder:
        if not isinstance(installment, Installment):
            raise InvalidFieldError("installment", installment, "must be an Installment")
        self._installment = installment
        self._plan_terms = None
        return self

    def installment_plan(
        self,
        *,
        total_amount: int,
        total_installments: int,
        due_date: datetime,
        frequency: PaymentFrequency | None = None,
        current_installment: int = 1,
        plan_id: int | None = None,
        status: InstallmentStatus = InstallmentStatus.PENDING,
    ) -> CashBuilder:
        """Stage the first (or an explicitly numbered) installment of a plan."""
        validate_amount(total_amount, "total_amount")
        validate_installment_count(total_installments)
        validate_current_installment(current_installment, total_installments)
        if plan_id is not None:
            validate_plan_id(plan_id)
        if frequency is None:
            frequency = PaymentFrequency.monthly()
        elif not isinstance(frequency, PaymentFrequency):
            raise InvalidFieldError("frequency", frequency, "must be a PaymentFrequency")
        self._plan_terms = {
            "plan_id": plan_id,
            "total_amount": total_amount,
            "total_installments": total_installments,
            "current_installment": current_installment,
            "frequency": frequency,
            "due_date": _utc(due_date, "due_date"),
            "status": _require_member(status, InstallmentStatus, "status"),
        }
        self._installment = None
        return self

    @property
    def has_installment(self) -> bool:
        return self._installment is not None or self._plan_terms is not None

    def build(self, cash_id: int, created_at: datetime) -> Cash:
        """Terminal step, called by the store with the newly assigned id."""
        if self._amount is None:
            raise MissingFieldError("Cash", "amount")
        installment = self._installment
        if self._plan_terms is not None:
            terms = dict(self._plan_terms)
            if terms["plan_id"] is None:
                terms["plan_id"] = cash_id
            installment = Installment(**terms)
        return Cash(
            cash_id=cash_id,
            amount=self._amount,
            created_at=created_at,
            student_id=self._student_id,
            note=self._note,
            installment=installment,
        )


class CashUpdater:
    """Partial update of a ``Cash`` record."""

    def __init__(self) -> None:
        self._changes: dict[str, Any] = {}
        self._status: InstallmentStatus | None = None

    @property
    def is_empty(self) -> bool:
        return not self._changes and self._status is None

    @property
    def staged_fields(self) -> list[str]:
        fields = sorted(self._changes)
        if self._status is not None:
            fields.append("installment_status")
        return fields

    def amount(self, amount: int) -> CashUpdater:
        self._changes["amount"] = validate_amount(amount)
        return self

    def student_id(self, student_id: int | None) -> CashUpdater:
        self._changes["student_id"] = (
            None if student_id is None else validate_entity_id(student_id, "student_id")
        )
        return self

    def note(self, note: str | None) -> CashUpdater:
        self._changes["note"] = None if note is None else validate_note(note)
        return self

    def installment(self, installment: Installment | None) -> CashUpdater:
        if installment is not None and not isinstance(installment, Installment):
            raise InvalidFieldError("installment", installment, "must be an Installment")
        self._changes["installment"] = installment
        return self

    def installment_status(self, status: InstallmentStatus) -> CashUpdater:
        """Replace only the status of the record's installment."""
        self._status = _require_member(status, InstallmentStatus, "status")
        return self

    def apply(self, cash: Cash) -> Cash:
        changes = dict(self._changes)
        if self._status is not None:
            installment = changes.get("installment", cash.installment)
            if installment is None:
                raise NotAnInstallmentError(cash.cash_id)
            changes["installment"] = installment.with_status(self._status)
        if not changes:
            return cash
        return replace(cash, **changes)
