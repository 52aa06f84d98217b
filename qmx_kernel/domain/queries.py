"""
Queries -- Composable predicate filters over the stores.

Responsibility:
    Maps optional filter dimensions to required values and evaluates them
    against students or cash records.  Used for search screens and by the
    installment subsystem and statistics.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Queries never touch a store themselves; the manager feeds them the
    store's entities in iteration order.

Invariants enforced:
    - Filters compose with logical AND; an empty query matches everything.
    - Range filters fail fast: an inverted range raises when it is set, before
      any scan happens.
    - Results keep the order in which entities were supplied (store insertion
      order); no query re-sorts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Generic, Iterable, TypeVar

from qmx_kernel.domain.cash import Cash
from qmx_kernel.domain.student import Student
from qmx_kernel.domain.validation import (
    validate_amount,
    validate_entity_id,
    validate_plan_id,
    validate_range,
    validate_timestamp,
)
from qmx_kernel.domain.values import ClassTier, InstallmentStatus, Subject
from qmx_kernel.exceptions import InvalidFieldError

T = TypeVar("T")


class _Query(Generic[T]):
    def __init__(self) -> None:
        self._predicates: dict[str, Callable[[T], bool]] = {}

    @property
    def is_empty(self) -> bool:
        return not self._predicates

    @property
    def dimensions(self) -> list[str]:
        return list(self._predicates)

    def matches(self, entity: T) -> bool:
        return all(predicate(entity) for predicate in self._predicates.values())

    def filter(self, entities: Iterable[T]) -> list[T]:
        return [entity for entity in entities if self.matches(entity)]


class StudentQuery(_Query[Student]):
    """Student search.  Setting a dimension twice replaces it."""

    def name_contains(self, text: str) -> StudentQuery:
        if not isinstance(text, str):
            raise InvalidFieldError("name_contains", text, "must be a string")
        self._predicates["name"] = lambda s: text in s.name
        return self

    def age_range(self, minimum: int, maximum: int) -> StudentQuery:
        validate_range(minimum, maximum, "age")
        self._predicates["age"] = lambda s: minimum <= s.age <= maximum
        return self

    def class_tier(self, class_tier: ClassTier) -> StudentQuery:
        if not isinstance(class_tier, ClassTier):
            raise InvalidFieldError("class_tier", class_tier, "must be a ClassTier member")
        self._predicates["class_tier"] = lambda s: s.class_tier is class_tier
        return self

    def subject(self, subject: Subject) -> StudentQuery:
        if not isinstance(subject, Subject):
            raise InvalidFieldError("subject", subject, "must be a Subject member")
        self._predicates["subject"] = lambda s: s.subject is subject
        return self

    def has_membership(self, flag: bool) -> StudentQuery:
        self._predicates["has_membership"] = lambda s: s.has_membership is bool(flag)
        return self


class CashQuery(_Query[Cash]):
    """Cash search.  Setting a dimension twice replaces it."""

    def student_id(self, student_id: int) -> CashQuery:
        validate_entity_id(student_id, "student_id")
        self._predicates["student_id"] = lambda c: c.student_id == student_id
        return self

    def amount_range(self, minimum: int, maximum: int) -> CashQuery:
        validate_amount(minimum, "min_amount")
        validate_amount(maximum, "max_amount")
        validate_range(minimum, maximum, "amount")
        self._predicates["amount"] = lambda c: minimum <= c.amount <= maximum
        return self

    def date_range(self, start: datetime, end: datetime) -> CashQuery:
        """Inclusive window on the due date (installments) or creation time."""
        validate_timestamp(start, "date_from")
        validate_timestamp(end, "date_to")
        validate_range(start, end, "date")
        self._predicates["date"] = lambda c: start <= c.effective_date <= end
        return self

    def has_installment(self, flag: bool) -> CashQuery:
        self._predicates["has_installment"] = lambda c: c.is_installment is bool(flag)
        return self

    def plan_id(self, plan_id: int) -> CashQuery:
        validate_plan_id(plan_id)
        self._predicates["plan_id"] = lambda c: c.belongs_to_plan(plan_id)
        return self

    def installment_status(self, status: InstallmentStatus) -> CashQuery:
        if not isinstance(status, InstallmentStatus):
            raise InvalidFieldError("status", status, "must be an InstallmentStatus member")
        self._predicates["installment_status"] = (
            lambda c: c.installment is not None and c.installment.status is status
        )
        return self
