"""
Cash -- Immutable cash record and embedded installment.

Responsibility:
    Models one signed money movement (positive = income, negative =
    expense), optionally tied to a student and optionally carrying one
    installment of a payment plan.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Created by ``CashBuilder``, replaced by ``CashUpdater``, owned by
    ``CashStore``.  Installments are not stored separately; a plan is the set
    of cash records whose installment shares a ``plan_id``.

Invariants enforced:
    - ``plan_id`` is a positive integer.
    - 1 <= ``current_installment`` <= ``total_installments`` <= 360.

Failure modes:
    - InvalidFieldError on construction with out-of-range installment fields.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from qmx_kernel.domain.validation import (
    validate_amount,
    validate_current_installment,
    validate_installment_count,
    validate_plan_id,
    validate_timestamp,
)
from qmx_kernel.domain.values import InstallmentStatus, PaymentFrequency


@dataclass(frozen=True, slots=True)
class Installment:
    """One installment of a payment plan."""

    plan_id: int
    total_amount: int
    total_installments: int
    current_installment: int
    frequency: PaymentFrequency
    due_date: datetime
    status: InstallmentStatus = InstallmentStatus.PENDING

    def __post_init__(self) -> None:
        validate_plan_id(self.plan_id)
        validate_amount(self.total_amount, "total_amount")
        validate_installment_count(self.total_installments)
        validate_current_installment(self.current_installment, self.total_installments)
        validate_timestamp(self.due_date, "due_date")

    @property
    def is_last(self) -> bool:
        return self.current_installment == self.total_installments

    @property
    def amount_per_installment(self) -> int:
        # Truncates toward zero; the remainder is not redistributed.
        share = abs(self.total_amount) // self.total_installments
        return share if self.total_amount >= 0 else -share

    def with_status(self, status: InstallmentStatus) -> Installment:
        return replace(self, status=status)


@dataclass(frozen=True, slots=True)
class Cash:
    """A cash record."""

    cash_id: int
    amount: int
    created_at: datetime
    student_id: int | None = None
    note: str | None = None
    installment: Installment | None = None

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_installment(self) -> bool:
        return self.installment is not None

    @property
    def effective_date(self) -> datetime:
        """Date used by date-range queries: due date for installments."""
        if self.installment is not None:
            return self.installment.due_date
        return self.created_at

    def belongs_to_plan(self, plan_id: int) -> bool:
        return self.installment is not None and self.installment.plan_id == plan_id
