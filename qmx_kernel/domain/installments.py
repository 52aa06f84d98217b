"""
Installments -- Payment plans spread across several cash records.

Responsibility:
    Finds the records of a plan, picks its latest installment, stages the
    next installment, works out which records a cancellation touches, and
    holds the status transition table.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Every function receives the cash records in store iteration order and
    returns builders / ids; the manager applies them under the state lock so
    that no scan observes a half-applied write.

Invariants enforced:
    - The latest installment is the maximum under the total order
      ``(current_installment, cash_id)``; duplicates of an installment number
      resolve to the most recently created record.
    - A plan whose latest installment is its last one cannot be extended.
    - The per-installment amount is ``total_amount / total_installments``
      truncated to a whole number; the remainder is dropped, not spread.
    - A generated installment belongs to the student of the first record of
      the plan in store order.
    - Cancellation never touches or counts already-cancelled records.

Failure modes:
    - InstallmentPlanNotFoundError when no record carries the plan id.
    - PlanCompletedError when generating past the last installment.
    - IllegalStatusTransitionError from ``check_transition``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from qmx_kernel.domain.builders import CashBuilder
from qmx_kernel.domain.cash import Cash, Installment
from qmx_kernel.domain.values import InstallmentStatus
from qmx_kernel.exceptions import (
    IllegalStatusTransitionError,
    InstallmentPlanNotFoundError,
    PlanCompletedError,
)

ALLOWED_TRANSITIONS: dict[InstallmentStatus, frozenset[InstallmentStatus]] = {
    InstallmentStatus.PENDING: frozenset(
        {InstallmentStatus.PAID, InstallmentStatus.OVERDUE, InstallmentStatus.CANCELLED}
    ),
    InstallmentStatus.OVERDUE: frozenset({InstallmentStatus.CANCELLED}),
    InstallmentStatus.PAID: frozenset(),
    InstallmentStatus.CANCELLED: frozenset(),
}


def is_legal_transition(current: InstallmentStatus, requested: InstallmentStatus) -> bool:
    """Re-asserting the current status is always legal."""
    return current is requested or requested in ALLOWED_TRANSITIONS[current]


def check_transition(cash: Cash, requested: InstallmentStatus) -> None:
    if cash.installment is None:
        return
    current = cash.installment.status
    if not is_legal_transition(current, requested):
        raise IllegalStatusTransitionError(cash.cash_id, current.value, requested.value)


def plan_records(cash_records: Iterable[Cash], plan_id: int) -> list[Cash]:
    """Records of the plan, in the order supplied."""
    return [cash for cash in cash_records if cash.belongs_to_plan(plan_id)]


def latest_record(records: list[Cash]) -> Cash:
    return max(
        records,
        key=lambda cash: (cash.installment.current_installment, cash.cash_id),
    )


def next_installment(
    cash_records: Iterable[Cash],
    plan_id: int,
    due_date: datetime | None = None,
) -> CashBuilder:
    """
    Stage the installment that follows the latest one of ``plan_id``.

    When ``due_date`` is omitted it is the latest due date advanced by the
    plan's frequency interval.

    Raises:
        InstallmentPlanNotFoundError: no record carries the plan.
        PlanCompletedError: the latest installment is the last one.
    """
    records = plan_records(cash_records, plan_id)
    if not records:
        raise InstallmentPlanNotFoundError(plan_id)

    latest: Installment = latest_record(records).installment
    if latest.is_last:
        raise PlanCompletedError(plan_id, latest.total_installments)

    next_number = latest.current_installment + 1
    if due_date is None:
        due_date = latest.due_date + latest.frequency.interval

    builder = (
        CashBuilder(latest.amount_per_installment)
        .installment(
            Installment(
                plan_id=latest.plan_id,
                total_amount=latest.total_amount,
                total_installments=latest.total_installments,
                current_installment=next_number,
                frequency=latest.frequency,
                due_date=due_date,
                status=InstallmentStatus.PENDING,
            )
        )
        .note(f"Installment {next_number}/{latest.total_installments}")
    )
    owner = records[0].student_id
    if owner is not None:
        builder.student_id(owner)
    return builder


def cancellable_ids(cash_records: Iterable[Cash], plan_id: int) -> list[int]:
    """
    Ids of the plan's records that a cancellation would change.

    Raises:
        InstallmentPlanNotFoundError: no record carries the plan.
    """
    records = plan_records(cash_records, plan_id)
    if not records:
        raise InstallmentPlanNotFoundError(plan_id)
    return [
        cash.cash_id
        for cash in records
        if cash.installment.status is not InstallmentStatus.CANCELLED
    ]
