"""
Statistics -- Dashboard, per-student and per-period figures.

Responsibility:
    Derives aggregate metrics by scanning the stores' entities.  Nothing is
    cached; every figure is recomputed from the records supplied.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    The manager calls these under the state lock with the current "now".

Invariants enforced:
    - ``total_revenue - total_expense`` equals the signed sum of all amounts.
    - Score averages and maxima are 0.0 when there are no scores (dashboard)
      and None for a student without scores.
    - Period windows run from the period start to ``now`` (inclusive) in UTC:
      midnight today, Monday of this week, the 1st of this month, 1 January.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from qmx_kernel.domain.cash import Cash
from qmx_kernel.domain.student import Student
from qmx_kernel.domain.values import MembershipStatus, TimePeriod


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_students: int
    total_revenue: int
    total_expense: int
    average_score: float
    max_score: float
    active_courses: int


@dataclass(frozen=True, slots=True)
class StudentStats:
    student_id: int
    total_payments: int
    payment_count: int
    average_score: float | None
    score_count: int
    membership_status: MembershipStatus


@dataclass(frozen=True, slots=True)
class FinancialStats:
    period: TimePeriod
    period_start: datetime
    period_end: datetime
    total_income: int
    total_expense: int
    net_income: int
    transaction_count: int
    installment_count: int


def _income_and_expense(cash_records: Iterable[Cash]) -> tuple[int, int, int, int]:
    income = expense = count = installments = 0
    for cash in cash_records:
        count += 1
        if cash.amount > 0:
            income += cash.amount
        elif cash.amount < 0:
            expense += -cash.amount
        if cash.is_installment:
            installments += 1
    return income, expense, count, installments


def has_active_course(student: Student, now: datetime) -> bool:
    """Membership not yet ended, or lessons still on the card."""
    if student.has_membership and student.membership_end >= now:
        return True
    return bool(student.lesson_left)


def dashboard_stats(
    students: Iterable[Student], cash_records: Iterable[Cash], now: datetime
) -> DashboardStats:
    students = list(students)
    income, expense, _, _ = _income_and_expense(cash_records)
    scores = [score for student in students for score in student.rings]
    return DashboardStats(
        total_students=len(students),
        total_revenue=income,
        total_expense=expense,
        average_score=sum(scores) / len(scores) if scores else 0.0,
        max_score=max(scores) if scores else 0.0,
        active_courses=sum(1 for s in students if has_active_course(s, now)),
    )


def student_stats(
    student: Student, cash_records: Iterable[Cash], now: datetime
) -> StudentStats:
    own = [cash for cash in cash_records if cash.student_id == student.student_id]
    return StudentStats(
        student_id=student.student_id,
        total_payments=sum(cash.amount for cash in own),
        payment_count=len(own),
        average_score=student.average_score,
        score_count=len(student.rings),
        membership_status=student.membership_status(now),
    )


def period_start(period: TimePeriod, now: datetime) -> datetime:
    now = now.astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period is TimePeriod.TODAY:
        return midnight
    if period is TimePeriod.THIS_WEEK:
        return midnight - timedelta(days=midnight.weekday())
    if period is TimePeriod.THIS_MONTH:
        return midnight.replace(day=1)
    return midnight.replace(month=1, day=1)


def financial_stats(
    cash_records: Iterable[Cash], period: TimePeriod, now: datetime
) -> FinancialStats:
    start = period_start(period, now)
    in_period = [cash for cash in cash_records if start <= cash.created_at <= now]
    income, expense, count, installments = _income_and_expense(in_period)
    return FinancialStats(
        period=period,
        period_start=start,
        period_end=now,
        total_income=income,
        total_expense=expense,
        net_income=income - expense,
        transaction_count=count,
        installment_count=installments,
    )
