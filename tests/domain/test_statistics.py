"""Tests for dashboard, per-student and per-period statistics."""

from datetime import datetime, timedelta, timezone

import pytest

from qmx_kernel.domain import statistics
from qmx_kernel.domain.builders import CashBuilder, StudentBuilder
from qmx_kernel.domain.values import MembershipStatus, TimePeriod

# Wednesday
NOW = datetime(2024, 3, 13, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def students():
    return [
        StudentBuilder("Alice", 10).rings([9.5, 8.0]).build(1),
        StudentBuilder("Bob", 12).rings([7.0]).lesson_left(4).build(2),
        StudentBuilder("Carol", 30).membership(NOW - timedelta(days=5), NOW + timedelta(days=25)).build(3),
        StudentBuilder("Dan", 40)
        .membership(NOW - timedelta(days=60), NOW - timedelta(days=30))
        .lesson_left(0)
        .build(4),
    ]


@pytest.fixture
def cash_records():
    return [
        CashBuilder(1000).student_id(1).build(1, NOW - timedelta(days=400)),
        CashBuilder(500).student_id(1).build(2, NOW - timedelta(days=20)),
        CashBuilder(-300).build(3, NOW - timedelta(days=1)),
        CashBuilder(200)
        .student_id(2)
        .installment_plan(total_amount=600, total_installments=3, due_date=NOW + timedelta(days=30))
        .build(4, NOW - timedelta(hours=2)),
    ]


class TestDashboard:
    def test_totals(self, students, cash_records):
        stats = statistics.dashboard_stats(students, cash_records, NOW)
        assert stats.total_students == 4
        assert stats.total_revenue == 1700
        assert stats.total_expense == 300
        assert stats.average_score == pytest.approx((9.5 + 8.0 + 7.0) / 3)
        assert stats.max_score == 9.5

    def test_active_courses_counts_membership_or_lessons(self, students, cash_records):
        stats = statistics.dashboard_stats(students, cash_records, NOW)
        # Bob has lessons, Carol an open membership; Dan expired with none left.
        assert stats.active_courses == 2

    def test_revenue_minus_expense_is_signed_sum(self, students, cash_records):
        stats = statistics.dashboard_stats(students, cash_records, NOW)
        assert stats.total_revenue - stats.total_expense == sum(c.amount for c in cash_records)

    def test_empty_ledger(self):
        stats = statistics.dashboard_stats([], [], NOW)
        assert stats.total_students == 0
        assert stats.average_score == 0.0
        assert stats.max_score == 0.0


class TestStudentStats:
    def test_payments_and_scores(self, students, cash_records):
        stats = statistics.student_stats(students[0], cash_records, NOW)
        assert stats.total_payments == 1500
        assert stats.payment_count == 2
        assert stats.average_score == pytest.approx(8.75)
        assert stats.score_count == 2
        assert stats.membership_status is MembershipStatus.NONE

    def test_membership_status(self, students, cash_records):
        assert statistics.student_stats(students[2], cash_records, NOW).membership_status is (
            MembershipStatus.ACTIVE
        )
        assert statistics.student_stats(students[3], cash_records, NOW).membership_status is (
            MembershipStatus.EXPIRED
        )

    def test_no_scores(self, students):
        stats = statistics.student_stats(students[2], [], NOW)
        assert stats.average_score is None
        assert stats.payment_count == 0


class TestPeriods:
    @pytest.mark.parametrize(
        "period,start",
        [
            (TimePeriod.TODAY, datetime(2024, 3, 13, tzinfo=timezone.utc)),
            (TimePeriod.THIS_WEEK, datetime(2024, 3, 11, tzinfo=timezone.utc)),
            (TimePeriod.THIS_MONTH, datetime(2024, 3, 1, tzinfo=timezone.utc)),
            (TimePeriod.THIS_YEAR, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ],
    )
    def test_period_start(self, period, start):
        assert statistics.period_start(period, NOW) == start

    def test_this_month(self, cash_records):
        stats = statistics.financial_stats(cash_records, TimePeriod.THIS_MONTH, NOW)
        assert stats.total_income == 200
        assert stats.total_expense == 300
        assert stats.net_income == -100
        assert stats.transaction_count == 2
        assert stats.installment_count == 1
        assert stats.period_end == NOW

    def test_this_year(self, cash_records):
        stats = statistics.financial_stats(cash_records, TimePeriod.THIS_YEAR, NOW)
        assert stats.total_income == 700
        assert stats.transaction_count == 3

    def test_today(self, cash_records):
        stats = statistics.financial_stats(cash_records, TimePeriod.TODAY, NOW)
        assert stats.transaction_count == 1
        assert stats.total_income == 200
