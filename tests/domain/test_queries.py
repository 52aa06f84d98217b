"""Tests for the student and cash search queries."""

from datetime import datetime, timedelta, timezone

import pytest

from qmx_kernel.domain.builders import CashBuilder, StudentBuilder
from qmx_kernel.domain.queries import CashQuery, StudentQuery
from qmx_kernel.domain.values import ClassTier, InstallmentStatus, Subject
from qmx_kernel.exceptions import InvalidFieldError, InvalidRangeError

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def students():
    return [
        StudentBuilder("Alice", 10).class_tier(ClassTier.MONTHLY).subject(Subject.SHOOTING).build(1),
        StudentBuilder("Alan", 35).class_tier(ClassTier.YEARLY).subject(Subject.ARCHERY).build(2),
        StudentBuilder("Bob", 16)
        .subject(Subject.SHOOTING)
        .membership(NOW, NOW + timedelta(days=30))
        .build(3),
    ]


@pytest.fixture
def cash_records():
    return [
        CashBuilder(500).student_id(1).build(1, NOW - timedelta(days=10)),
        CashBuilder(-200).build(2, NOW - timedelta(days=2)),
        CashBuilder(100)
        .student_id(1)
        .installment_plan(
            total_amount=1200, total_installments=12, due_date=NOW + timedelta(days=30)
        )
        .build(3, NOW),
    ]


class TestStudentQuery:
    def test_empty_query_matches_everything(self, students):
        query = StudentQuery()
        assert query.is_empty
        assert query.filter(students) == students

    def test_name_substring_is_case_sensitive(self, students):
        assert [s.name for s in StudentQuery().name_contains("Al").filter(students)] == [
            "Alice",
            "Alan",
        ]
        assert StudentQuery().name_contains("al").filter(students) == []

    def test_dimensions_combine_with_and(self, students):
        query = StudentQuery().name_contains("Al").subject(Subject.SHOOTING)
        assert [s.student_id for s in query.filter(students)] == [1]
        assert query.dimensions == ["name", "subject"]

    def test_age_range_inclusive(self, students):
        result = StudentQuery().age_range(10, 16).filter(students)
        assert [s.student_id for s in result] == [1, 3]

    def test_inverted_age_range_fails_before_filtering(self):
        with pytest.raises(InvalidRangeError):
            StudentQuery().age_range(30, 10)

    def test_class_tier_and_membership(self, students):
        assert [s.student_id for s in StudentQuery().class_tier(ClassTier.YEARLY).filter(students)] == [2]
        assert [s.student_id for s in StudentQuery().has_membership(True).filter(students)] == [3]
        assert [s.student_id for s in StudentQuery().has_membership(False).filter(students)] == [1, 2]

    def test_setting_a_dimension_twice_replaces_it(self, students):
        query = StudentQuery().age_range(30, 40).age_range(10, 11)
        assert [s.student_id for s in query.filter(students)] == [1]

    def test_raw_label_rejected(self):
        with pytest.raises(InvalidFieldError):
            StudentQuery().subject("Shooting")


class TestCashQuery:
    def test_student_filter(self, cash_records):
        assert [c.cash_id for c in CashQuery().student_id(1).filter(cash_records)] == [1, 3]

    def test_amount_range(self, cash_records):
        assert [c.cash_id for c in CashQuery().amount_range(-500, 150).filter(cash_records)] == [2, 3]

    def test_inverted_amount_range(self):
        with pytest.raises(InvalidRangeError):
            CashQuery().amount_range(100, -100)

    def test_date_range_uses_due_date_for_installments(self, cash_records):
        window = CashQuery().date_range(NOW - timedelta(days=3), NOW + timedelta(days=1))
        assert [c.cash_id for c in window.filter(cash_records)] == [2]
        later = CashQuery().date_range(NOW + timedelta(days=29), NOW + timedelta(days=31))
        assert [c.cash_id for c in later.filter(cash_records)] == [3]

    def test_installment_filters(self, cash_records):
        assert [c.cash_id for c in CashQuery().has_installment(True).filter(cash_records)] == [3]
        assert [c.cash_id for c in CashQuery().plan_id(3).filter(cash_records)] == [3]
        pending = CashQuery().installment_status(InstallmentStatus.PENDING)
        assert [c.cash_id for c in pending.filter(cash_records)] == [3]
        paid = CashQuery().installment_status(InstallmentStatus.PAID)
        assert paid.filter(cash_records) == []
