"""
Module: qmx_kernel.db.models
Responsibility: ORM rows for the persisted ledger snapshot -- students, cash
    records (installment columns inline) and the id counters -- plus the
    conversions between rows and domain entities.
Architecture position: Kernel > DB.  May import from db/base.py and the
    domain entity modules.  Used only by the SQL snapshot repository.

Invariants enforced:
    - Installment columns are either all NULL (plain record) or all set.
    - Enum members are stored by label, so a reload parses them strictly.
    - The id counters are persisted next to the rows, so ids issued before a
      restart are never issued again.

Failure modes:
    - UnknownEnumValueError / InvalidFieldError from ``to_entity`` when a row
      holds a value the domain rejects.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from qmx_kernel.db.base import Base
from qmx_kernel.domain.cash import Cash, Installment
from qmx_kernel.domain.student import Student
from qmx_kernel.domain.values import (
    ClassTier,
    InstallmentStatus,
    PaymentFrequency,
    Subject,
)

STUDENT_COUNTER = "student"
CASH_COUNTER = "cash"


class StudentRow(Base):
    __tablename__ = "students"

    student_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    age: Mapped[int] = mapped_column(nullable=False)
    class_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    subject: Mapped[str] = mapped_column(String(16), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    lesson_left: Mapped[int | None] = mapped_column(nullable=True)
    membership_start: Mapped[datetime | None] = mapped_column(nullable=True)
    membership_end: Mapped[datetime | None] = mapped_column(nullable=True)

    @classmethod
    def from_entity(cls, student: Student) -> StudentRow:
        return cls(
            student_id=student.student_id,
            name=student.name,
            age=student.age,
            class_tier=student.class_tier.value,
            subject=student.subject.value,
            phone=student.phone,
            note=student.note,
            rings=list(student.rings),
            lesson_left=student.lesson_left,
            membership_start=student.membership_start,
            membership_end=student.membership_end,
        )

    def to_entity(self) -> Student:
        return Student(
            student_id=self.student_id,
            name=self.name,
            age=self.age,
            class_tier=ClassTier.parse(self.class_tier),
            subject=Subject.parse(self.subject),
            phone=self.phone,
            note=self.note,
            rings=tuple(float(score) for score in self.rings),
            lesson_left=self.lesson_left,
            membership_start=self.membership_start,
            membership_end=self.membership_end,
        )


class CashRow(Base):
    __tablename__ = "cash_records"

    cash_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    student_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    amount: Mapped[int] = mapped_column(nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    # Embedded installment
    plan_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    total_amount: Mapped[int | None] = mapped_column(nullable=True)
    total_installments: Mapped[int | None] = mapped_column(nullable=True)
    current_installment: Mapped[int | None] = mapped_column(nullable=True)
    frequency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)

    @classmethod
    def from_entity(cls, cash: Cash) -> CashRow:
        row = cls(
            cash_id=cash.cash_id,
            student_id=cash.student_id,
            amount=cash.amount,
            note=cash.note,
            created_at=cash.created_at,
        )
        installment = cash.installment
        if installment is not None:
            row.plan_id = installment.plan_id
            row.total_amount = installment.total_amount
            row.total_installments = installment.total_installments
            row.current_installment = installment.current_installment
            row.frequency = installment.frequency.label
            row.due_date = installment.due_date
            row.status = installment.status.value
        return row

    def to_entity(self) -> Cash:
        installment = None
        if self.plan_id is not None:
            installment = Installment(
                plan_id=self.plan_id,
                total_amount=self.total_amount,
                total_installments=self.total_installments,
                current_installment=self.current_installment,
                frequency=PaymentFrequency.parse(self.frequency),
                due_date=self.due_date,
                status=InstallmentStatus.parse(self.status),
            )
        return Cash(
            cash_id=self.cash_id,
            amount=self.amount,
            created_at=self.created_at,
            student_id=self.student_id,
            note=self.note,
            installment=installment,
        )


class IdCounterRow(Base):
    """Next id to issue, one row per store."""

    __tablename__ = "id_counters"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    next_value: Mapped[int] = mapped_column(nullable=False)
