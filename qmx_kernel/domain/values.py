"""
Values -- Enumerations and small immutable value objects.

Responsibility:
    Defines the closed vocabularies of the ledger (class tier, subject,
    installment status, payment frequency, reporting period, membership
    status and plan) together with their explicit, fallible label parsing.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module.

Invariants enforced:
    - The core only handles enum members.  Raw labels are converted at the
      boundary with ``parse()``, which raises ``UnknownEnumValueError`` for an
      unrecognized label instead of falling back to a default member.
    - Custom payment frequencies span 1..365 days.

Failure modes:
    - UnknownEnumValueError from ``parse()``.
    - InvalidFieldError when a custom frequency is out of range.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from qmx_kernel.exceptions import InvalidFieldError, UnknownEnumValueError

CUSTOM_FREQUENCY_MIN_DAYS = 1
CUSTOM_FREQUENCY_MAX_DAYS = 365


class LabelledEnum(str, Enum):
    """String enum whose values are the labels used at the boundary."""

    @classmethod
    def parse(cls, label: str):
        """Return the member whose value is ``label``.

        Raises:
            UnknownEnumValueError: if no member carries that label.
        """
        for member in cls:
            if member.value == label:
                return member
        raise UnknownEnumValueError(cls.__name__, label, [m.value for m in cls])


class ClassTier(LabelledEnum):
    """Course package a student is enrolled in."""

    SHORT_TERM = "TenTry"
    MONTHLY = "Month"
    YEARLY = "Year"
    OTHER = "Others"


class Subject(LabelledEnum):
    """Discipline a student trains in."""

    SHOOTING = "Shooting"
    ARCHERY = "Archery"
    OTHER = "Others"


class InstallmentStatus(LabelledEnum):
    """Lifecycle status of a single installment.

    Automated transitions: PENDING -> PAID, PENDING -> OVERDUE,
    PENDING | OVERDUE -> CANCELLED.  PAID and CANCELLED are terminal.
    """

    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class TimePeriod(LabelledEnum):
    """Reporting window for financial statistics, anchored at call time."""

    TODAY = "Today"
    THIS_WEEK = "ThisWeek"
    THIS_MONTH = "ThisMonth"
    THIS_YEAR = "ThisYear"


class MembershipStatus(LabelledEnum):
    """Where "now" falls relative to a student's membership window."""

    NONE = "None"
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    EXPIRED = "Expired"


class MembershipPlan(LabelledEnum):
    """Fixed-length membership packages sold at the desk."""

    MONTH = "month"
    YEAR = "year"

    @property
    def duration(self) -> timedelta:
        return timedelta(days=30) if self is MembershipPlan.MONTH else timedelta(days=365)


class FrequencyKind(LabelledEnum):
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    CUSTOM = "Custom"


_FIXED_INTERVAL_DAYS = {
    FrequencyKind.WEEKLY: 7,
    FrequencyKind.MONTHLY: 30,
    FrequencyKind.QUARTERLY: 90,
}


@dataclass(frozen=True, slots=True)
class PaymentFrequency:
    """
    How often installments of a plan fall due.

    Contract:
        ``days`` is set only for CUSTOM frequencies, and is then in 1..365.

    Guarantees:
        - Immutable and hashable.
        - ``label`` round-trips through ``parse``: "Weekly", "Monthly",
          "Quarterly" or "Custom<N>".
    """

    kind: FrequencyKind
    days: int | None = None

    def __post_init__(self) -> None:
        if self.kind is FrequencyKind.CUSTOM:
            if (
                not isinstance(self.days, int)
                or isinstance(self.days, bool)
                or not CUSTOM_FREQUENCY_MIN_DAYS <= self.days <= CUSTOM_FREQUENCY_MAX_DAYS
            ):
                raise InvalidFieldError(
                    "frequency",
                    self.days,
                    f"custom frequency must span {CUSTOM_FREQUENCY_MIN_DAYS}-"
                    f"{CUSTOM_FREQUENCY_MAX_DAYS} days",
                )
        elif self.days is not None:
            raise InvalidFieldError(
                "frequency", self.days, f"{self.kind.value} takes no day count"
            )

    @classmethod
    def weekly(cls) -> PaymentFrequency:
        return cls(FrequencyKind.WEEKLY)

    @classmethod
    def monthly(cls) -> PaymentFrequency:
        return cls(FrequencyKind.MONTHLY)

    @classmethod
    def quarterly(cls) -> PaymentFrequency:
        return cls(FrequencyKind.QUARTERLY)

    @classmethod
    def custom(cls, days: int) -> PaymentFrequency:
        return cls(FrequencyKind.CUSTOM, days)

    @classmethod
    def parse(cls, label: str) -> PaymentFrequency:
        """Parse "Weekly" / "Monthly" / "Quarterly" / "Custom<N>"."""
        if label.startswith(FrequencyKind.CUSTOM.value):
            digits = label[len(FrequencyKind.CUSTOM.value):]
            if not digits.isdigit():
                raise InvalidFieldError(
                    "frequency", label, "custom frequency must be Custom<days>"
                )
            return cls.custom(int(digits))
        kind = FrequencyKind.parse(label)
        return cls(kind)

    @property
    def label(self) -> str:
        if self.kind is FrequencyKind.CUSTOM:
            return f"{self.kind.value}{self.days}"
        return self.kind.value

    @property
    def interval(self) -> timedelta:
        """Distance between two consecutive due dates."""
        if self.kind is FrequencyKind.CUSTOM:
            return timedelta(days=self.days)
        return timedelta(days=_FIXED_INTERVAL_DAYS[self.kind])

    def __str__(self) -> str:
        return self.label
