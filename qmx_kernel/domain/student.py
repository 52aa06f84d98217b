"""
Student -- Immutable student entity and membership window logic.

Responsibility:
    Holds a student's profile, score history ("rings"), remaining lessons
    and optional membership window, and derives membership activity from an
    injected "now".

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Created by ``StudentBuilder``, replaced by ``StudentUpdater``, owned by
    ``StudentStore``.

Invariants enforced:
    - Membership is fully absent (both bounds None) or fully present (both
      bounds set, start < end).  Checked on every construction, so an updater
      can never produce a half-open window.

Failure modes:
    - InvalidFieldError when exactly one membership bound is set.
    - MembershipWindowError when start >= end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from qmx_kernel.domain.values import ClassTier, MembershipStatus, Subject
from qmx_kernel.exceptions import InvalidFieldError, MembershipWindowError


def check_membership_window(
    start: datetime | None, end: datetime | None
) -> None:
    """Raise unless the window is fully absent or fully present and ordered."""
    if start is None and end is None:
        return
    if start is None or end is None:
        raise InvalidFieldError(
            "membership",
            (start, end),
            "start and end must both be set or both be cleared",
        )
    if start >= end:
        raise MembershipWindowError(start, end)


@dataclass(frozen=True, slots=True)
class Student:
    """
    A student record.

    Guarantees:
        - Immutable; every change goes through the store as a whole new value.
        - ``rings`` keeps scores in the order they were recorded.
    """

    student_id: int
    name: str
    age: int
    class_tier: ClassTier = ClassTier.OTHER
    subject: Subject = Subject.OTHER
    phone: str = ""
    note: str = ""
    rings: tuple[float, ...] = ()
    lesson_left: int | None = None
    membership_start: datetime | None = None
    membership_end: datetime | None = None

    def __post_init__(self) -> None:
        check_membership_window(self.membership_start, self.membership_end)

    @property
    def has_membership(self) -> bool:
        return self.membership_start is not None

    def is_membership_active(self, now: datetime) -> bool:
        if not self.has_membership:
            return False
        return self.membership_start <= now <= self.membership_end

    def membership_days_remaining(self, now: datetime) -> int | None:
        """Whole days left in the window; 0 once it has ended."""
        if not self.has_membership:
            return None
        if now >= self.membership_end:
            return 0
        return (self.membership_end - now).days

    def membership_status(self, now: datetime) -> MembershipStatus:
        if not self.has_membership:
            return MembershipStatus.NONE
        if now < self.membership_start:
            return MembershipStatus.UPCOMING
        if now > self.membership_end:
            return MembershipStatus.EXPIRED
        return MembershipStatus.ACTIVE

    @property
    def average_score(self) -> float | None:
        if not self.rings:
            return None
        return sum(self.rings) / len(self.rings)
