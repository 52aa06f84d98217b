"""
Snapshot -- Point-in-time, persistable image of the whole ledger.

Responsibility:
    Carries both stores' entities and id counters between the manager and the
    persistence collaborator, and serves as the rollback target when a save
    fails.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - ``next_student_id`` / ``next_cash_id`` are greater than every id in the
      snapshot, so a reload never reissues an id.
"""

from __future__ import annotations

from dataclasses import dataclass

from qmx_kernel.domain.cash import Cash
from qmx_kernel.domain.student import Student


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    students: tuple[Student, ...] = ()
    cash: tuple[Cash, ...] = ()
    next_student_id: int = 1
    next_cash_id: int = 1

    def __post_init__(self) -> None:
        highest_student = max((s.student_id for s in self.students), default=0)
        highest_cash = max((c.cash_id for c in self.cash), default=0)
        if self.next_student_id <= highest_student:
            raise ValueError(
                f"next_student_id {self.next_student_id} would reissue id {highest_student}"
            )
        if self.next_cash_id <= highest_cash:
            raise ValueError(
                f"next_cash_id {self.next_cash_id} would reissue id {highest_cash}"
            )

    @classmethod
    def empty(cls) -> LedgerSnapshot:
        return cls()
