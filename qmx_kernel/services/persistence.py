"""
Persistence contract between the manager and the snapshot owner.

Responsibility:
    Defines the only two calls the kernel makes to its persistence
    collaborator -- "hand me a loadable snapshot" and "durably store this
    snapshot" -- and an in-memory implementation for ephemeral managers and
    tests.

Architecture position:
    Kernel > Services.  The manager depends on ``SnapshotRepository`` only;
    the SQLAlchemy implementation lives in ``qmx_kernel.db``.

Invariants enforced:
    - ``save`` either stores the whole snapshot or raises; a repository never
      keeps part of a snapshot.
    - ``load`` returns None when nothing was ever saved.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from qmx_kernel.domain.snapshot import LedgerSnapshot


@runtime_checkable
class SnapshotRepository(Protocol):
    def load(self) -> LedgerSnapshot | None:
        """Return the last durably stored snapshot, or None."""
        ...

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Durably store ``snapshot``, replacing the previous one."""
        ...


class InMemorySnapshotRepository:
    """Keeps the last saved snapshot in memory.  Snapshots are immutable."""

    def __init__(self, initial: LedgerSnapshot | None = None):
        self._snapshot = initial
        self.save_count = 0

    def load(self) -> LedgerSnapshot | None:
        return self._snapshot

    def save(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot
        self.save_count += 1
