"""SQLAlchemy persistence collaborator for ledger snapshots."""

from qmx_kernel.db.engine import (
    create_engine_from_url,
    create_tables,
    drop_tables,
    session_scope,
)
from qmx_kernel.db.snapshot_repository import SqlSnapshotRepository

__all__ = [
    "create_engine_from_url",
    "create_tables",
    "drop_tables",
    "session_scope",
    "SqlSnapshotRepository",
]
