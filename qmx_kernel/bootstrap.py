"""
Module: qmx_kernel.bootstrap
Responsibility: Wire a ready-to-use ``QmxManager`` from configuration.
Architecture position: Kernel > composition root.  The only module that
    reads configuration, initializes logging and opens the database on the
    caller's behalf.

Failure modes:
    - Errors from ``qmx_config.get_active_config`` (missing file, bad YAML,
      schema violations) propagate unchanged.
    - SnapshotLoadError when the stored ledger cannot be read.
"""

from __future__ import annotations

from qmx_config import QmxConfig, get_active_config
from qmx_kernel.db.engine import create_engine_from_url, create_tables
from qmx_kernel.db.snapshot_repository import SqlSnapshotRepository
from qmx_kernel.domain.clock import Clock
from qmx_kernel.logging_config import configure_logging, get_logger
from qmx_kernel.services.manager import QmxManager
from qmx_kernel.services.persistence import SnapshotRepository

logger = get_logger("bootstrap")


def build_manager(
    config: QmxConfig | None = None,
    *,
    repository: SnapshotRepository | None = None,
    clock: Clock | None = None,
) -> QmxManager:
    """
    Build the process-wide manager.

    Args:
        config: Parsed configuration; the packaged defaults when omitted.
        repository: Persistence collaborator.  When omitted, a SQL-backed
            repository is opened at ``config.storage.database_url`` and its
            tables are created if missing.
        clock: Time source; the system clock when omitted.
    """
    if config is None:
        config = get_active_config()

    configure_logging(level=config.logging.level)

    if repository is None:
        engine = create_engine_from_url(
            config.storage.database_url, echo=config.storage.echo
        )
        create_tables(engine)
        repository = SqlSnapshotRepository(engine)
        logger.info(
            "storage_opened",
            extra={"database_url": engine.url.render_as_string(hide_password=True)},
        )

    return QmxManager(repository, clock=clock, config=config.manager)
