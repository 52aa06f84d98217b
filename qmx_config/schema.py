"""
Runtime configuration schema.

Frozen dataclasses parsed from YAML by ``qmx_config.loader``.  Defaults here
are the values used when a section or key is absent from the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StorageConfig:
    """Where the ledger snapshot lives."""

    database_url: str = "sqlite:///qmx_ledger.db"
    echo: bool = False


@dataclass(frozen=True)
class ManagerConfig:
    """Behaviour of the coordination facade."""

    auto_save: bool = True
    lock_timeout_seconds: float = 5.0
    enforce_status_transitions: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class QmxConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
