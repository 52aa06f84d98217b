"""
qmx_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Components receive the parsed ``QmxConfig``
    (or one of its sections) from the bootstrap; they never read files or
    environment variables themselves.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- schema validation failed.

Audit relevance:
    Every successful call emits a ``config_loaded`` log entry with the source
    path and checksum of the parsed configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

from qmx_config.loader import load_yaml_file, parse_config
from qmx_config.schema import LoggingConfig, ManagerConfig, QmxConfig, StorageConfig

_logger = logging.getLogger("qmx_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> QmxConfig:
    """Load, validate and return the configuration at ``path``.

    Falls back to the packaged ``defaults.yaml`` when no path is given.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(source))
    _logger.info(
        "config_loaded",
        extra={"config_path": str(source), "checksum": config.checksum},
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "ManagerConfig",
    "QmxConfig",
    "StorageConfig",
    "get_active_config",
]
