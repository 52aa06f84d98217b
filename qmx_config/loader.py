"""
Configuration Loader (``qmx_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed, frozen
``qmx_config.schema`` dataclasses.  Runtime callers go through
``qmx_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Absent sections and keys take the schema defaults.
* Present keys must have the right type; nothing is coerced silently.
* Unknown keys are rejected so that a typo never passes for a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  content for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong type, unknown key or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any

import yaml

from qmx_config.schema import LoggingConfig, ManagerConfig, QmxConfig, StorageConfig

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _check_type(section: str, key: str, value: Any, expected: type) -> Any:
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if expected is not bool and isinstance(value, bool):
        raise ValueError(f"{section}.{key}: expected {expected.__name__}, got bool")
    if not isinstance(value, expected):
        raise ValueError(
            f"{section}.{key}: expected {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _parse_section(section: str, data: Any, cls: type) -> Any:
    default = cls()
    if data is None:
        return default
    if not isinstance(data, dict):
        raise ValueError(f"{section}: expected a mapping, got {type(data).__name__}")
    known = {f.name: type(getattr(default, f.name)) for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"{section}: unknown key(s) {', '.join(unknown)}")
    values = {
        key: _check_type(section, key, value, known[key]) for key, value in data.items()
    }
    return replace(default, **values)


def parse_config(data: dict[str, Any]) -> QmxConfig:
    """
    Parse a ``QmxConfig`` from a dict.

    Raises:
        ValueError: unknown section/key, wrong type, or invalid value.
    """
    sections = {"storage", "manager", "logging"}
    unknown = sorted(set(data) - sections)
    if unknown:
        raise ValueError(f"unknown section(s) {', '.join(unknown)}")

    storage = _parse_section("storage", data.get("storage"), StorageConfig)
    manager = _parse_section("manager", data.get("manager"), ManagerConfig)
    logging_cfg = _parse_section("logging", data.get("logging"), LoggingConfig)

    if not storage.database_url:
        raise ValueError("storage.database_url must not be empty")
    if manager.lock_timeout_seconds <= 0:
        raise ValueError("manager.lock_timeout_seconds must be greater than 0")
    level = logging_cfg.level.upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level: unknown level {logging_cfg.level!r}")

    config = QmxConfig(
        storage=storage,
        manager=manager,
        logging=LoggingConfig(level=level),
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: QmxConfig) -> str:
    """Deterministic SHA-256 of the parsed configuration (checksum excluded)."""
    payload = asdict(config)
    payload.pop("checksum", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
