"""
YAML loader for inventory configuration sets.

Internal to ``inventory_config``.  Parses a single YAML document into the
frozen schema types and computes a deterministic checksum of the source.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DEFAULT_MATERIAL_TYPES,
    DatabaseSettings,
    InventoryConfig,
    LedgerSettings,
    LoggingSettings,
)

_VALID_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _require_int(data: dict[str, Any], key: str, default: int, minimum: int = 0) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    if "url" not in data:
        raise KeyError("database.url is required")
    return DatabaseSettings(
        url=str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=_require_int(data, "pool_size", 10, minimum=1),
        max_overflow=_require_int(data, "max_overflow", 5),
        pool_timeout=_require_int(data, "pool_timeout", 30, minimum=1),
        pool_recycle=_require_int(data, "pool_recycle", 1800, minimum=1),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _VALID_LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    return LoggingSettings(level=level)


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    types = data.get("material_types", list(DEFAULT_MATERIAL_TYPES))
    if not isinstance(types, list) or not types:
        raise ValueError("material_types must be a non-empty list")
    return LedgerSettings(
        merge_equal_cost_lots=bool(data.get("merge_equal_cost_lots", True)),
        material_types=tuple(str(t) for t in types),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any], database_url_override: str | None = None) -> InventoryConfig:
    """
    Build an InventoryConfig from a parsed YAML mapping.

    Raises:
        KeyError: required key missing.
        ValueError: a value fails validation.
    """
    for key in ("config_id", "version", "database"):
        if key not in data:
            raise KeyError(f"Configuration is missing required key: {key}")

    database = dict(data["database"] or {})
    if database_url_override:
        database["url"] = database_url_override

    return InventoryConfig(
        config_id=str(data["config_id"]),
        version=_require_int(data, "version", 1, minimum=1),
        database=parse_database(database),
        logging=parse_logging(data.get("logging") or {}),
        ledger=parse_ledger(data.get("ledger") or {}),
        checksum=compute_checksum(data),
    )
