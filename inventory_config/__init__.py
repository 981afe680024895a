"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  It reads a named YAML set from ``inventory_config/sets``,
    applies the ``INVENTORY_DATABASE_URL`` override, validates, and returns
    a frozen ``InventoryConfig``.

Architecture position:
    Sits above ``inventory_kernel`` and below ``inventory_services``.
    The kernel never imports from here; services pass plain values
    (database URL, merge flag, material types) down.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Every successful call emits an ``INVENTORY_CONFIG_TRACE`` log entry with
the config id, version and checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_config
from inventory_config.schema import (
    DatabaseSettings,
    InventoryConfig,
    LedgerSettings,
    LoggingSettings,
)
from inventory_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"


def get_active_config(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> InventoryConfig:
    """
    Load, validate and return the named configuration set.

    Args:
        set_name: File stem of the YAML set (``default`` -> default.yaml).
        config_dir: Override path to the sets directory.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{set_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No configuration set {set_name!r} in {sets_dir}")

    config = parse_config(
        load_yaml_file(path),
        database_url_override=os.environ.get(DATABASE_URL_ENV),
    )

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "merge_equal_cost_lots": config.ledger.merge_equal_cost_lots,
        },
    )
    return config


__all__ = [
    "DATABASE_URL_ENV",
    "DatabaseSettings",
    "InventoryConfig",
    "LedgerSettings",
    "LoggingSettings",
    "get_active_config",
]
