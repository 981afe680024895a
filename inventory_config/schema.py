"""
InventoryConfig schema.

Frozen dataclasses produced by the loader from a YAML configuration set.
Nothing outside ``inventory_config`` constructs these from files; callers
obtain them through ``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_MATERIAL_TYPES: tuple[str, ...] = (
    "Envelope",
    "Card",
    "Carrier",
    "Insert",
    "Consumables",
)


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    merge_equal_cost_lots: bool = True
    material_types: tuple[str, ...] = DEFAULT_MATERIAL_TYPES


@dataclass(frozen=True)
class InventoryConfig:
    config_id: str
    version: int
    database: DatabaseSettings
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    checksum: str = ""
