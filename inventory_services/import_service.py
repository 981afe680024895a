"""
inventory_services.import_service -- bulk load opening stock from CSV.

Each row creates (or adds to) a stock record and writes its opening cost
lot.  Rows go through the StockMutator, so the snapshot and the ledger
stay in step exactly as they do for interactive receipts.

Expected columns (header row required):

    customer_name, customer_code, location, stock_id, material_type,
    description, notes, quantity, min_quantity, max_quantity, is_active,
    ownership, unit_cost

``ownership`` accepts house/customer (or the legacy Tag/Customer labels).
Rows with quantity 0 are skipped: a stock record cannot exist empty.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from inventory_kernel.domain.dtos import EntryMetadata, NewRecordDefaults
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import ImportRowError, InventoryKernelError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.import")

IMPORT_COLUMNS = (
    "customer_name",
    "customer_code",
    "location",
    "stock_id",
    "material_type",
    "description",
    "notes",
    "quantity",
    "min_quantity",
    "max_quantity",
    "is_active",
    "ownership",
    "unit_cost",
)

_TRUE = frozenset({"1", "true", "yes", "y", "t"})
_FALSE = frozenset({"0", "false", "no", "n", "f", ""})


@dataclass(frozen=True)
class ImportRow:
    line_number: int
    customer_name: str
    customer_code: str | None
    location_id: str
    stock_id: str
    material_type: str
    description: str
    notes: str
    quantity: int
    min_quantity: int
    max_quantity: int
    is_active: bool
    ownership: Ownership
    unit_cost: UnitCost


@dataclass(frozen=True)
class ImportSummary:
    rows_read: int
    rows_applied: int
    rows_skipped: int
    entry_ids: tuple[int, ...] = field(default_factory=tuple)


def _parse_int(raw: str, column: str, line_number: int) -> int:
    try:
        value = int(raw.strip() or "0")
    except ValueError:
        raise ImportRowError(line_number, f"{column} is not an integer: {raw!r}") from None
    if value < 0:
        raise ImportRowError(line_number, f"{column} cannot be negative: {value}")
    return value


def _parse_bool(raw: str, line_number: int) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ImportRowError(line_number, f"is_active is not a boolean: {raw!r}")


def parse_row(raw: dict[str, str], line_number: int) -> ImportRow:
    """Validate one CSV mapping into an ImportRow."""
    missing = [c for c in IMPORT_COLUMNS if raw.get(c) is None]
    if missing:
        raise ImportRowError(line_number, f"missing columns: {', '.join(missing)}")

    stock_id = raw["stock_id"].strip()
    location_id = raw["location"].strip()
    if not stock_id or not location_id:
        raise ImportRowError(line_number, "stock_id and location are required")

    try:
        ownership = Ownership.parse(raw["ownership"])
    except ValueError as e:
        raise ImportRowError(line_number, str(e)) from e
    try:
        unit_cost = UnitCost.of(raw["unit_cost"])
    except InventoryKernelError as e:
        raise ImportRowError(line_number, str(e)) from e

    return ImportRow(
        line_number=line_number,
        customer_name=raw["customer_name"].strip(),
        customer_code=raw["customer_code"].strip() or None,
        location_id=location_id,
        stock_id=stock_id,
        material_type=raw["material_type"].strip(),
        description=raw["description"].strip(),
        notes=raw["notes"].strip(),
        quantity=_parse_int(raw["quantity"], "quantity", line_number),
        min_quantity=_parse_int(raw["min_quantity"], "min_quantity", line_number),
        max_quantity=_parse_int(raw["max_quantity"], "max_quantity", line_number),
        is_active=_parse_bool(raw["is_active"], line_number),
        ownership=ownership,
        unit_cost=unit_cost,
    )


def read_import_csv(path: Path | str) -> list[ImportRow]:
    """Parse every row of an import file; the header is line 1."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        return [parse_row(raw, line_number) for line_number, raw in enumerate(reader, start=2)]


class StockImporter:
    """Applies parsed rows as additions through the StockMutator."""

    def __init__(self, mutator: StockMutator):
        self.mutator = mutator

    def import_rows(self, rows: Iterable[ImportRow]) -> ImportSummary:
        read = applied = skipped = 0
        entry_ids: list[int] = []
        for row in rows:
            read += 1
            if row.quantity == 0:
                skipped += 1
                logger.info(
                    "import_row_skipped",
                    extra={"line_number": row.line_number, "stock_id": row.stock_id},
                )
                continue
            result = self.mutator.adjust(
                row.stock_id,
                row.location_id,
                row.ownership,
                row.quantity,
                defaults=NewRecordDefaults(
                    material_type=row.material_type,
                    customer_id=row.customer_code,
                    description=row.description,
                    notes=row.notes,
                    min_quantity=row.min_quantity,
                    max_quantity=row.max_quantity,
                    is_active=row.is_active,
                    unit_cost=row.unit_cost,
                ),
                unit_cost=row.unit_cost,
                metadata=EntryMetadata(notes=row.notes),
            )
            applied += 1
            entry_ids.extend(e.id for e in result.entries)

        summary = ImportSummary(
            rows_read=read,
            rows_applied=applied,
            rows_skipped=skipped,
            entry_ids=tuple(entry_ids),
        )
        logger.info(
            "import_completed",
            extra={
                "rows_read": read,
                "rows_applied": applied,
                "rows_skipped": skipped,
            },
        )
        return summary
