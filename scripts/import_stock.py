#!/usr/bin/env python3
"""
Load opening stock from a CSV file.

Every row becomes a stock record (or adds to an existing one) with an
opening cost lot, all in one transaction: a bad row aborts the whole file.

Usage:
    python3 scripts/import_stock.py stock.csv
    python3 scripts/import_stock.py stock.csv --config default --create-tables
    python3 scripts/import_stock.py stock.csv --dry-run
"""

import argparse
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Import opening stock and cost lots from CSV.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("csv_path", type=Path, help="CSV file with a header row")
    parser.add_argument(
        "--config",
        default="default",
        help="Configuration set name under inventory_config/sets (default: default)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before importing",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and validate the file without writing",
    )
    args = parser.parse_args()

    from inventory_config import get_active_config
    from inventory_kernel.db.engine import create_tables
    from inventory_kernel.exceptions import InventoryKernelError
    from inventory_services.import_service import read_import_csv
    from inventory_services.inventory_service import InventoryService

    if not args.csv_path.is_file():
        print(f"File not found: {args.csv_path}", file=sys.stderr)
        return 2

    try:
        rows = read_import_csv(args.csv_path)
    except InventoryKernelError as e:
        print(f"[{e.code}] {e}", file=sys.stderr)
        return 1

    if args.dry_run:
        print(f"{len(rows)} rows parsed; nothing written (dry run)")
        return 0

    inventory = InventoryService.from_config(get_active_config(args.config))
    if args.create_tables:
        create_tables()

    try:
        summary = inventory.import_rows(rows)
    except InventoryKernelError as e:
        print(f"[{e.code}] {e}", file=sys.stderr)
        return 1

    print(
        f"rows read: {summary.rows_read}  applied: {summary.rows_applied}  "
        f"skipped: {summary.rows_skipped}  ledger entries: {len(summary.entry_ids)}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
