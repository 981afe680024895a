"""
Module: inventory_kernel.selectors.integrity_selector
Responsibility: Audit that every stock snapshot agrees with its ledger.

For each (stock_id, location_id, ownership) key, both
sum(quantity_change) and the sum of remaining_quantity over positive lots
must equal the StockRecord quantity (0 when no record exists).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, func, select

from inventory_kernel.domain.values import Ownership
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.integrity")


@dataclass(frozen=True)
class ConservationBreak:
    stock_id: str
    location_id: str
    ownership: Ownership
    record_quantity: int
    ledger_quantity: int
    open_lot_quantity: int


class LedgerIntegritySelector(BaseSelector):
    def conservation_breaks(self) -> list[ConservationBreak]:
        """Keys whose snapshot disagrees with the ledger; empty when healthy."""
        ledger_stmt = select(
            LedgerEntry.stock_id.label("stock_id"),
            LedgerEntry.location_id.label("location_id"),
            LedgerEntry.ownership.label("ownership"),
            func.sum(LedgerEntry.quantity_change).label("ledger_quantity"),
            func.sum(
                case(
                    (LedgerEntry.quantity_change > 0, LedgerEntry.remaining_quantity),
                    else_=0,
                )
            ).label("open_lot_quantity"),
        ).group_by(
            LedgerEntry.stock_id, LedgerEntry.location_id, LedgerEntry.ownership
        )
        ledger = {
            (row.stock_id, row.location_id, row.ownership): (
                int(row.ledger_quantity or 0),
                int(row.open_lot_quantity or 0),
            )
            for row in self.session.execute(ledger_stmt)
        }

        record_stmt = select(
            StockRecord.stock_id,
            StockRecord.location_id,
            StockRecord.ownership,
            StockRecord.quantity,
        )
        records = {
            (row.stock_id, row.location_id, row.ownership): row.quantity
            for row in self.session.execute(record_stmt)
        }

        breaks = []
        for key in sorted(set(ledger) | set(records), key=lambda k: (k[0], k[1], k[2].value)):
            record_qty = records.get(key, 0)
            ledger_qty, open_qty = ledger.get(key, (0, 0))
            if ledger_qty != record_qty or open_qty != record_qty:
                breaks.append(
                    ConservationBreak(
                        stock_id=key[0],
                        location_id=key[1],
                        ownership=key[2],
                        record_quantity=record_qty,
                        ledger_quantity=ledger_qty,
                        open_lot_quantity=open_qty,
                    )
                )

        if breaks:
            logger.error(
                "conservation_breaks_found",
                extra={"break_count": len(breaks)},
            )
        return breaks
