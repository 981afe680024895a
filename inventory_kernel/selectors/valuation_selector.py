"""
Module: inventory_kernel.selectors.valuation_selector
Responsibility: Transaction history, point-in-time balances, stock on hand
    and open-lot listings.  Each row is mapped field by field from labelled
    SQL columns into a frozen dataclass.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Balances are computed from ledger entries and lot increments only.
      Units merged into a lot after the cutoff are left out, so a balance
      for a past cutoff is unchanged by later activity.
    - History lists each receipt once: a merged lot shows its original
      quantity, and every merge appears as its own row at its own time.
    - Values are exact: products are summed in integer minor units and
      converted to Decimal once.
    - Bounds are compared in UTC; a plain ``date`` covers the whole UTC day.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select

from inventory_engines.fifo import LotState
from inventory_kernel.domain.dtos import StockRecordView
from inventory_kernel.domain.values import Ownership, UnitCost, minor_to_amount
from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.models.lot_increment import LotIncrement
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ReportFilter:
    """Optional filters shared by the reporting queries; None means 'any'."""

    stock_id: str | None = None
    customer_id: str | None = None
    ownership: Ownership | None = None
    location_id: str | None = None
    material_type: str | None = None
    date_from: date | datetime | None = None
    date_to: date | datetime | None = None


@dataclass(frozen=True)
class TransactionRow:
    """
    One receipt, deduction or merge.  For a merge, entry_id is the lot the
    units joined and lot_increment_id identifies the merge.
    """

    entry_id: int
    stock_id: str
    location_id: str
    ownership: Ownership
    customer_id: str | None
    material_type: str
    quantity_change: int
    unit_cost: UnitCost
    value: Decimal
    source_lot_id: int | None
    notes: str
    job_ticket: str | None
    occurred_at: datetime
    lot_increment_id: int | None = None


@dataclass(frozen=True)
class BalanceRow:
    stock_id: str
    material_type: str
    quantity: int
    value: Decimal


@dataclass(frozen=True)
class LotView:
    lot_id: int
    unit_cost: UnitCost
    quantity: int
    remaining: int
    occurred_at: datetime

    @property
    def state(self) -> LotState:
        return LotState.OPEN if self.remaining > 0 else LotState.EXHAUSTED

    @property
    def remaining_value(self) -> Decimal:
        return self.unit_cost.value_of(self.remaining)


def _as_utc(value: datetime) -> datetime:
    # naive datetimes are taken to be UTC already
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lower_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _upper_bound(value: date | datetime) -> tuple[datetime, bool]:
    """Return (bound, inclusive)."""
    if isinstance(value, datetime):
        return _as_utc(value), True
    next_day = datetime.combine(value + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return next_day, False


def _until(column, value: date | datetime):
    bound, inclusive = _upper_bound(value)
    if inclusive:
        return column <= bound
    return column < bound


def _after(column, value: date | datetime):
    bound, inclusive = _upper_bound(value)
    if inclusive:
        return column > bound
    return column >= bound


class ValuationSelector(BaseSelector):
    """
    Reporting queries over the ledger and the current snapshots.

    All queries are safe to repeat: running the same query twice with no
    intervening writes returns equal rows.
    """

    @staticmethod
    def _key_filters(filters: ReportFilter) -> list:
        clauses = []
        if filters.stock_id is not None:
            clauses.append(LedgerEntry.stock_id == filters.stock_id)
        if filters.customer_id is not None:
            clauses.append(LedgerEntry.customer_id == filters.customer_id)
        if filters.ownership is not None:
            clauses.append(LedgerEntry.ownership == Ownership.parse(filters.ownership))
        if filters.location_id is not None:
            clauses.append(LedgerEntry.location_id == filters.location_id)
        if filters.material_type is not None:
            clauses.append(LedgerEntry.material_type == filters.material_type)
        return clauses

    @staticmethod
    def _date_filters(column, filters: ReportFilter) -> list:
        clauses = []
        if filters.date_from is not None:
            clauses.append(column >= _lower_bound(filters.date_from))
        if filters.date_to is not None:
            clauses.append(_until(column, filters.date_to))
        return clauses

    def _merged_totals(self, lot_ids: list[int]) -> dict[int, int]:
        if not lot_ids:
            return {}
        stmt = (
            select(LotIncrement.lot_id, func.sum(LotIncrement.quantity))
            .where(LotIncrement.lot_id.in_(lot_ids))
            .group_by(LotIncrement.lot_id)
        )
        return {lot_id: int(total) for lot_id, total in self.session.execute(stmt)}

    def transaction_history(
        self, filters: ReportFilter | None = None
    ) -> list[TransactionRow]:
        """
        Every receipt, deduction and merge matching ``filters``, in the
        order they were recorded.
        """
        filters = filters or ReportFilter()
        entry_stmt = select(LedgerEntry).where(
            *self._key_filters(filters),
            *self._date_filters(LedgerEntry.occurred_at, filters),
        )
        entries = list(self.session.scalars(entry_stmt))
        merged = self._merged_totals([e.id for e in entries if e.quantity_change > 0])

        ordered: list[tuple[tuple[int, int, int], TransactionRow]] = []
        for entry in entries:
            cost = UnitCost(entry.unit_cost_minor)
            quantity = entry.quantity_change - merged.get(entry.id, 0)
            ordered.append(
                (
                    (entry.id, 0, 0),
                    TransactionRow(
                        entry_id=entry.id,
                        stock_id=entry.stock_id,
                        location_id=entry.location_id,
                        ownership=entry.ownership,
                        customer_id=entry.customer_id,
                        material_type=entry.material_type,
                        quantity_change=quantity,
                        unit_cost=cost,
                        value=cost.value_of(quantity),
                        source_lot_id=entry.source_lot_id,
                        notes=entry.notes,
                        job_ticket=entry.job_ticket,
                        occurred_at=entry.occurred_at,
                    ),
                )
            )

        increment_stmt = (
            select(LotIncrement, LedgerEntry)
            .join(LedgerEntry, LedgerEntry.id == LotIncrement.lot_id)
            .where(
                *self._key_filters(filters),
                *self._date_filters(LotIncrement.occurred_at, filters),
            )
        )
        for increment, lot in self.session.execute(increment_stmt):
            cost = UnitCost(lot.unit_cost_minor)
            ordered.append(
                (
                    (increment.preceding_entry_id, 1, increment.id),
                    TransactionRow(
                        entry_id=lot.id,
                        stock_id=lot.stock_id,
                        location_id=lot.location_id,
                        ownership=lot.ownership,
                        customer_id=lot.customer_id,
                        material_type=lot.material_type,
                        quantity_change=increment.quantity,
                        unit_cost=cost,
                        value=cost.value_of(increment.quantity),
                        source_lot_id=None,
                        notes=increment.notes,
                        job_ticket=increment.job_ticket,
                        occurred_at=increment.occurred_at,
                        lot_increment_id=increment.id,
                    ),
                )
            )

        ordered.sort(key=lambda pair: pair[0])
        return [row for _, row in ordered]

    def balance_as_of(
        self,
        as_of: date | datetime,
        filters: ReportFilter | None = None,
    ) -> list[BalanceRow]:
        """
        Quantity and value per (stock_id, material_type) at ``as_of``.

        ``date_from``/``date_to`` on the filter are ignored; the cutoff is
        ``as_of`` and every earlier entry counts.  Units merged into a lot
        after the cutoff are subtracted from that lot's contribution.
        """
        filters = filters or ReportFilter()
        key_filters = self._key_filters(filters)
        group = (LedgerEntry.stock_id, LedgerEntry.material_type)

        ledger_stmt = (
            select(
                LedgerEntry.stock_id.label("stock_id"),
                LedgerEntry.material_type.label("material_type"),
                func.sum(LedgerEntry.quantity_change).label("quantity"),
                func.sum(
                    LedgerEntry.quantity_change * LedgerEntry.unit_cost_minor
                ).label("value_minor"),
            )
            .where(*key_filters, _until(LedgerEntry.occurred_at, as_of))
            .group_by(*group)
            .order_by(*group)
        )
        late_stmt = (
            select(
                LedgerEntry.stock_id.label("stock_id"),
                LedgerEntry.material_type.label("material_type"),
                func.sum(LotIncrement.quantity).label("quantity"),
                func.sum(
                    LotIncrement.quantity * LedgerEntry.unit_cost_minor
                ).label("value_minor"),
            )
            .join(LedgerEntry, LedgerEntry.id == LotIncrement.lot_id)
            .where(
                *key_filters,
                _until(LedgerEntry.occurred_at, as_of),
                _after(LotIncrement.occurred_at, as_of),
            )
            .group_by(*group)
        )
        late: dict[tuple[str, str], tuple[int, int]] = defaultdict(lambda: (0, 0))
        for row in self.session.execute(late_stmt):
            late[(row.stock_id, row.material_type)] = (
                int(row.quantity or 0),
                int(row.value_minor or 0),
            )

        rows = []
        for row in self.session.execute(ledger_stmt):
            late_quantity, late_value = late[(row.stock_id, row.material_type)]
            rows.append(
                BalanceRow(
                    stock_id=row.stock_id,
                    material_type=row.material_type,
                    quantity=int(row.quantity or 0) - late_quantity,
                    value=minor_to_amount(int(row.value_minor or 0) - late_value),
                )
            )
        return rows

    def stock_on_hand(
        self, filters: ReportFilter | None = None
    ) -> list[StockRecordView]:
        """Current stock records, least recently updated first."""
        filters = filters or ReportFilter()
        stmt = select(StockRecord)
        if filters.stock_id is not None:
            stmt = stmt.where(StockRecord.stock_id == filters.stock_id)
        if filters.customer_id is not None:
            stmt = stmt.where(StockRecord.customer_id == filters.customer_id)
        if filters.ownership is not None:
            stmt = stmt.where(StockRecord.ownership == Ownership.parse(filters.ownership))
        if filters.location_id is not None:
            stmt = stmt.where(StockRecord.location_id == filters.location_id)
        if filters.material_type is not None:
            stmt = stmt.where(StockRecord.material_type == filters.material_type)
        stmt = stmt.order_by(StockRecord.updated_at, StockRecord.id)
        return [StockRecordView.from_model(r) for r in self.session.scalars(stmt)]

    def open_lots(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
    ) -> list[LotView]:
        """Lots of one key that still hold units, oldest first."""
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.stock_id == stock_id,
                LedgerEntry.location_id == location_id,
                LedgerEntry.ownership == Ownership.parse(ownership),
                LedgerEntry.quantity_change > 0,
                LedgerEntry.remaining_quantity > 0,
            )
            .order_by(LedgerEntry.id)
        )
        return [
            LotView(
                lot_id=lot.id,
                unit_cost=UnitCost(lot.unit_cost_minor),
                quantity=lot.quantity_change,
                remaining=lot.remaining_quantity,
                occurred_at=lot.occurred_at,
            )
            for lot in self.session.scalars(stmt)
        ]
