"""
LotMatchingEngine -- records quantity changes as cost-lot ledger entries.

Responsibility:
    Given a StockRecord and a signed quantity delta, write the ledger entries
    that account for the change:

      addition   merge into the most recent open lot with the same unit cost
                 (recording a LotIncrement), or append a new lot;
      deduction  draw FIFO from open lots (plan from inventory_engines.fifo),
                 one negative entry per lot drawn, each at that lot's cost.

Architecture position:
    Kernel > Services -- imperative shell around the pure FIFO planner.

Invariants enforced:
    - sum(quantity_change) and sum(remaining_quantity) per key track the
      StockRecord quantity (the mutator changes both in one transaction).
    - Deductions are all-or-nothing: the full plan is computed before the
      first write.
    - Lots are read FOR UPDATE so concurrent writers on one key serialize
      on backends with row locks.

Failure modes:
    - InvalidQuantityError for a zero delta.
    - MissingUnitCostError / InvalidUnitCostError for additions.
    - NoCostBasisFoundError / InsufficientQuantityError for deductions.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_engines.fifo import (
    LotKey,
    LotSnapshot,
    plan_deduction,
    select_merge_target,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import EntryMetadata, LedgerEntryView
from inventory_kernel.domain.values import UnitCost
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidUnitCostError,
    MissingUnitCostError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.models.lot_increment import LotIncrement
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.base import BaseService

logger = get_logger("services.lot_matching")


class LotMatchingEngine(BaseService):
    """
    Persists additions and FIFO deductions for one matching key at a time.

    Contract:
        ``apply`` runs inside the caller's transaction and flushes.  It does
        not touch the StockRecord quantity; StockMutator owns that.

    Non-goals:
        - Does NOT validate the snapshot quantity (StockMutator does).
        - Does NOT reorder or rewrite history; only remaining_quantity and
          the equal-cost merge ever change an existing row.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        merge_equal_cost_lots: bool = True,
    ):
        super().__init__(session, clock)
        self.merge_equal_cost_lots = merge_equal_cost_lots

    def apply(
        self,
        record: StockRecord,
        quantity_delta: int,
        unit_cost: UnitCost | None = None,
        metadata: EntryMetadata | None = None,
    ) -> list[LedgerEntryView]:
        """
        Record ``quantity_delta`` units for ``record``'s key.

        Returns:
            The ledger entries written or updated, in id order.
        """
        metadata = metadata or EntryMetadata()
        if quantity_delta == 0:
            raise InvalidQuantityError(quantity_delta)

        if quantity_delta > 0:
            if unit_cost is None:
                raise MissingUnitCostError(record.stock_id, record.location_id)
            if not unit_cost.is_positive:
                raise InvalidUnitCostError(unit_cost.amount)
            return [self._add(record, quantity_delta, unit_cost, metadata)]

        return self._deduct(record, -quantity_delta, metadata)

    # ------------------------------------------------------------------
    # Additions
    # ------------------------------------------------------------------

    def _add(
        self,
        record: StockRecord,
        quantity: int,
        unit_cost: UnitCost,
        metadata: EntryMetadata,
    ) -> LedgerEntryView:
        now = self.clock.now()

        if self.merge_equal_cost_lots:
            lots = self._open_lots(record)
            target = select_merge_target(
                [self._snapshot(lot) for lot in lots], unit_cost
            )
            if target is not None:
                lot = next(lot for lot in lots if lot.id == target.lot_id)
                increment = LotIncrement(
                    lot_id=lot.id,
                    quantity=quantity,
                    preceding_entry_id=self._latest_entry_id(),
                    notes=metadata.notes,
                    job_ticket=metadata.job_ticket,
                    occurred_at=now,
                )
                lot.quantity_change += quantity
                lot.remaining_quantity += quantity
                lot.updated_at = now
                self.session.add(increment)
                self.session.flush()
                logger.info(
                    "lot_merged",
                    extra={
                        "lot_id": lot.id,
                        "increment_id": increment.id,
                        "stock_id": record.stock_id,
                        "location_id": record.location_id,
                        "quantity": quantity,
                        "unit_cost": str(unit_cost),
                        "remaining": lot.remaining_quantity,
                    },
                )
                return LedgerEntryView.from_model(lot)

        entry = LedgerEntry(
            stock_record_id=record.id,
            stock_id=record.stock_id,
            location_id=record.location_id,
            ownership=record.ownership,
            customer_id=record.customer_id,
            material_type=record.material_type,
            quantity_change=quantity,
            unit_cost_minor=unit_cost.minor_units,
            remaining_quantity=quantity,
            source_lot_id=None,
            notes=metadata.notes,
            job_ticket=metadata.job_ticket,
            occurred_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(
            "lot_created",
            extra={
                "lot_id": entry.id,
                "stock_id": record.stock_id,
                "location_id": record.location_id,
                "quantity": quantity,
                "unit_cost": str(unit_cost),
            },
        )
        return LedgerEntryView.from_model(entry)

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------

    def _deduct(
        self,
        record: StockRecord,
        quantity: int,
        metadata: EntryMetadata,
    ) -> list[LedgerEntryView]:
        key = LotKey(record.stock_id, record.location_id, record.ownership)
        lots = self._open_lots(record)
        plan = plan_deduction(
            key,
            [self._snapshot(lot) for lot in lots],
            quantity,
            last_source_lot_id=self._last_source_lot_id(record),
        )

        lots_by_id = {lot.id: lot for lot in lots}
        now = self.clock.now()
        written: list[LedgerEntry] = []

        for draw in plan.draws:
            lot = lots_by_id[draw.lot_id]
            lot.remaining_quantity = draw.remaining_after
            lot.updated_at = now
            entry = LedgerEntry(
                stock_record_id=record.id,
                stock_id=record.stock_id,
                location_id=record.location_id,
                ownership=record.ownership,
                customer_id=record.customer_id,
                material_type=record.material_type,
                quantity_change=-draw.quantity,
                unit_cost_minor=draw.unit_cost.minor_units,
                remaining_quantity=0,
                source_lot_id=lot.id,
                notes=metadata.notes,
                job_ticket=metadata.job_ticket,
                occurred_at=now,
                updated_at=now,
            )
            self.session.add(entry)
            written.append(entry)
            logger.info(
                "lot_consumed",
                extra={
                    "lot_id": lot.id,
                    "stock_id": record.stock_id,
                    "location_id": record.location_id,
                    "quantity": draw.quantity,
                    "unit_cost": str(draw.unit_cost),
                    "remaining": draw.remaining_after,
                },
            )

        self.session.flush()
        logger.info(
            "deduction_recorded",
            extra={
                "stock_id": record.stock_id,
                "location_id": record.location_id,
                "quantity": quantity,
                "lots_drawn": len(plan.draws),
                "value": plan.value,
            },
        )
        return [LedgerEntryView.from_model(e) for e in written]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _open_lots(self, record: StockRecord) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.stock_id == record.stock_id,
                LedgerEntry.location_id == record.location_id,
                LedgerEntry.ownership == record.ownership,
                LedgerEntry.quantity_change > 0,
                LedgerEntry.remaining_quantity > 0,
            )
            .order_by(LedgerEntry.id)
            .with_for_update()
        )
        return list(self.session.scalars(stmt))

    def _last_source_lot_id(self, record: StockRecord) -> int | None:
        stmt = (
            select(LedgerEntry.source_lot_id)
            .where(
                LedgerEntry.stock_id == record.stock_id,
                LedgerEntry.location_id == record.location_id,
                LedgerEntry.ownership == record.ownership,
                LedgerEntry.quantity_change < 0,
            )
            .order_by(LedgerEntry.id.desc())
            .limit(1)
        )
        return self.session.scalar(stmt)

    def _latest_entry_id(self) -> int:
        return self.session.scalar(select(func.max(LedgerEntry.id))) or 0

    @staticmethod
    def _snapshot(lot: LedgerEntry) -> LotSnapshot:
        return LotSnapshot(
            lot_id=lot.id,
            unit_cost=UnitCost(lot.unit_cost_minor),
            quantity=lot.quantity_change,
            remaining=lot.remaining_quantity,
        )
