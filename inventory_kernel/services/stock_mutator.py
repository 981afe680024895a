"""
StockMutator -- the only writer of StockRecord quantities.

Responsibility:
    Apply a signed quantity delta to the (stock, location, ownership)
    snapshot and hand the same delta to the LotMatchingEngine so the ledger
    and the snapshot move together.

Lifecycle of a StockRecord:
    absent --(delta > 0, defaults given)--> created
    present --(any delta, result >= 0)--> updated
    present --(result == 0)--> deleted (ledger history stays)

Failure modes:
    - InvalidQuantityError for a zero delta.
    - InsufficientQuantityError when the result would be negative.
    - UnknownStockLocationError for a deduction where no record exists.
    - MissingRecordDefaultsError for a first arrival without defaults.
    - MissingUnitCostError / InvalidUnitCostError for additions.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    AdjustmentResult,
    EntryMetadata,
    NewRecordDefaults,
    StockRecordView,
)
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    InvalidUnitCostError,
    MissingRecordDefaultsError,
    MissingUnitCostError,
    UnknownStockLocationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.lot_matching import LotMatchingEngine

logger = get_logger("services.stock_mutator")


class StockMutator(BaseService):
    """
    Adjusts stock snapshots and records the matching ledger entries.

    Contract:
        Every call flushes exactly one snapshot change plus its ledger
        entries into the caller's transaction.  Nothing is committed here.
    """

    def __init__(
        self,
        session: Session,
        lot_engine: LotMatchingEngine | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.lot_engine = lot_engine or LotMatchingEngine(session, self.clock)

    def find_record(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership,
        lock: bool = False,
    ) -> StockRecord | None:
        """Load the record for a key, optionally FOR UPDATE."""
        stmt = select(StockRecord).where(
            StockRecord.stock_id == stock_id,
            StockRecord.location_id == location_id,
            StockRecord.ownership == ownership,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    def adjust(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
        delta: int,
        defaults: NewRecordDefaults | None = None,
        unit_cost: UnitCost | None = None,
        metadata: EntryMetadata | None = None,
    ) -> AdjustmentResult:
        """
        Change the quantity of ``stock_id`` at ``location_id`` by ``delta``.

        Args:
            defaults: Required when the record does not exist yet and
                ``delta > 0``; ignored otherwise.
            unit_cost: Required for additions.
            metadata: Notes / job ticket copied onto every ledger entry.
                A deduction with notes also replaces the record's notes.
        """
        ownership = Ownership.parse(ownership)
        metadata = metadata or EntryMetadata()

        if delta == 0:
            raise InvalidQuantityError(delta)
        if delta > 0:
            if unit_cost is None:
                raise MissingUnitCostError(stock_id, location_id)
            if not unit_cost.is_positive:
                raise InvalidUnitCostError(unit_cost.amount)

        now = self.clock.now()
        record = self.find_record(stock_id, location_id, ownership, lock=True)
        created = False

        if record is None:
            if delta < 0:
                logger.warning(
                    "stock_record_missing",
                    extra={
                        "stock_id": stock_id,
                        "location_id": location_id,
                        "ownership": ownership,
                        "delta": delta,
                    },
                )
                raise UnknownStockLocationError(stock_id, location_id, ownership.value)
            if defaults is None:
                raise MissingRecordDefaultsError(stock_id, location_id)
            record = StockRecord(
                stock_id=stock_id,
                location_id=location_id,
                ownership=ownership,
                customer_id=defaults.customer_id,
                material_type=defaults.material_type,
                description=defaults.description,
                notes=defaults.notes,
                quantity=delta,
                min_quantity=defaults.min_quantity,
                max_quantity=defaults.max_quantity,
                is_active=defaults.is_active,
                unit_cost_minor=unit_cost.minor_units,
                created_at=now,
                updated_at=now,
            )
            self.session.add(record)
            created = True
        else:
            new_quantity = record.quantity + delta
            if new_quantity < 0:
                logger.warning(
                    "stock_insufficient",
                    extra={
                        "stock_id": stock_id,
                        "location_id": location_id,
                        "requested": -delta,
                        "available": record.quantity,
                    },
                )
                raise InsufficientQuantityError(
                    stock_id, location_id, -delta, record.quantity
                )
            record.quantity = new_quantity
            record.updated_at = now
            if delta > 0:
                record.unit_cost_minor = unit_cost.minor_units
            elif metadata.notes:
                record.notes = metadata.notes

        self.session.flush()

        entries = self.lot_engine.apply(record, delta, unit_cost, metadata)
        view = StockRecordView.from_model(record)

        removed = False
        if record.quantity == 0:
            self.session.delete(record)
            self.session.flush()
            removed = True

        logger.info(
            "stock_adjusted",
            extra={
                "stock_id": stock_id,
                "location_id": location_id,
                "ownership": ownership,
                "delta": delta,
                "quantity": view.quantity,
                "record_created": created,
                "record_removed": removed,
                "entry_ids": [e.id for e in entries],
            },
        )
        return AdjustmentResult(
            record=view,
            entries=tuple(entries),
            created=created,
            removed=removed,
        )
