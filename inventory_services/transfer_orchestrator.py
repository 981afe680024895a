"""
inventory_services.transfer_orchestrator -- move stock between locations.

Responsibility:
    Deduct a quantity at the source location (FIFO, possibly split across
    several cost lots) and add each matched slice at the destination at the
    slice's original unit cost.

Architecture position:
    Services -- orchestration over kernel services.  Composes StockMutator
    (which drives the LotMatchingEngine) and runs inside the caller's
    transaction.

Invariants enforced:
    - Cost preservation: for every negative entry written at the source
      there is an addition of the same quantity at the same unit cost at
      the destination.
    - Value conservation: total value leaving the source equals total value
      arriving at the destination.
    - Atomicity: the orchestrator only flushes.  The facade commits the
      deduction and all additions together or rolls all of them back.

Failure modes:
    - InvalidQuantityError when quantity <= 0.
    - InvalidTransferError when source and destination are the same.
    - UnknownStockLocationError when the source holds no such record.
    - InsufficientQuantityError when the source holds fewer units.

Usage:
    with session_scope(operation="transfer") as session:
        result = TransferOrchestrator(session).transfer(
            "ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 7
        )
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    EntryMetadata,
    LedgerEntryView,
    NewRecordDefaults,
    StockRecordView,
    TransferResult,
)
from inventory_kernel.domain.values import Ownership
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    InvalidTransferError,
    UnknownStockLocationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.transfer")


class TransferOrchestrator:
    """
    Sequences a source deduction and matching destination additions.

    Contract:
        The destination record, when created, copies the source record's
        descriptive fields (category, description, notes, customer,
        min/max, active flag, cost) as they were before the deduction.
    """

    def __init__(
        self,
        session: Session,
        mutator: StockMutator | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.mutator = mutator or StockMutator(session, clock=clock)

    def transfer(
        self,
        stock_id: str,
        source_location_id: str,
        destination_location_id: str,
        ownership: Ownership | str,
        quantity: int,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> TransferResult:
        ownership = Ownership.parse(ownership)
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "transfer quantity must be positive")
        if source_location_id == destination_location_id:
            raise InvalidTransferError(
                stock_id, source_location_id, "source and destination are the same"
            )

        source = self.mutator.find_record(
            stock_id, source_location_id, ownership, lock=True
        )
        if source is None:
            raise UnknownStockLocationError(stock_id, source_location_id, ownership.value)
        if source.quantity < quantity:
            raise InsufficientQuantityError(
                stock_id, source_location_id, quantity, source.quantity
            )

        defaults = NewRecordDefaults.from_record(source)
        metadata = EntryMetadata(notes=notes, job_ticket=job_ticket)

        source_result = self.mutator.adjust(
            stock_id,
            source_location_id,
            ownership,
            -quantity,
            metadata=metadata,
        )

        destination_entries: list[LedgerEntryView] = []
        destination_record: StockRecordView | None = None
        for slice_entry in source_result.entries:
            result = self.mutator.adjust(
                stock_id,
                destination_location_id,
                ownership,
                -slice_entry.quantity_change,
                defaults=defaults,
                unit_cost=slice_entry.unit_cost,
                metadata=metadata,
            )
            destination_entries.extend(result.entries)
            destination_record = result.record

        transfer = TransferResult(
            source=source_result,
            destination_record=destination_record,
            destination_entries=tuple(destination_entries),
        )
        logger.info(
            "transfer_completed",
            extra={
                "stock_id": stock_id,
                "source_location_id": source_location_id,
                "destination_location_id": destination_location_id,
                "quantity": quantity,
                "slices": len(source_result.entries),
                "value": transfer.value,
            },
        )
        return transfer
