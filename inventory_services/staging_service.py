"""
inventory_services.staging_service -- incoming material awaiting receipt.

Staged rows describe a shipment line (customer, stock item, category,
quantity, unit cost).  They have no ledger effect until accepted into a
location: acceptance adds the quantity through the StockMutator and
deletes the staged row, both inside the caller's transaction.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_config.schema import DEFAULT_MATERIAL_TYPES
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentResult,
    EntryMetadata,
    NewRecordDefaults,
    StagedMaterialView,
)
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidUnitCostError,
    StagedMaterialNotFoundError,
    UnknownMaterialTypeError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.staged_material import StagedMaterial
from inventory_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.staging")


class StagingService:
    """Stage, list and accept incoming material."""

    def __init__(
        self,
        session: Session,
        mutator: StockMutator | None = None,
        clock: Clock | None = None,
        material_types: tuple[str, ...] = DEFAULT_MATERIAL_TYPES,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.mutator = mutator or StockMutator(session, clock=self.clock)
        self.material_types = material_types

    def stage(
        self,
        customer_id: str | None,
        stock_id: str,
        material_type: str,
        quantity: int,
        unit_cost: UnitCost,
        ownership: Ownership | str,
        min_quantity: int = 0,
        max_quantity: int = 0,
        description: str = "",
        is_active: bool = True,
    ) -> StagedMaterialView:
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "staged quantity must be positive")
        if not unit_cost.is_positive:
            raise InvalidUnitCostError(unit_cost.amount)
        if material_type not in self.material_types:
            raise UnknownMaterialTypeError(material_type, self.material_types)

        now = self.clock.now()
        staged = StagedMaterial(
            customer_id=customer_id,
            stock_id=stock_id,
            material_type=material_type,
            description=description,
            quantity=quantity,
            unit_cost_minor=unit_cost.minor_units,
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            is_active=is_active,
            ownership=Ownership.parse(ownership),
            created_at=now,
            updated_at=now,
        )
        self.session.add(staged)
        self.session.flush()
        logger.info(
            "material_staged",
            extra={
                "staged_id": staged.id,
                "stock_id": stock_id,
                "quantity": quantity,
                "unit_cost": str(unit_cost),
            },
        )
        return StagedMaterialView.from_model(staged)

    def list_pending(self) -> list[StagedMaterialView]:
        stmt = select(StagedMaterial).order_by(StagedMaterial.id)
        return [StagedMaterialView.from_model(s) for s in self.session.scalars(stmt)]

    def pending_count(self) -> int:
        return self.session.scalar(select(func.count()).select_from(StagedMaterial)) or 0

    def accept(
        self,
        staged_id: int,
        location_id: str,
        quantity: int | None = None,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> AdjustmentResult:
        """
        Receive a staged line into ``location_id``.

        ``quantity`` overrides the staged quantity (partial or over-delivery);
        the staged row is removed either way.
        """
        staged = self.session.get(StagedMaterial, staged_id, with_for_update=True)
        if staged is None:
            raise StagedMaterialNotFoundError(staged_id)

        received = staged.quantity if quantity is None else quantity
        if received <= 0:
            raise InvalidQuantityError(received, "accepted quantity must be positive")

        defaults = NewRecordDefaults(
            material_type=staged.material_type,
            customer_id=staged.customer_id,
            description=staged.description,
            notes=notes,
            min_quantity=staged.min_quantity,
            max_quantity=staged.max_quantity,
            is_active=staged.is_active,
            unit_cost=UnitCost(staged.unit_cost_minor),
        )
        result = self.mutator.adjust(
            staged.stock_id,
            location_id,
            staged.ownership,
            received,
            defaults=defaults,
            unit_cost=UnitCost(staged.unit_cost_minor),
            metadata=EntryMetadata(notes=notes, job_ticket=job_ticket),
        )

        self.session.delete(staged)
        self.session.flush()
        logger.info(
            "staged_material_accepted",
            extra={
                "staged_id": staged_id,
                "stock_id": result.record.stock_id,
                "location_id": location_id,
                "quantity": received,
            },
        )
        return result
