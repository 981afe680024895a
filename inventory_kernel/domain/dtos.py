"""
DTOs -- frozen views returned across the kernel boundary.

Services and selectors never hand ORM instances to callers.  Each view is
built field by field from the row it describes (``from_model``), so a
renamed column fails loudly here instead of leaking a half-mapped object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from inventory_kernel.domain.values import Ownership, UnitCost


@dataclass(frozen=True)
class EntryMetadata:
    """Free-form context recorded on every ledger entry of one adjustment."""

    notes: str = ""
    job_ticket: str | None = None


@dataclass(frozen=True)
class NewRecordDefaults:
    """
    Descriptive fields used when a StockRecord is created on first arrival.

    Transfers capture these from the source record before deducting.
    """

    material_type: str
    customer_id: str | None = None
    description: str = ""
    notes: str = ""
    min_quantity: int = 0
    max_quantity: int = 0
    is_active: bool = True
    unit_cost: UnitCost | None = None

    @classmethod
    def from_record(cls, record: Any) -> NewRecordDefaults:
        return cls(
            material_type=record.material_type,
            customer_id=record.customer_id,
            description=record.description,
            notes=record.notes,
            min_quantity=record.min_quantity,
            max_quantity=record.max_quantity,
            is_active=record.is_active,
            unit_cost=UnitCost(record.unit_cost_minor),
        )


@dataclass(frozen=True)
class StockRecordView:
    id: int
    stock_id: str
    location_id: str
    ownership: Ownership
    customer_id: str | None
    material_type: str
    description: str
    notes: str
    quantity: int
    min_quantity: int
    max_quantity: int
    is_active: bool
    unit_cost: UnitCost
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, record: Any, quantity: int | None = None) -> StockRecordView:
        return cls(
            id=record.id,
            stock_id=record.stock_id,
            location_id=record.location_id,
            ownership=record.ownership,
            customer_id=record.customer_id,
            material_type=record.material_type,
            description=record.description,
            notes=record.notes,
            quantity=record.quantity if quantity is None else quantity,
            min_quantity=record.min_quantity,
            max_quantity=record.max_quantity,
            is_active=record.is_active,
            unit_cost=UnitCost(record.unit_cost_minor),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @property
    def below_minimum(self) -> bool:
        return self.quantity < self.min_quantity


@dataclass(frozen=True)
class LedgerEntryView:
    id: int
    stock_record_id: int | None
    stock_id: str
    location_id: str
    ownership: Ownership
    customer_id: str | None
    material_type: str
    quantity_change: int
    unit_cost: UnitCost
    remaining_quantity: int
    source_lot_id: int | None
    notes: str
    job_ticket: str | None
    occurred_at: datetime

    @classmethod
    def from_model(cls, entry: Any) -> LedgerEntryView:
        return cls(
            id=entry.id,
            stock_record_id=entry.stock_record_id,
            stock_id=entry.stock_id,
            location_id=entry.location_id,
            ownership=entry.ownership,
            customer_id=entry.customer_id,
            material_type=entry.material_type,
            quantity_change=entry.quantity_change,
            unit_cost=UnitCost(entry.unit_cost_minor),
            remaining_quantity=entry.remaining_quantity,
            source_lot_id=entry.source_lot_id,
            notes=entry.notes,
            job_ticket=entry.job_ticket,
            occurred_at=entry.occurred_at,
        )

    @property
    def value(self) -> Decimal:
        return self.unit_cost.value_of(self.quantity_change)


@dataclass(frozen=True)
class AdjustmentResult:
    """
    Outcome of one StockMutator.adjust call.

    ``record`` is the snapshot after the change.  When ``removed`` is true the
    row no longer exists and ``record.quantity`` is 0.
    """

    record: StockRecordView
    entries: tuple[LedgerEntryView, ...]
    created: bool = False
    removed: bool = False

    @property
    def quantity(self) -> int:
        return self.record.quantity


@dataclass(frozen=True)
class TransferResult:
    source: AdjustmentResult
    destination_record: StockRecordView
    destination_entries: tuple[LedgerEntryView, ...] = field(default_factory=tuple)

    @property
    def quantity(self) -> int:
        """Units moved (each source slice arrives unchanged)."""
        return -sum(e.quantity_change for e in self.source.entries)

    @property
    def value(self) -> Decimal:
        return -sum((e.value for e in self.source.entries), Decimal("0.00"))


@dataclass(frozen=True)
class StagedMaterialView:
    id: int
    customer_id: str | None
    stock_id: str
    material_type: str
    description: str
    quantity: int
    unit_cost: UnitCost
    min_quantity: int
    max_quantity: int
    is_active: bool
    ownership: Ownership
    created_at: datetime

    @classmethod
    def from_model(cls, staged: Any) -> StagedMaterialView:
        return cls(
            id=staged.id,
            customer_id=staged.customer_id,
            stock_id=staged.stock_id,
            material_type=staged.material_type,
            description=staged.description,
            quantity=staged.quantity,
            unit_cost=UnitCost(staged.unit_cost_minor),
            min_quantity=staged.min_quantity,
            max_quantity=staged.max_quantity,
            is_active=staged.is_active,
            ownership=staged.ownership,
            created_at=staged.created_at,
        )
