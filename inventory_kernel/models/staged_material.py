"""
Module: inventory_kernel.models.staged_material
Responsibility: ORM persistence for incoming material awaiting acceptance.  A
    staged row has no ledger effect; accepting it adds the quantity at a
    location through the StockMutator and deletes the staged row in the same
    transaction.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TimestampedBase
from inventory_kernel.domain.values import Ownership
from inventory_kernel.models.stock_record import ownership_column_type


class StagedMaterial(TimestampedBase):
    """Incoming shipment line not yet received into a location."""

    __tablename__ = "staged_materials"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_staged_material_quantity_positive"),
        CheckConstraint("unit_cost_minor > 0", name="ck_staged_material_cost_positive"),
    )

    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stock_id: Mapped[str] = mapped_column(String(64), nullable=False)
    material_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost_minor: Mapped[int] = mapped_column(nullable=False)
    min_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    max_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    ownership: Mapped[Ownership] = mapped_column(
        ownership_column_type(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<StagedMaterial #{self.id} {self.stock_id} qty={self.quantity}>"
