"""
Module: inventory_kernel.models.stock_record
Responsibility: ORM persistence for the current-quantity snapshot of one stock
    item at one location under one ownership.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - (stock_id, location_id, ownership) is unique.
    - quantity >= 0 (CHECK constraint); a record whose quantity reaches zero
      is deleted by the StockMutator.
    - quantity equals the sum of quantity_change over the ledger entries for
      the same key (maintained by StockMutator + LotMatchingEngine within one
      transaction).

Failure modes:
    - IntegrityError on a duplicate key or a negative quantity.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Enum, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TimestampedBase
from inventory_kernel.domain.values import Ownership


def ownership_column_type() -> Enum:
    """Column type shared by every table that stores an Ownership."""
    return Enum(
        Ownership,
        name="ownership",
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


class StockRecord(TimestampedBase):
    """
    Current quantity of a stock item at a location.

    Contract:
        Mutated only through StockMutator.adjust(); never updated directly
        by callers.  Descriptive fields (description, notes, min/max, active
        flag, unit cost) are copied to a destination record on the first
        transfer into a new location.

    Non-goals:
        - Does NOT hold cost lots; those are LedgerEntry rows.
        - ``unit_cost_minor`` is informational (last cost seen), not a
          valuation input.
    """

    __tablename__ = "stock_records"

    __table_args__ = (
        UniqueConstraint(
            "stock_id", "location_id", "ownership", name="uq_stock_record_key"
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_record_quantity_non_negative"),
        Index("idx_stock_record_customer", "customer_id"),
        Index("idx_stock_record_updated", "updated_at"),
    )

    stock_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ownership: Mapped[Ownership] = mapped_column(
        ownership_column_type(), nullable=False
    )
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    material_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    max_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    unit_cost_minor: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<StockRecord {self.stock_id}@{self.location_id} "
            f"{self.ownership.value} qty={self.quantity}>"
        )
