"""
Module: inventory_kernel.models.ledger_entry
Responsibility: ORM persistence for the append-only cost-lot ledger.  A positive
    entry is a cost lot (units received at one unit cost, with the portion
    still available in remaining_quantity).  A negative entry records units
    drawn from exactly one lot, at that lot's unit cost.
Architecture position: Kernel > Models.  May import from db/base.py,
    domain/values.py and models/stock_record.py only.

Invariants enforced:
    - quantity_change != 0.
    - 0 <= remaining_quantity <= quantity_change for positive entries;
      remaining_quantity == 0 for negative entries.
    - The matching key (stock_id, location_id, ownership) is denormalised onto
      the entry so history survives deletion of the StockRecord
      (stock_record_id is then set to NULL).
    - id order is the FIFO order.
    - Entries are never deleted; only remaining_quantity (consumption) and the
      equal-cost merge may change a row (db/immutability.py).  Each merge
      also appends a LotIncrement recording when the extra units arrived.

Failure modes:
    - IntegrityError when a CHECK constraint is violated.
    - ImmutabilityViolationError on a forbidden update or any delete.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, IdentityInteger
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.models.stock_record import ownership_column_type


class LedgerEntry(Base):
    """
    One signed quantity change at one unit cost.

    Contract:
        Created only by LotMatchingEngine.  Positive entries are cost lots;
        negative entries reference the lot they consumed via source_lot_id.

    Non-goals:
        - No ORM relationships; the FIFO engine works on explicit queries
          over the matching key.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("quantity_change <> 0", name="ck_ledger_entry_nonzero"),
        CheckConstraint(
            "remaining_quantity >= 0", name="ck_ledger_entry_remaining_non_negative"
        ),
        CheckConstraint(
            "(quantity_change > 0 AND remaining_quantity <= quantity_change)"
            " OR (quantity_change < 0 AND remaining_quantity = 0)",
            name="ck_ledger_entry_remaining_bounded",
        ),
        CheckConstraint("unit_cost_minor >= 0", name="ck_ledger_entry_cost_non_negative"),
        # FIFO scan: lots for a key in id order
        Index("idx_ledger_entry_key", "stock_id", "location_id", "ownership", "id"),
        # Point-in-time balance
        Index("idx_ledger_entry_occurred", "occurred_at"),
        Index("idx_ledger_entry_customer", "customer_id"),
    )

    stock_record_id: Mapped[int | None] = mapped_column(
        IdentityInteger,
        ForeignKey("stock_records.id", ondelete="SET NULL"),
        nullable=True,
    )
    stock_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ownership: Mapped[Ownership] = mapped_column(
        ownership_column_type(), nullable=False
    )
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    material_type: Mapped[str] = mapped_column(String(32), nullable=False)

    quantity_change: Mapped[int] = mapped_column(nullable=False)
    unit_cost_minor: Mapped[int] = mapped_column(nullable=False)
    remaining_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    source_lot_id: Mapped[int | None] = mapped_column(
        IdentityInteger,
        ForeignKey("ledger_entries.id"),
        nullable=True,
    )

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    job_ticket: Mapped[str | None] = mapped_column(String(64), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def unit_cost(self) -> UnitCost:
        return UnitCost(self.unit_cost_minor)

    @property
    def is_lot(self) -> bool:
        """Positive entries are cost lots."""
        return self.quantity_change > 0

    @property
    def is_open(self) -> bool:
        return self.is_lot and self.remaining_quantity > 0

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry #{self.id} {self.stock_id}@{self.location_id} "
            f"{self.quantity_change:+d} @ {self.unit_cost} rem={self.remaining_quantity}>"
        )
