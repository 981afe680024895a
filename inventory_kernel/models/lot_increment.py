"""
Module: inventory_kernel.models.lot_increment
Responsibility: Append-only record of each equal-cost addition merged into an
    existing cost lot.  The lot row carries the running total; the increment
    row keeps when (and in what order) the extra units arrived, so history
    and point-in-time balances can leave out units received after a cutoff.
Architecture position: Kernel > Models.

Invariants enforced:
    - quantity > 0.
    - For every lot: sum(increment.quantity) < lot.quantity_change (the
      difference is the quantity of the original receipt).
    - preceding_entry_id is the highest ledger entry id at the time of the
      merge; (preceding_entry_id, id) places the increment in ledger order.
    - Rows are never updated or deleted (db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, IdentityInteger


class LotIncrement(Base):
    """Units merged into an open lot by a later receipt at the same cost."""

    __tablename__ = "lot_increments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_lot_increment_quantity_positive"),
        Index("idx_lot_increment_lot", "lot_id"),
        Index("idx_lot_increment_occurred", "occurred_at"),
    )

    lot_id: Mapped[int] = mapped_column(
        IdentityInteger,
        ForeignKey("ledger_entries.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    preceding_entry_id: Mapped[int] = mapped_column(nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    job_ticket: Mapped[str | None] = mapped_column(String(64), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LotIncrement #{self.id} lot={self.lot_id} +{self.quantity}>"
