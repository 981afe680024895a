"""
inventory_engines.fifo -- FIFO lot selection for deductions and merges.

Responsibility:
    Decide, without touching the store, which cost lots a deduction draws
    from and how much from each, and which lot (if any) an addition at a
    given unit cost merges into.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain and inventory_kernel/exceptions.
    The persisting LotMatchingEngine lives in inventory_kernel/services/.

Invariants enforced:
    - A plan is complete or it is not produced: insufficient open quantity
      raises before any draw is returned, so callers never write a partial
      deduction.
    - Exhaustion is tracked per lot id.  Two distinct lots that share a
      unit cost are distinct candidates.
    - The selection loop is bounded by the number of lots.
    - Every draw carries the unit cost of the lot it came from.

Failure modes:
    - NoCostBasisFoundError when the key has no open lot at all.
    - InsufficientQuantityError when open lots hold less than requested.
    - InvalidQuantityError for a non-positive deduction.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    NoCostBasisFoundError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")


class LotState(str, Enum):
    """Lifecycle of a positive ledger entry."""

    OPEN = "open"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class LotKey:
    """Lots are matched within one (stock item, location, ownership) key."""

    stock_id: str
    location_id: str
    ownership: Ownership


@dataclass(frozen=True)
class LotSnapshot:
    """Read-only picture of one cost lot at planning time."""

    lot_id: int
    unit_cost: UnitCost
    quantity: int
    remaining: int

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Lot {self.lot_id} quantity must be positive")
        if not 0 <= self.remaining <= self.quantity:
            raise ValueError(
                f"Lot {self.lot_id} remaining {self.remaining} outside 0..{self.quantity}"
            )

    @property
    def state(self) -> LotState:
        return LotState.OPEN if self.remaining > 0 else LotState.EXHAUSTED


@dataclass(frozen=True)
class LotDraw:
    """Units taken from one lot by a deduction."""

    lot_id: int
    unit_cost: UnitCost
    quantity: int
    remaining_after: int

    @property
    def exhausts_lot(self) -> bool:
        return self.remaining_after == 0

    @property
    def value(self) -> Decimal:
        return self.unit_cost.value_of(self.quantity)


@dataclass(frozen=True)
class DeductionPlan:
    key: LotKey
    draws: tuple[LotDraw, ...]

    @property
    def quantity(self) -> int:
        return sum(d.quantity for d in self.draws)

    @property
    def value(self) -> Decimal:
        return sum((d.value for d in self.draws), Decimal("0.00"))


def plan_deduction(
    key: LotKey,
    lots: Sequence[LotSnapshot],
    quantity: int,
    last_source_lot_id: int | None = None,
) -> DeductionPlan:
    """
    Split a deduction of ``quantity`` units across the key's lots.

    Args:
        key: Matching key, used for error reporting.
        lots: Every positive lot of the key, oldest first (id order).
        quantity: Units to deduct, > 0.
        last_source_lot_id: Lot the most recent prior deduction drew from.
            It is preferred while it is still open; otherwise the oldest
            open lot is used.

    Returns:
        DeductionPlan whose draws sum to ``quantity``.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity, "deduction must be positive")

    ordered = sorted(lots, key=lambda lot: lot.lot_id)
    remaining = {lot.lot_id: lot.remaining for lot in ordered}
    open_lots = [lot for lot in ordered if lot.state is LotState.OPEN]

    if not open_lots:
        logger.warning(
            "fifo_no_cost_basis",
            extra={
                "stock_id": key.stock_id,
                "location_id": key.location_id,
                "requested": quantity,
            },
        )
        raise NoCostBasisFoundError(key.stock_id, key.location_id, key.ownership.value)

    available = sum(lot.remaining for lot in open_lots)
    if available < quantity:
        logger.warning(
            "fifo_insufficient_lots",
            extra={
                "stock_id": key.stock_id,
                "location_id": key.location_id,
                "requested": quantity,
                "available": available,
            },
        )
        raise InsufficientQuantityError(
            key.stock_id, key.location_id, quantity, available
        )

    exhausted: set[int] = set()
    draws: list[LotDraw] = []
    need = quantity

    for _ in range(len(open_lots)):
        lot = _next_candidate(open_lots, exhausted, last_source_lot_id)
        if lot is None:
            raise InsufficientQuantityError(
                key.stock_id, key.location_id, quantity, quantity - need
            )
        avail = remaining[lot.lot_id]
        take = min(avail, need)
        remaining[lot.lot_id] = avail - take
        if remaining[lot.lot_id] == 0:
            exhausted.add(lot.lot_id)
        draws.append(
            LotDraw(
                lot_id=lot.lot_id,
                unit_cost=lot.unit_cost,
                quantity=take,
                remaining_after=remaining[lot.lot_id],
            )
        )
        need -= take
        if need == 0:
            break

    plan = DeductionPlan(key=key, draws=tuple(draws))
    logger.debug(
        "fifo_plan_built",
        extra={
            "stock_id": key.stock_id,
            "location_id": key.location_id,
            "requested": quantity,
            "lots_drawn": [d.lot_id for d in plan.draws],
        },
    )
    return plan


def _next_candidate(
    open_lots: Sequence[LotSnapshot],
    exhausted: set[int],
    preferred_lot_id: int | None,
) -> LotSnapshot | None:
    if preferred_lot_id is not None and preferred_lot_id not in exhausted:
        for lot in open_lots:
            if lot.lot_id == preferred_lot_id:
                return lot
    for lot in open_lots:
        if lot.lot_id not in exhausted:
            return lot
    return None


def select_merge_target(
    lots: Sequence[LotSnapshot],
    unit_cost: UnitCost,
) -> LotSnapshot | None:
    """Most recent open lot whose unit cost equals ``unit_cost`` exactly."""
    candidates = [
        lot
        for lot in lots
        if lot.state is LotState.OPEN and lot.unit_cost == unit_cost
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda lot: lot.lot_id)
