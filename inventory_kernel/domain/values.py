"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the value types used wherever cost or ownership appears in
    domain logic: ``UnitCost`` (fixed-point per-unit cost) and ``Ownership``
    (house-owned vs customer-owned stock).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Unit costs are exact: stored and compared as integer minor units
      (cents), never as floats.  Two lots have "the same cost" iff their
      minor units are equal.
    - Input with more precision than COST_DECIMAL_PLACES is rounded
      HALF_UP to the nearest minor unit.

Failure modes:
    - InvalidUnitCostError on malformed or negative amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from inventory_kernel.exceptions import InvalidUnitCostError

COST_DECIMAL_PLACES = 2
_QUANTUM = Decimal(1).scaleb(-COST_DECIMAL_PLACES)


class Ownership(str, Enum):
    """Who owns a stock record's units."""

    HOUSE = "house"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value: str | Ownership) -> Ownership:
        """Accept enum members, values, or the legacy labels (Tag/Customer)."""
        if isinstance(value, Ownership):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("house", "tag"):
            return cls.HOUSE
        if normalized == "customer":
            return cls.CUSTOMER
        raise ValueError(f"Unknown ownership: {value!r}")


@dataclass(frozen=True, slots=True, order=True)
class UnitCost:
    """
    Per-unit cost in minor currency units.

    Contract:
        ``minor_units`` is the canonical representation.  ``amount`` exposes
        it as a Decimal with COST_DECIMAL_PLACES places for display and
        valuation.

    Guarantees:
        - Immutable, hashable and totally ordered.
        - ``minor_units >= 0``.  Whether zero is acceptable is decided by the
          caller (additions require a positive cost).
    """

    minor_units: int

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise InvalidUnitCostError(self.minor_units, "minor units must be an integer")
        if self.minor_units < 0:
            raise InvalidUnitCostError(self.minor_units, "unit cost cannot be negative")

    @classmethod
    def of(cls, amount: Decimal | int | str) -> UnitCost:
        """Build from a major-unit amount such as ``"1.25"`` or ``Decimal("3")``."""
        if isinstance(amount, float):
            # floats are accepted only through their shortest repr
            amount = repr(amount)
        try:
            value = Decimal(str(amount).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidUnitCostError(amount, "not a decimal amount") from e
        if not value.is_finite():
            raise InvalidUnitCostError(amount, "not a finite amount")
        quantized = value.quantize(_QUANTUM, rounding=ROUND_HALF_UP)
        return cls(int(quantized.scaleb(COST_DECIMAL_PLACES)))

    @classmethod
    def zero(cls) -> UnitCost:
        return cls(0)

    @property
    def amount(self) -> Decimal:
        return minor_to_amount(self.minor_units)

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    def value_of(self, quantity: int) -> Decimal:
        """Exact value of ``quantity`` units at this cost (sign follows quantity)."""
        return minor_to_amount(self.minor_units * quantity)

    def __str__(self) -> str:
        return str(self.amount)

    def __repr__(self) -> str:
        return f"UnitCost({self.amount})"


def minor_to_amount(minor_units: int) -> Decimal:
    """Convert an integer count of minor units to a Decimal amount."""
    return Decimal(minor_units).scaleb(-COST_DECIMAL_PLACES).quantize(_QUANTUM)
