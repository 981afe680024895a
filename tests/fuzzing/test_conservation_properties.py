"""
Property tests: random receive/consume/transfer sequences.

After every sequence the stock snapshot, the ledger sum and the open lot
remainders agree for every key, and the valued balance equals what was
received minus what was consumed.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import NewRecordDefaults
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import InventoryKernelError
from inventory_services.inventory_service import InventoryService

LOCATIONS = ("WH-A", "WH-B", "WH-C")
DEFAULTS = NewRecordDefaults(material_type="Envelope", customer_id="CUST-1")
FAR_FUTURE = datetime(2100, 1, 1, tzinfo=timezone.utc)


@contextmanager
def _fresh_inventory():
    init_engine_from_url("sqlite://")
    create_tables()
    try:
        yield InventoryService(get_session_factory(), clock=DeterministicClock())
    finally:
        drop_tables()
        reset_engine()


@st.composite
def operations(draw):
    kind = draw(st.sampled_from(["receive", "receive", "consume", "transfer"]))
    location = draw(st.sampled_from(LOCATIONS))
    quantity = draw(st.integers(min_value=1, max_value=40))
    if kind == "receive":
        cents = draw(st.sampled_from([25, 50, 100, 125, 300]))
        return ("receive", location, quantity, UnitCost(cents))
    if kind == "consume":
        return ("consume", location, quantity)
    destination = draw(st.sampled_from([loc for loc in LOCATIONS if loc != location]))
    return ("transfer", location, destination, quantity)


def _apply(inventory, op) -> Decimal:
    """Run one operation; return the value it added to (or removed from) stock."""
    if op[0] == "receive":
        _, location, quantity, cost = op
        inventory.receive("ENV-10", location, Ownership.HOUSE, quantity, cost, defaults=DEFAULTS)
        return cost.value_of(quantity)
    if op[0] == "consume":
        _, location, quantity = op
        result = inventory.consume("ENV-10", location, Ownership.HOUSE, quantity)
        assert sum(e.quantity_change for e in result.entries) == -quantity
        return sum((e.value for e in result.entries), Decimal("0"))
    _, source, destination, quantity = op
    result = inventory.transfer("ENV-10", source, destination, Ownership.HOUSE, quantity)
    assert result.quantity == quantity
    return Decimal("0")


@settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
@given(ops=st.lists(operations(), min_size=1, max_size=25))
def test_snapshot_ledger_and_value_conserved(ops):
    with _fresh_inventory() as inventory:
        expected_value = Decimal("0")
        for op in ops:
            try:
                expected_value += _apply(inventory, op)
            except InventoryKernelError:
                # Rejected operations leave no trace.
                pass

        assert inventory.conservation_breaks() == []

        on_hand = {r.location_id: r.quantity for r in inventory.stock_on_hand()}
        lot_value = Decimal("0")
        for location in LOCATIONS:
            lots = inventory.open_lots("ENV-10", location, Ownership.HOUSE)
            assert sum(lot.remaining for lot in lots) == on_hand.get(location, 0)
            lot_value += sum((lot.remaining_value for lot in lots), Decimal("0"))

        balance = inventory.balance_as_of(FAR_FUTURE)
        total_quantity = sum(on_hand.values())
        if total_quantity:
            assert [(b.quantity, b.value) for b in balance] == [(total_quantity, expected_value)]
        else:
            assert all(b.quantity == 0 and b.value == 0 for b in balance)
        assert lot_value == expected_value


@settings(max_examples=25, deadline=None)
@given(
    receipts=st.lists(
        st.tuples(st.integers(1, 20), st.sampled_from([50, 100, 150])), min_size=1, max_size=8
    ),
    data=st.data(),
)
def test_consumption_draws_oldest_lots_first(receipts, data):
    with _fresh_inventory() as inventory:
        for quantity, cents in receipts:
            inventory.receive("ENV-10", "WH-A", "house", quantity, UnitCost(cents), defaults=DEFAULTS)
        total = sum(q for q, _ in receipts)
        take = data.draw(st.integers(min_value=1, max_value=total))

        result = inventory.consume("ENV-10", "WH-A", "house", take)

        drawn = [e.source_lot_id for e in result.entries]
        assert drawn == sorted(drawn)
        assert len(set(drawn)) == len(drawn)
        remaining = inventory.open_lots("ENV-10", "WH-A", "house")
        # Every lot older than the last one drawn is exhausted.
        assert all(lot.lot_id >= drawn[-1] for lot in remaining)
        assert sum(lot.remaining for lot in remaining) == total - take
