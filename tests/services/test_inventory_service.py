"""
Tests for InventoryService -- transaction ownership and end-to-end flows.

Each facade call commits (or rolls back) its own session_scope; assertions
read back through fresh sessions via the facade's query methods.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.dtos import NewRecordDefaults
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    StoreFailureError,
    UnknownStockLocationError,
)
from inventory_kernel.selectors.valuation_selector import ReportFilter
from inventory_kernel.services.stock_mutator import StockMutator

DEFAULTS = NewRecordDefaults(material_type="Insert", customer_id="CUST-2", description="Flyer")


def _qty(inventory, location_id, stock_id="INS-1"):
    rows = inventory.stock_on_hand(ReportFilter(stock_id=stock_id, location_id=location_id))
    return rows[0].quantity if rows else 0


class TestReceiveAndConsume:
    def test_receive_commits(self, inventory):
        result = inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 10, "0.10", defaults=DEFAULTS)

        assert result.created
        assert _qty(inventory, "WH-A") == 10
        assert [lot.remaining for lot in inventory.open_lots("INS-1", "WH-A", Ownership.HOUSE)] == [10]

    def test_cost_accepts_unit_cost_and_decimal(self, inventory):
        inventory.receive("INS-1", "WH-A", "house", 1, UnitCost.of("2.00"), defaults=DEFAULTS)
        inventory.receive("INS-1", "WH-A", "house", 1, Decimal("2.00"))
        lots = inventory.open_lots("INS-1", "WH-A", Ownership.HOUSE)
        assert [(lot.quantity, lot.unit_cost.amount) for lot in lots] == [(2, Decimal("2.00"))]

    def test_consume_fifo(self, inventory):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "2.00")

        result = inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 7, job_ticket="JT-88")

        assert [(e.quantity_change, e.unit_cost.amount) for e in result.entries] == [
            (-5, Decimal("1.00")),
            (-2, Decimal("2.00")),
        ]
        assert all(e.job_ticket == "JT-88" for e in result.entries)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_receive_rejects_non_positive(self, inventory, quantity):
        with pytest.raises(InvalidQuantityError):
            inventory.receive("INS-1", "WH-A", Ownership.HOUSE, quantity, "1.00", defaults=DEFAULTS)

    def test_consume_rejects_non_positive(self, inventory):
        with pytest.raises(InvalidQuantityError):
            inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 0)

    def test_adjust_signed(self, inventory):
        inventory.adjust("INS-1", "WH-A", Ownership.HOUSE, 8, unit_cost="0.50", defaults=DEFAULTS)
        result = inventory.adjust("INS-1", "WH-A", Ownership.HOUSE, -3)
        assert result.quantity == 5


class TestAtomicity:
    def test_insufficient_quantity_leaves_state_unchanged(self, inventory):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)
        before = inventory.transaction_history()

        with pytest.raises(InsufficientQuantityError):
            inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 8)

        assert inventory.transaction_history() == before
        assert _qty(inventory, "WH-A") == 5

    def test_failed_destination_rolls_back_source(self, inventory, monkeypatch):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 10, "1.00", defaults=DEFAULTS)
        history_before = inventory.transaction_history()

        original_adjust = StockMutator.adjust

        def failing_adjust(self, stock_id, location_id, *args, **kwargs):
            if location_id == "WH-B":
                raise StoreFailureError("adjust", "destination unavailable")
            return original_adjust(self, stock_id, location_id, *args, **kwargs)

        monkeypatch.setattr(StockMutator, "adjust", failing_adjust)

        with pytest.raises(StoreFailureError):
            inventory.transfer("INS-1", "WH-A", "WH-B", Ownership.HOUSE, 4)

        monkeypatch.undo()
        assert _qty(inventory, "WH-A") == 10
        assert _qty(inventory, "WH-B") == 0
        assert inventory.transaction_history() == history_before
        assert inventory.conservation_breaks() == []

    def test_sqlalchemy_errors_become_store_failure(self, session_factory):
        with pytest.raises(StoreFailureError) as exc_info:
            with session_scope(session_factory, "probe") as session:
                session.execute(text("SELECT * FROM no_such_table"))

        assert exc_info.value.operation == "probe"
        assert exc_info.value.__cause__ is not None

    def test_kernel_errors_propagate_unchanged(self, inventory):
        with pytest.raises(UnknownStockLocationError):
            inventory.consume("INS-1", "NOWHERE", Ownership.HOUSE, 1)


class TestTransfer:
    def test_transfer_commits_both_sides(self, inventory):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "2.00")

        result = inventory.transfer("INS-1", "WH-A", "WH-B", Ownership.HOUSE, 7)

        assert result.quantity == 7
        assert result.value == Decimal("9.00")
        assert _qty(inventory, "WH-A") == 3
        assert _qty(inventory, "WH-B") == 7
        lots_b = inventory.open_lots("INS-1", "WH-B", Ownership.HOUSE)
        assert [(lot.remaining, lot.unit_cost.amount) for lot in lots_b] == [
            (5, Decimal("1.00")),
            (2, Decimal("2.00")),
        ]
        assert inventory.conservation_breaks() == []


class TestZeroQuantity:
    def test_consume_to_zero(self, inventory):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)
        result = inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 5)

        assert result.removed
        assert inventory.stock_on_hand() == []
        history = inventory.transaction_history(ReportFilter(stock_id="INS-1"))
        assert [row.quantity_change for row in history] == [5, -5]


class TestStagingFlow:
    def test_stage_then_accept(self, inventory):
        staged = inventory.stage_incoming(
            "CUST-2", "INS-1", "Insert", 40, "0.05", Ownership.CUSTOMER, description="Flyer"
        )
        assert [s.id for s in inventory.pending_incoming()] == [staged.id]

        result = inventory.accept_incoming(staged.id, "DOCK", quantity=38, job_ticket="RCV-1")

        assert result.quantity == 38
        assert inventory.pending_incoming() == []
        rows = inventory.transaction_history(ReportFilter(ownership=Ownership.CUSTOMER))
        assert [(r.quantity_change, r.job_ticket) for r in rows] == [(38, "RCV-1")]


class TestLogging:
    def test_operations_carry_correlation_id(self, inventory, captured_logs):
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)

        logs = captured_logs()
        created = [r for r in logs if r["message"] == "lot_created"]
        assert len(created) == 1
        assert created[0]["operation"] == "adjust"
        assert created[0]["stock_id"] == "INS-1"
        assert created[0]["correlation_id"]

    def test_rollback_logged(self, inventory, captured_logs):
        with pytest.raises(UnknownStockLocationError):
            inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 1)

        rolled_back = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rolled_back
        assert rolled_back[0]["exc_code"] == "UNKNOWN_STOCK_LOCATION"


class TestClockDrivesTimestamps:
    def test_entries_use_injected_clock(self, inventory, clock):
        start = clock.now()
        inventory.receive("INS-1", "WH-A", Ownership.HOUSE, 5, "1.00", defaults=DEFAULTS)
        clock.advance(3600)
        inventory.consume("INS-1", "WH-A", Ownership.HOUSE, 1)

        rows = inventory.transaction_history()
        occurred = [r.occurred_at.replace(tzinfo=None) for r in rows]
        assert occurred == [
            start.replace(tzinfo=None),
            (start + timedelta(hours=1)).replace(tzinfo=None),
        ]
