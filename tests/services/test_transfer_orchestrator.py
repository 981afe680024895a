"""Tests for TransferOrchestrator -- cost-preserving moves between locations."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    InvalidTransferError,
    UnknownStockLocationError,
)
from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.selectors.valuation_selector import ValuationSelector
from inventory_services.transfer_orchestrator import TransferOrchestrator


@pytest.fixture
def orchestrator(session, mutator):
    return TransferOrchestrator(session, mutator)


def _lots(session, location_id):
    return ValuationSelector(session).open_lots("ENV-10", location_id, Ownership.HOUSE)


class TestCostPreservation:
    def test_slices_arrive_at_original_costs(self, session, receive, orchestrator):
        receive(5, "1.00")
        receive(5, "2.00")

        result = orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 7)

        assert [(e.quantity_change, e.unit_cost) for e in result.source.entries] == [
            (-5, UnitCost.of("1.00")),
            (-2, UnitCost.of("2.00")),
        ]
        assert [(lot.remaining, lot.unit_cost) for lot in _lots(session, "WH-B")] == [
            (5, UnitCost.of("1.00")),
            (2, UnitCost.of("2.00")),
        ]
        assert result.source.record.quantity == 3
        assert result.destination_record.quantity == 7

    def test_value_out_equals_value_in(self, session, receive, orchestrator):
        receive(4, "1.25")
        receive(6, "0.80")

        result = orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 9)

        value_out = -sum((e.value for e in result.source.entries), Decimal("0"))
        assert value_out == result.value == Decimal("9.00")
        assert result.quantity == 9

    def test_destination_merges_equal_cost_slices(self, session, receive, orchestrator):
        receive(5, "1.00")
        orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 2)
        orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 1)

        lots = _lots(session, "WH-B")
        assert len(lots) == 1
        assert lots[0].remaining == 3


class TestDestinationRecord:
    def test_created_with_source_defaults(self, receive, orchestrator, envelope_defaults):
        receive(10, "1.00")

        result = orchestrator.transfer(
            "ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 4, notes="restock line 2"
        )

        dest = result.destination_record
        assert dest.location_id == "WH-B"
        assert dest.material_type == envelope_defaults.material_type
        assert dest.description == envelope_defaults.description
        assert dest.customer_id == envelope_defaults.customer_id
        assert dest.min_quantity == envelope_defaults.min_quantity
        assert dest.max_quantity == envelope_defaults.max_quantity
        # descriptive notes are copied from the source as it was before the move
        assert dest.notes == envelope_defaults.notes

    def test_entries_carry_transfer_metadata(self, session, receive, orchestrator):
        receive(10, "1.00")
        orchestrator.transfer(
            "ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 4, notes="move", job_ticket="JT-1"
        )
        moved = list(
            session.scalars(select(LedgerEntry).where(LedgerEntry.job_ticket == "JT-1"))
        )
        assert len(moved) == 2
        assert {e.location_id for e in moved} == {"WH-A", "WH-B"}

    def test_full_move_removes_source(self, receive, orchestrator):
        receive(3, "1.00")
        result = orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 3)
        assert result.source.removed
        assert result.destination_record.quantity == 3


class TestValidation:
    def test_insufficient_at_source(self, session, receive, orchestrator):
        receive(5, "1.00")
        with pytest.raises(InsufficientQuantityError):
            orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 6)
        assert _lots(session, "WH-B") == []

    def test_unknown_source(self, orchestrator):
        with pytest.raises(UnknownStockLocationError):
            orchestrator.transfer("ENV-10", "WH-Q", "WH-B", Ownership.HOUSE, 1)

    def test_same_location(self, receive, orchestrator):
        receive(5, "1.00")
        with pytest.raises(InvalidTransferError):
            orchestrator.transfer("ENV-10", "WH-A", "WH-A", Ownership.HOUSE, 1)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity(self, receive, orchestrator, quantity):
        receive(5, "1.00")
        with pytest.raises(InvalidQuantityError):
            orchestrator.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, quantity)
