"""
Tests for the ORM immutability guard on ledger entries.

Only consumption (remaining_quantity decreases) and the equal-cost merge
(quantity_change and remaining_quantity grow together) may touch a row.
"""

import pytest
from sqlalchemy import select

from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.values import Ownership
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.models.lot_increment import LotIncrement


@pytest.fixture
def lot(session, receive):
    receive(5, "1.00")
    return session.scalars(select(LedgerEntry)).one()


class TestForbiddenChanges:
    def test_unit_cost_frozen(self, session, lot):
        lot.unit_cost_minor = 250
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LedgerEntry"
        assert "unit_cost_minor" in exc_info.value.reason

    def test_key_frozen(self, session, lot):
        lot.location_id = "WH-B"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_remaining_cannot_grow_alone(self, session, mutator, lot):
        mutator.adjust("ENV-10", "WH-A", Ownership.HOUSE, -2)
        lot.remaining_quantity = 5
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_quantity_cannot_shrink(self, session, lot):
        lot.quantity_change = 4
        lot.remaining_quantity = 4
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_merge_must_move_both_columns(self, session, lot):
        lot.quantity_change = 8
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_negative_entry_frozen(self, session, mutator, lot):
        result = mutator.adjust("ENV-10", "WH-A", Ownership.HOUSE, -2)
        negative = session.get(LedgerEntry, result.entries[0].id)
        negative.notes = "edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_forbidden(self, session, lot, captured_logs):
        session.delete(lot)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "DELETE"


class TestAllowedChanges:
    def test_consumption(self, session, lot):
        lot.remaining_quantity = 3
        session.flush()

    def test_merge(self, session, lot):
        lot.quantity_change = 9
        lot.remaining_quantity = 9
        session.flush()


class TestListenerRegistration:
    def test_unregister_allows_direct_writes(self, session, lot):
        unregister_immutability_listeners()
        try:
            lot.notes = "bulk fix"
            session.flush()
        finally:
            register_immutability_listeners()

    def test_register_is_idempotent(self, session, lot):
        register_immutability_listeners()
        register_immutability_listeners()
        lot.notes = "edit"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestLotIncrements:
    @pytest.fixture
    def increment(self, session, receive, lot):
        receive(3, "1.00")
        return session.scalars(select(LotIncrement)).one()

    def test_merge_records_increment(self, increment, lot):
        assert increment.lot_id == lot.id
        assert increment.quantity == 3
        assert lot.quantity_change == 8

    def test_increment_frozen(self, session, increment):
        increment.quantity = 30
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LotIncrement"

    def test_increment_delete_forbidden(self, session, increment):
        session.delete(increment)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
