"""Tests for LedgerIntegritySelector -- snapshot vs ledger conservation."""

from sqlalchemy import update

from inventory_kernel.domain.values import Ownership
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.integrity_selector import LedgerIntegritySelector


class TestConservation:
    def test_healthy_ledger_has_no_breaks(self, session, receive, mutator):
        receive(5, "1.00")
        receive(5, "2.00", location_id="WH-B")
        mutator.adjust("ENV-10", "WH-A", Ownership.HOUSE, -3)
        mutator.adjust("ENV-10", "WH-B", Ownership.HOUSE, -5)

        assert LedgerIntegritySelector(session).conservation_breaks() == []

    def test_detects_drifted_snapshot(self, session, receive, captured_logs):
        receive(5, "1.00")
        session.execute(update(StockRecord).values(quantity=9))

        breaks = LedgerIntegritySelector(session).conservation_breaks()

        assert len(breaks) == 1
        drift = breaks[0]
        assert (drift.stock_id, drift.location_id, drift.ownership) == (
            "ENV-10",
            "WH-A",
            Ownership.HOUSE,
        )
        assert drift.record_quantity == 9
        assert drift.ledger_quantity == 5
        assert drift.open_lot_quantity == 5
        assert any(r["message"] == "conservation_breaks_found" for r in captured_logs())
