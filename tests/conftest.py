"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- In-memory SQLite engine, session factory and session (no server needed)
- Deterministic clock
- Kernel service fixtures (LotMatchingEngine, StockMutator)
- InventoryService facade bound to the test engine
- Structured log capture
"""

import json
import logging
from io import StringIO

import pytest

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
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services.lot_matching import LotMatchingEngine
from inventory_kernel.services.stock_mutator import StockMutator
from inventory_services.inventory_service import InventoryService

SQLITE_MEMORY_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, inventory):
            inventory.consume(...)
            assert any(r["message"] == "lot_consumed" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database with all tables and ledger guards."""
    eng = init_engine_from_url(SQLITE_MEMORY_URL)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session whose work is rolled back at teardown."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Domain / service fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def lot_engine(session, clock):
    return LotMatchingEngine(session, clock)


@pytest.fixture
def mutator(session, lot_engine, clock):
    return StockMutator(session, lot_engine, clock)


@pytest.fixture
def inventory(session_factory, clock):
    return InventoryService(session_factory, clock=clock)


@pytest.fixture
def envelope_defaults():
    return NewRecordDefaults(
        material_type="Envelope",
        customer_id="CUST-1",
        description="#10 window envelope",
        notes="aisle 3",
        min_quantity=5,
        max_quantity=500,
    )


@pytest.fixture
def receive(mutator, envelope_defaults):
    """Add stock through the session-level mutator: receive(qty, cost, location=...)."""

    def _receive(
        quantity: int,
        cost: str,
        location_id: str = "WH-A",
        stock_id: str = "ENV-10",
        ownership: Ownership = Ownership.HOUSE,
    ):
        return mutator.adjust(
            stock_id,
            location_id,
            ownership,
            quantity,
            defaults=envelope_defaults,
            unit_cost=UnitCost.of(cost),
        )

    return _receive
