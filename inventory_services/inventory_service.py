"""
inventory_services.inventory_service -- transactional facade.

Responsibility:
    The public entry point for input forms, staging acceptance, import
    tooling and reporting.  Every write operation runs in exactly one
    ``session_scope``: the stock snapshot, its ledger entries and (for
    transfers) both locations commit together or not at all.  Each call
    binds a fresh correlation id into LogContext.

Architecture position:
    Services -- owns transaction boundaries.  Kernel services and
    selectors below it only flush or read.

Failure modes:
    Kernel errors propagate unchanged after rollback.  Store failures
    surface as StoreFailureError.

Usage:
    inventory = InventoryService.from_config()
    inventory.receive("ENV-10", "WH-A", Ownership.HOUSE, 10, "1.00",
                      defaults=NewRecordDefaults(material_type="Envelope"))
    inventory.transfer("ENV-10", "WH-A", "WH-B", Ownership.HOUSE, 4)
"""

from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from inventory_config import InventoryConfig, get_active_config
from inventory_config.schema import DEFAULT_MATERIAL_TYPES
from inventory_kernel.db.engine import (
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentResult,
    EntryMetadata,
    NewRecordDefaults,
    StagedMaterialView,
    StockRecordView,
    TransferResult,
)
from inventory_kernel.domain.values import Ownership, UnitCost
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.logging_config import LogContext, configure_logging
from inventory_kernel.selectors.integrity_selector import (
    ConservationBreak,
    LedgerIntegritySelector,
)
from inventory_kernel.selectors.valuation_selector import (
    BalanceRow,
    LotView,
    ReportFilter,
    TransactionRow,
    ValuationSelector,
)
from inventory_kernel.services.lot_matching import LotMatchingEngine
from inventory_kernel.services.stock_mutator import StockMutator
from inventory_services.import_service import ImportRow, ImportSummary, StockImporter
from inventory_services.staging_service import StagingService
from inventory_services.transfer_orchestrator import TransferOrchestrator

CostInput = UnitCost | Decimal | int | str


def _coerce_cost(value: CostInput | None) -> UnitCost | None:
    if value is None or isinstance(value, UnitCost):
        return value
    return UnitCost.of(value)


class InventoryService:
    """
    One method per user-facing operation, each in its own transaction.

    Args:
        session_factory: Factory for sessions.  Defaults to the engine
            module's factory (``init_engine_from_url`` must have run).
        clock: Time source for ledger timestamps.
        config: Supplies the merge flag and the allowed material types.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        if config is not None:
            self._merge_equal_cost_lots = config.ledger.merge_equal_cost_lots
            self._material_types = config.ledger.material_types
        else:
            self._merge_equal_cost_lots = True
            self._material_types = DEFAULT_MATERIAL_TYPES

    @classmethod
    def from_config(
        cls,
        config: InventoryConfig | None = None,
        clock: Clock | None = None,
    ) -> InventoryService:
        """Initialize logging and the engine from configuration."""
        config = config or get_active_config()
        configure_logging(level=config.logging.level)
        db = config.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
        return cls(get_session_factory(), clock=clock, config=config)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(
        self, operation: str, **context: str | None
    ) -> Generator[Session, None, None]:
        with LogContext.bind(
            correlation_id=str(uuid4()), operation=operation, **context
        ):
            with session_scope(self._session_factory, operation) as session:
                yield session

    def _mutator(self, session: Session) -> StockMutator:
        lot_engine = LotMatchingEngine(
            session, self._clock, merge_equal_cost_lots=self._merge_equal_cost_lots
        )
        return StockMutator(session, lot_engine, self._clock)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def adjust(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
        delta: int,
        unit_cost: CostInput | None = None,
        defaults: NewRecordDefaults | None = None,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> AdjustmentResult:
        """Signed quantity change at one location."""
        with self._unit_of_work(
            "adjust", stock_id=stock_id, location_id=location_id, job_ticket=job_ticket
        ) as session:
            return self._mutator(session).adjust(
                stock_id,
                location_id,
                ownership,
                delta,
                defaults=defaults,
                unit_cost=_coerce_cost(unit_cost),
                metadata=EntryMetadata(notes=notes, job_ticket=job_ticket),
            )

    def receive(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
        quantity: int,
        unit_cost: CostInput,
        defaults: NewRecordDefaults | None = None,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> AdjustmentResult:
        """Add ``quantity`` units at ``unit_cost``."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "received quantity must be positive")
        return self.adjust(
            stock_id,
            location_id,
            ownership,
            quantity,
            unit_cost=unit_cost,
            defaults=defaults,
            notes=notes,
            job_ticket=job_ticket,
        )

    def consume(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
        quantity: int,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> AdjustmentResult:
        """Remove ``quantity`` units, drawing cost lots FIFO."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "consumed quantity must be positive")
        return self.adjust(
            stock_id,
            location_id,
            ownership,
            -quantity,
            notes=notes,
            job_ticket=job_ticket,
        )

    def transfer(
        self,
        stock_id: str,
        source_location_id: str,
        destination_location_id: str,
        ownership: Ownership | str,
        quantity: int,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> TransferResult:
        with self._unit_of_work(
            "transfer", stock_id=stock_id, job_ticket=job_ticket
        ) as session:
            orchestrator = TransferOrchestrator(
                session, self._mutator(session), self._clock
            )
            return orchestrator.transfer(
                stock_id,
                source_location_id,
                destination_location_id,
                ownership,
                quantity,
                notes=notes,
                job_ticket=job_ticket,
            )

    def _staging(self, session: Session) -> StagingService:
        return StagingService(
            session,
            self._mutator(session),
            self._clock,
            material_types=self._material_types,
        )

    def stage_incoming(
        self,
        customer_id: str | None,
        stock_id: str,
        material_type: str,
        quantity: int,
        unit_cost: CostInput,
        ownership: Ownership | str,
        min_quantity: int = 0,
        max_quantity: int = 0,
        description: str = "",
        is_active: bool = True,
    ) -> StagedMaterialView:
        with self._unit_of_work("stage_incoming", stock_id=stock_id) as session:
            return self._staging(session).stage(
                customer_id,
                stock_id,
                material_type,
                quantity,
                _coerce_cost(unit_cost),
                ownership,
                min_quantity=min_quantity,
                max_quantity=max_quantity,
                description=description,
                is_active=is_active,
            )

    def accept_incoming(
        self,
        staged_id: int,
        location_id: str,
        quantity: int | None = None,
        notes: str = "",
        job_ticket: str | None = None,
    ) -> AdjustmentResult:
        with self._unit_of_work(
            "accept_incoming", location_id=location_id, job_ticket=job_ticket
        ) as session:
            return self._staging(session).accept(
                staged_id, location_id, quantity=quantity, notes=notes, job_ticket=job_ticket
            )

    def import_rows(self, rows: Iterable[ImportRow]) -> ImportSummary:
        """Apply all rows in one transaction; any bad row aborts the batch."""
        with self._unit_of_work("import") as session:
            return StockImporter(self._mutator(session)).import_rows(rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def pending_incoming(self) -> list[StagedMaterialView]:
        with self._unit_of_work("pending_incoming") as session:
            return self._staging(session).list_pending()

    def transaction_history(
        self, filters: ReportFilter | None = None
    ) -> list[TransactionRow]:
        with self._unit_of_work("transaction_history") as session:
            return ValuationSelector(session).transaction_history(filters)

    def balance_as_of(
        self,
        as_of: date | datetime,
        filters: ReportFilter | None = None,
    ) -> list[BalanceRow]:
        with self._unit_of_work("balance_as_of") as session:
            return ValuationSelector(session).balance_as_of(as_of, filters)

    def stock_on_hand(
        self, filters: ReportFilter | None = None
    ) -> list[StockRecordView]:
        with self._unit_of_work("stock_on_hand") as session:
            return ValuationSelector(session).stock_on_hand(filters)

    def open_lots(
        self,
        stock_id: str,
        location_id: str,
        ownership: Ownership | str,
    ) -> list[LotView]:
        with self._unit_of_work("open_lots", stock_id=stock_id) as session:
            return ValuationSelector(session).open_lots(stock_id, location_id, ownership)

    def conservation_breaks(self) -> list[ConservationBreak]:
        with self._unit_of_work("conservation_breaks") as session:
            return LedgerIntegritySelector(session).conservation_breaks()
