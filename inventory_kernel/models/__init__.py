"""ORM models for the inventory kernel."""

from inventory_kernel.models.ledger_entry import LedgerEntry
from inventory_kernel.models.lot_increment import LotIncrement
from inventory_kernel.models.staged_material import StagedMaterial
from inventory_kernel.models.stock_record import StockRecord, ownership_column_type


def import_all_models() -> None:
    """Ensure every model is registered on Base.metadata."""
    # Importing this package registers all tables; the names above keep the
    # imports alive for create_all / drop_all callers.
    _ = (LedgerEntry, LotIncrement, StagedMaterial, StockRecord)


__all__ = [
    "LedgerEntry",
    "LotIncrement",
    "StagedMaterial",
    "StockRecord",
    "import_all_models",
    "ownership_column_type",
]
