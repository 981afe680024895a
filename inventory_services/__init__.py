"""
Inventory Services - orchestration and transaction ownership.

Composes kernel services (StockMutator, LotMatchingEngine) and selectors
into user-facing operations.
"""

from inventory_services.import_service import (
    ImportRow,
    ImportSummary,
    StockImporter,
    read_import_csv,
)
from inventory_services.inventory_service import InventoryService
from inventory_services.staging_service import StagingService
from inventory_services.transfer_orchestrator import TransferOrchestrator

__all__ = [
    "ImportRow",
    "ImportSummary",
    "InventoryService",
    "StagingService",
    "StockImporter",
    "TransferOrchestrator",
    "read_import_csv",
]
