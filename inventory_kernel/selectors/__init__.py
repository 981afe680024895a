"""Read-side queries over the cost-lot ledger and stock snapshots."""

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

__all__ = [
    "BalanceRow",
    "ConservationBreak",
    "LedgerIntegritySelector",
    "LotView",
    "ReportFilter",
    "TransactionRow",
    "ValuationSelector",
]
