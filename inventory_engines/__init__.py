"""
Inventory Engines - pure calculation functions.

Zero I/O: engines receive snapshots of ledger state and return plans that
the kernel services persist.
"""

from inventory_engines.fifo import (
    DeductionPlan,
    LotDraw,
    LotKey,
    LotSnapshot,
    LotState,
    plan_deduction,
    select_merge_target,
)

__all__ = [
    "DeductionPlan",
    "LotDraw",
    "LotKey",
    "LotSnapshot",
    "LotState",
    "plan_deduction",
    "select_merge_target",
]
