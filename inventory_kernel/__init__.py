"""
Inventory Kernel

Per-location stock snapshots backed by an append-only cost-lot ledger:
- FIFO consumption against received cost lots
- Cost basis preserved across moves between locations
- Atomic snapshot + ledger updates
- Point-in-time valuation derived from ledger rows only
"""

__version__ = "0.1.0"
