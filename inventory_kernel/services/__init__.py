"""Kernel write services: lot matching and stock snapshot mutation."""

from inventory_kernel.services.lot_matching import LotMatchingEngine
from inventory_kernel.services.stock_mutator import StockMutator

__all__ = ["LotMatchingEngine", "StockMutator"]
