"""Read-only selectors returning DTOs."""

from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.selectors.ledger_selector import LedgerSelector, ReplayResult
from stock_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "InventorySelector",
    "LedgerSelector",
    "ReplayResult",
    "StockSelector",
]
