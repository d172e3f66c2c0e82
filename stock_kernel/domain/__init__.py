"""
Pure domain layer.

Data transfer objects and stock policy with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    CategoryInfo,
    CloseResult,
    InventoryInfo,
    InventoryItemInfo,
    MovementRecord,
    MutationResult,
    ProcurementItemInfo,
    ProcurementListInfo,
    RuleInfo,
    StockState,
    SupplyInfo,
    SupplyLine,
    TaskInfo,
    WarehouseInfo,
)
from stock_kernel.domain.split_policy import (
    Bucket,
    StockSplit,
    clamp_to_capacity,
    fill_front_first,
    split_on_change,
    take_from_bucket,
    validate_split,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Bucket",
    "StockSplit",
    "clamp_to_capacity",
    "fill_front_first",
    "split_on_change",
    "take_from_bucket",
    "validate_split",
    "CategoryInfo",
    "CloseResult",
    "InventoryInfo",
    "InventoryItemInfo",
    "MovementRecord",
    "MutationResult",
    "ProcurementItemInfo",
    "ProcurementListInfo",
    "RuleInfo",
    "StockState",
    "SupplyInfo",
    "SupplyLine",
    "TaskInfo",
    "WarehouseInfo",
]
