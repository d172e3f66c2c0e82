"""ORM models for the stock kernel."""

from stock_kernel.models.catalog import (
    Category,
    ReplenishmentRule,
    Warehouse,
    WarehouseStock,
)
from stock_kernel.models.inventory import Inventory, InventoryItem, InventoryStatus
from stock_kernel.models.procurement import ProcurementList, ProcurementListItem
from stock_kernel.models.product import Product
from stock_kernel.models.restock_task import RestockTask, TaskStatus, TaskType
from stock_kernel.models.stock_movement import MovementType, StockMovement
from stock_kernel.models.supply import Supply, SupplyItem

__all__ = [
    "Category",
    "Warehouse",
    "WarehouseStock",
    "ReplenishmentRule",
    "Product",
    "StockMovement",
    "MovementType",
    "RestockTask",
    "TaskType",
    "TaskStatus",
    "Inventory",
    "InventoryItem",
    "InventoryStatus",
    "Supply",
    "SupplyItem",
    "ProcurementList",
    "ProcurementListItem",
]
