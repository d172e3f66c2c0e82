"""Kernel services: flush-only writers bound to a caller-owned Session."""

from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.procurement_service import ProcurementService
from stock_kernel.services.reconciliation_service import ReconciliationService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.stock_mutator import StockMutator
from stock_kernel.services.supply_service import SupplyService

__all__ = [
    "CatalogService",
    "ProcurementService",
    "ReconciliationService",
    "ReplenishmentService",
    "StockMutator",
    "SupplyService",
]
