"""
StockBackOffice -- transaction-owning facade over the stock kernel.

Responsibility:
    Maps every exposed operation to exactly one unit of work: open a
    Session, build the kernel services bound to it, call them, commit on
    success or roll back on any error.  Kernel services only flush; this is
    the single place where commits happen.

Architecture position:
    Services -- outermost layer.  May import from stock_kernel and
    stock_config.  The kernel never imports from here.

Invariants enforced:
    - One operation, one transaction: a mutation, its ledger row and its
      restock task commit together or not at all.
    - Every operation runs inside a LogContext carrying a fresh
      correlation_id and the acting user, so all log lines of one call
      can be joined.
    - Returns frozen DTOs only; no ORM instance escapes a unit of work.

Failure modes:
    - Kernel exceptions propagate unchanged after rollback.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Generator
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_config.schema import ProcurementSettings, Settings
from stock_kernel.db.engine import session_scope
from stock_kernel.domain.clock import Clock, SystemClock
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
from stock_kernel.domain.split_policy import Bucket
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.inventory import InventoryStatus
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.selectors.ledger_selector import LedgerSelector, ReplayResult
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.procurement_service import ProcurementService
from stock_kernel.services.reconciliation_service import ReconciliationService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.stock_mutator import StockMutator
from stock_kernel.services.supply_service import SupplyService

logger = get_logger("back_office")


class StockBackOffice:
    """
    The public API of the stock back-office.

    Contract:
        Constructed with a session factory (a ``sessionmaker`` or any
        zero-argument callable returning a Session), a Clock and Settings.
        Each method is one transaction.

    Non-goals:
        - Authentication and authorization: actor ids are taken as given.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings
        self._metric_keys = settings.revenue_metric_keys if settings else ()
        self._procurement = settings.procurement if settings else ProcurementSettings()

    @contextmanager
    def _unit_of_work(
        self, operation: str, actor_id: UUID | None = None, **scope: UUID
    ) -> Generator[Session, None, None]:
        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id, **scope):
            logger.debug("operation_started", extra={"operation": operation})
            with session_scope(self._session_factory) as session:
                yield session

    # =========================================================================
    # Stock mutations
    # =========================================================================

    def register_product(
        self,
        name: str,
        *,
        category_id: UUID | None = None,
        cost_price: Decimal | int | str = Decimal("0"),
        selling_price: Decimal | int | str = Decimal("0"),
        opening_stock: int = 0,
        max_front_stock: int = 0,
        min_front_stock: int = 0,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        with self._unit_of_work("register_product", actor_id) as session:
            return StockMutator(session, self._clock).register_product(
                name,
                category_id=category_id,
                cost_price=cost_price,
                selling_price=selling_price,
                opening_stock=opening_stock,
                max_front_stock=max_front_stock,
                min_front_stock=min_front_stock,
                actor_id=actor_id,
            )

    def record_supply(
        self,
        product_id: UUID,
        quantity: int,
        *,
        unit_cost: Decimal | int | str | None = None,
        related_supply_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        with self._unit_of_work(
            "record_supply", actor_id, product_id=product_id
        ) as session:
            return StockMutator(session, self._clock).record_supply(
                product_id,
                quantity,
                unit_cost=unit_cost,
                related_supply_id=related_supply_id,
                actor_id=actor_id,
            )

    def create_supply(
        self,
        supplier_name: str,
        lines: list[SupplyLine],
        *,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> SupplyInfo:
        with self._unit_of_work("create_supply", actor_id) as session:
            return SupplyService(session, self._clock).create_supply(
                supplier_name, lines, notes=notes, actor_id=actor_id
            )

    def write_off(
        self,
        product_id: UUID,
        quantity: int,
        *,
        reason: str | None = None,
        actor_id: UUID | None = None,
        bucket: Bucket = Bucket.AUTO,
    ) -> MutationResult:
        with self._unit_of_work(
            "write_off", actor_id, product_id=product_id
        ) as session:
            return StockMutator(session, self._clock).write_off(
                product_id, quantity, reason=reason, actor_id=actor_id, bucket=bucket
            )

    def manual_edit(
        self,
        product_id: UUID,
        *,
        new_total: int | None = None,
        min_front_stock: int | None = None,
        max_front_stock: int | None = None,
        front_stock: int | None = None,
        back_stock: int | None = None,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        with self._unit_of_work(
            "manual_edit", actor_id, product_id=product_id
        ) as session:
            return StockMutator(session, self._clock).manual_edit(
                product_id,
                new_total=new_total,
                min_front_stock=min_front_stock,
                max_front_stock=max_front_stock,
                front_stock=front_stock,
                back_stock=back_stock,
                reason=reason,
                actor_id=actor_id,
            )

    # =========================================================================
    # Stock queries
    # =========================================================================

    def current_state(self, product_id: UUID) -> StockState:
        with self._unit_of_work("current_state") as session:
            return StockSelector(session).current_state(product_id)

    def list_products(
        self, category_id: UUID | None = None, include_inactive: bool = False
    ) -> list[StockState]:
        with self._unit_of_work("list_products") as session:
            return StockSelector(session).list_products(category_id, include_inactive)

    def get_history(self, product_id: UUID, limit: int = 50) -> list[MovementRecord]:
        with self._unit_of_work("get_history") as session:
            return LedgerSelector(session).get_history(product_id, limit=limit)

    def replay_ledger(self, product_id: UUID) -> ReplayResult:
        with self._unit_of_work("replay_ledger") as session:
            return LedgerSelector(session).replay(product_id)

    # =========================================================================
    # Replenishment
    # =========================================================================

    def complete_restock_task(
        self, task_id: UUID, actor_id: UUID | None = None
    ) -> TaskInfo:
        with self._unit_of_work(
            "complete_restock_task", actor_id, task_id=task_id
        ) as session:
            return ReplenishmentService(session, self._clock).complete_task(
                task_id, actor_id
            )

    def list_open_tasks(self, product_id: UUID | None = None) -> list[TaskInfo]:
        with self._unit_of_work("list_open_tasks") as session:
            return StockSelector(session).list_open_tasks(product_id=product_id)

    def get_task(self, task_id: UUID) -> TaskInfo:
        with self._unit_of_work("get_task") as session:
            return StockSelector(session).get_task(task_id)

    def evaluate_transfer_rules(self) -> list[TaskInfo]:
        with self._unit_of_work("evaluate_transfer_rules") as session:
            return ReplenishmentService(session, self._clock).evaluate_transfer_rules()

    # =========================================================================
    # Inventory reconciliation
    # =========================================================================

    def _reconciliation(self, session: Session) -> ReconciliationService:
        return ReconciliationService(
            session, self._clock, revenue_metric_keys=self._metric_keys
        )

    def open_inventory(
        self,
        *,
        category_id: UUID | None = None,
        target_metric_key: str | None = None,
        warehouse_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryInfo:
        with self._unit_of_work("open_inventory", actor_id) as session:
            return self._reconciliation(session).open_inventory(
                category_id=category_id,
                target_metric_key=target_metric_key,
                warehouse_id=warehouse_id,
                actor_id=actor_id,
            )

    def record_count(
        self, item_id: UUID, actual_stock: int, actor_id: UUID | None = None
    ) -> InventoryItemInfo:
        with self._unit_of_work("record_count", actor_id) as session:
            return self._reconciliation(session).record_count(item_id, actual_stock)

    def add_item(
        self, inventory_id: UUID, product_id: UUID, actor_id: UUID | None = None
    ) -> InventoryItemInfo:
        with self._unit_of_work("add_item", actor_id) as session:
            return self._reconciliation(session).add_item(inventory_id, product_id)

    def close_inventory(
        self,
        inventory_id: UUID,
        *,
        reported_revenue: Decimal | int | str | None = None,
        actor_id: UUID | None = None,
    ) -> CloseResult:
        with self._unit_of_work(
            "close_inventory", actor_id, inventory_id=inventory_id
        ) as session:
            return self._reconciliation(session).close_inventory(
                inventory_id, reported_revenue=reported_revenue, actor_id=actor_id
            )

    def delete_inventory(self, inventory_id: UUID, actor_id: UUID | None = None) -> None:
        with self._unit_of_work("delete_inventory", actor_id) as session:
            self._reconciliation(session).delete_inventory(inventory_id)

    def get_inventory(self, inventory_id: UUID) -> InventoryInfo:
        with self._unit_of_work("get_inventory") as session:
            return InventorySelector(session).get_inventory(inventory_id)

    def list_inventories(
        self, status: InventoryStatus | None = None, limit: int = 50
    ) -> list[InventoryInfo]:
        with self._unit_of_work("list_inventories") as session:
            return InventorySelector(session).list_inventories(status, limit)

    def list_inventory_items(
        self, inventory_id: UUID, counted: bool | None = None
    ) -> list[InventoryItemInfo]:
        with self._unit_of_work("list_inventory_items") as session:
            return InventorySelector(session).list_items(inventory_id, counted)

    # =========================================================================
    # Procurement
    # =========================================================================

    def generate_procurement_list(
        self, *, title: str | None = None, actor_id: UUID | None = None
    ) -> ProcurementListInfo:
        with self._unit_of_work("generate_procurement_list", actor_id) as session:
            return ProcurementService(session, self._clock).generate_procurement_list(
                velocity_window_days=self._procurement.velocity_window_days,
                coverage_days=self._procurement.coverage_days,
                title=title,
                actor_id=actor_id,
            )

    def update_procurement_item(
        self, item_id: UUID, actual_quantity: int, actor_id: UUID | None = None
    ) -> ProcurementItemInfo:
        with self._unit_of_work("update_procurement_item", actor_id) as session:
            return ProcurementService(session, self._clock).update_procurement_item(
                item_id, actual_quantity
            )

    def get_procurement_list(self, list_id: UUID) -> ProcurementListInfo:
        with self._unit_of_work("get_procurement_list") as session:
            return ProcurementService(session, self._clock).get_procurement_list(list_id)

    def delete_procurement_list(
        self, list_id: UUID, actor_id: UUID | None = None
    ) -> None:
        with self._unit_of_work("delete_procurement_list", actor_id) as session:
            ProcurementService(session, self._clock).delete_procurement_list(list_id)

    # =========================================================================
    # Supplies
    # =========================================================================

    def get_supply(self, supply_id: UUID) -> SupplyInfo:
        with self._unit_of_work("get_supply") as session:
            return SupplyService(session, self._clock).get_supply(supply_id)

    def list_supplies(self, limit: int = 50) -> list[SupplyInfo]:
        with self._unit_of_work("list_supplies") as session:
            return SupplyService(session, self._clock).list_supplies(limit)

    # =========================================================================
    # Catalog
    # =========================================================================

    def create_category(
        self,
        name: str,
        *,
        parent_id: UUID | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> CategoryInfo:
        with self._unit_of_work("create_category", actor_id) as session:
            return CatalogService(session, self._clock).create_category(
                name, parent_id=parent_id, description=description, actor_id=actor_id
            )

    def set_category_parent(
        self, category_id: UUID, parent_id: UUID | None, actor_id: UUID | None = None
    ) -> CategoryInfo:
        with self._unit_of_work("set_category_parent", actor_id) as session:
            return CatalogService(session, self._clock).set_category_parent(
                category_id, parent_id
            )

    def list_categories(self) -> list[CategoryInfo]:
        with self._unit_of_work("list_categories") as session:
            return CatalogService(session, self._clock).list_categories()

    def create_warehouse(
        self,
        name: str,
        *,
        address: str | None = None,
        is_default: bool = False,
        actor_id: UUID | None = None,
    ) -> WarehouseInfo:
        with self._unit_of_work("create_warehouse", actor_id) as session:
            return CatalogService(session, self._clock).create_warehouse(
                name, address=address, is_default=is_default, actor_id=actor_id
            )

    def list_warehouses(self) -> list[WarehouseInfo]:
        with self._unit_of_work("list_warehouses") as session:
            return CatalogService(session, self._clock).list_warehouses()

    def set_warehouse_stock(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: int,
        actor_id: UUID | None = None,
    ) -> int:
        with self._unit_of_work("set_warehouse_stock", actor_id) as session:
            return CatalogService(session, self._clock).set_warehouse_stock(
                warehouse_id, product_id, quantity
            )

    def create_replenishment_rule(
        self,
        *,
        product_id: UUID,
        source_warehouse_id: UUID,
        target_warehouse_id: UUID,
        min_stock_level: int,
        max_stock_level: int,
        actor_id: UUID | None = None,
    ) -> RuleInfo:
        with self._unit_of_work("create_replenishment_rule", actor_id) as session:
            return CatalogService(session, self._clock).create_replenishment_rule(
                product_id=product_id,
                source_warehouse_id=source_warehouse_id,
                target_warehouse_id=target_warehouse_id,
                min_stock_level=min_stock_level,
                max_stock_level=max_stock_level,
                actor_id=actor_id,
            )

    def deactivate_rule(self, rule_id: UUID, actor_id: UUID | None = None) -> RuleInfo:
        with self._unit_of_work("deactivate_rule", actor_id) as session:
            return CatalogService(session, self._clock).deactivate_rule(rule_id)

    def update_prices(
        self,
        product_id: UUID,
        *,
        cost_price: Decimal | int | str | None = None,
        selling_price: Decimal | int | str | None = None,
        actor_id: UUID | None = None,
    ) -> StockState:
        with self._unit_of_work("update_prices", actor_id) as session:
            return CatalogService(session, self._clock).update_prices(
                product_id,
                cost_price=cost_price,
                selling_price=selling_price,
                actor_id=actor_id,
            )

    def bulk_update_prices(
        self,
        product_ids: list[UUID],
        *,
        mode: str,
        value: Decimal | int | str,
        actor_id: UUID | None = None,
    ) -> list[StockState]:
        with self._unit_of_work("bulk_update_prices", actor_id) as session:
            return CatalogService(session, self._clock).bulk_update_prices(
                product_ids, mode=mode, value=value, actor_id=actor_id
            )

    def deactivate_product(
        self, product_id: UUID, actor_id: UUID | None = None
    ) -> StockState:
        with self._unit_of_work("deactivate_product", actor_id) as session:
            return CatalogService(session, self._clock).deactivate_product(
                product_id, actor_id
            )
