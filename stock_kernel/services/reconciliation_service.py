"""
ReconciliationService -- physical inventory sessions (OPEN -> CLOSED).

Responsibility:
    Opens a session with a snapshot of every in-scope product, records blind
    counts, and closes the session exactly once: per-item differences and
    derived revenue are computed, stock is overwritten to the counted
    figures through StockMutator, and the revenue reconciliation is stored.

Architecture position:
    Kernel > Services.  Count/revenue arithmetic is the pure
    ``stock_kernel.domain.reconciliation.reconcile``.

Invariants enforced:
    I1 -- OPEN -> CLOSED exactly once; the inventory row is locked
          (SELECT ... FOR UPDATE) by every mutating call, so a count cannot
          interleave with the close and a second close sees CLOSED.
    I3 -- expected_stock and price snapshots are set at item creation only.
    Uncounted items (actual_stock None) neither adjust stock nor
          contribute revenue.
    Close is atomic: all adjustments and the status change share the
          caller's transaction.

Failure modes:
    - InventoryNotFoundError / InventoryItemNotFoundError.
    - InventoryAlreadyClosedError for any mutation of a CLOSED session.
    - UnknownMetricError when the target metric is not in the catalog.
    - ValueError for negative counts.

Audit relevance:
    Each adjustment is an INVENTORY_ADJUSTMENT ledger row referencing the
    session.  Stale snapshots (stock moved while counting) are logged at
    WARNING and returned to the caller; the count still wins.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.db.types import to_money
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import CloseResult, InventoryInfo, InventoryItemInfo
from stock_kernel.domain.reconciliation import CountLine, reconcile
from stock_kernel.exceptions import (
    CategoryNotFoundError,
    InventoryAlreadyClosedError,
    InventoryItemNotFoundError,
    InventoryNotFoundError,
    ProductNotFoundError,
    UnknownMetricError,
    WarehouseNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Category, Warehouse, WarehouseStock
from stock_kernel.models.inventory import Inventory, InventoryItem, InventoryStatus
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.reconciliation")


class ReconciliationService(BaseService[Inventory]):
    """
    Runs the inventory session workflow.

    Contract:
        Every method flushes within the caller's transaction and returns
        frozen DTOs.

    Guarantees:
        - Counting is blind: record_count never compares to expected.
        - A stale snapshot never blocks close.

    Non-goals:
        - No reopening of CLOSED sessions and no purge of closed history.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        revenue_metric_keys: tuple[str, ...] = (),
    ):
        super().__init__(session, clock)
        self._metric_keys = tuple(revenue_metric_keys)

    def _get_inventory_for_update(self, inventory_id: UUID) -> Inventory:
        inventory = self.session.execute(
            select(Inventory)
            .where(Inventory.id == inventory_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if inventory is None:
            raise InventoryNotFoundError(str(inventory_id))
        return inventory

    def _get_open_inventory_for_update(self, inventory_id: UUID) -> Inventory:
        inventory = self._get_inventory_for_update(inventory_id)
        if inventory.is_closed:
            raise InventoryAlreadyClosedError(str(inventory_id))
        return inventory

    def _new_item(self, product: Product) -> InventoryItem:
        return InventoryItem(
            product_id=product.id,
            expected_stock=product.total_stock,
            cost_price_snapshot=product.cost_price,
            selling_price_snapshot=product.selling_price,
            actual_stock=None,
            created_at=self._clock.now(),
        )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def open_inventory(
        self,
        *,
        category_id: UUID | None = None,
        target_metric_key: str | None = None,
        warehouse_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryInfo:
        """
        Open a session and snapshot every active product in scope.

        Scope:
            category_id -- products of that category only.
            warehouse_id -- products stocked in that warehouse (a
                WarehouseStock row exists); expected stock is still the
                product total.

        Raises:
            UnknownMetricError: target_metric_key is not a catalog metric.
        """
        if target_metric_key is not None and self._metric_keys:
            if target_metric_key not in self._metric_keys:
                raise UnknownMetricError(target_metric_key)
        if category_id is not None and self.session.get(Category, category_id) is None:
            raise CategoryNotFoundError(str(category_id))
        if warehouse_id is not None and self.session.get(Warehouse, warehouse_id) is None:
            raise WarehouseNotFoundError(str(warehouse_id))

        stmt = select(Product).where(Product.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if warehouse_id is not None:
            stmt = stmt.where(
                Product.id.in_(
                    select(WarehouseStock.product_id).where(
                        WarehouseStock.warehouse_id == warehouse_id
                    )
                )
            )
        products = self.session.execute(
            stmt.order_by(Product.name, Product.id)
        ).scalars().all()

        inventory = Inventory(
            status=InventoryStatus.OPEN.value,
            started_at=self._clock.now(),
            target_metric_key=target_metric_key,
            category_id=category_id,
            warehouse_id=warehouse_id,
            created_by_id=actor_id,
        )
        for product in products:
            inventory.items.append(self._new_item(product))
        self.session.add(inventory)
        self.session.flush()

        logger.info(
            "inventory_opened",
            extra={
                "inventory_id": str(inventory.id),
                "item_count": len(products),
                "target_metric_key": target_metric_key,
            },
        )
        return InventoryInfo.from_model(inventory)

    def record_count(self, item_id: UUID, actual_stock: int) -> InventoryItemInfo:
        """Record (or re-record) the counted quantity of one item."""
        if isinstance(actual_stock, bool) or not isinstance(actual_stock, int):
            raise ValueError(f"actual_stock must be an integer, got {actual_stock!r}")
        if actual_stock < 0:
            raise ValueError(f"actual_stock cannot be negative, got {actual_stock}")

        item = self.session.get(InventoryItem, item_id)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        self._get_open_inventory_for_update(item.inventory_id)

        item.actual_stock = actual_stock
        self.session.flush()

        logger.debug(
            "inventory_count_recorded",
            extra={
                "inventory_id": str(item.inventory_id),
                "item_id": str(item.id),
                "actual_stock": actual_stock,
            },
        )
        return InventoryItemInfo.from_model(item)

    def add_item(self, inventory_id: UUID, product_id: UUID) -> InventoryItemInfo:
        """
        Add a product to an OPEN session.

        Adding a product that is already part of the session returns the
        existing item unchanged.
        """
        inventory = self._get_open_inventory_for_update(inventory_id)

        for item in inventory.items:
            if item.product_id == product_id:
                return InventoryItemInfo.from_model(item)

        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        item = self._new_item(product)
        inventory.items.append(item)
        self.session.flush()

        logger.info(
            "inventory_item_added",
            extra={
                "inventory_id": str(inventory_id),
                "product_id": str(product_id),
                "expected_stock": item.expected_stock,
            },
        )
        return InventoryItemInfo.from_model(item)

    def close_inventory(
        self,
        inventory_id: UUID,
        *,
        reported_revenue: Decimal | int | str | None = None,
        actor_id: UUID | None = None,
    ) -> CloseResult:
        """
        Close the session, adjust stock, reconcile revenue.

        Steps:
            1. Lock the session; a CLOSED session raises.
            2. For every counted item: difference = expected - actual,
               calculated revenue = difference x selling price snapshot.
            3. Reported revenue counts only when a target metric is set.
            4. Counted items with actual != expected overwrite product
               stock via StockMutator.adjust_from_reconciliation.
            5. Status CLOSED with closed_at, closed_by and revenue fields.
        """
        inventory = self._get_open_inventory_for_update(inventory_id)
        reported = to_money(reported_revenue) if reported_revenue is not None else Decimal("0")

        items_by_id = {item.id: item for item in inventory.items}
        summary = reconcile(
            [
                CountLine(
                    item_id=item.id,
                    product_id=item.product_id,
                    expected_stock=item.expected_stock,
                    actual_stock=item.actual_stock,
                    selling_price_snapshot=item.selling_price_snapshot,
                )
                for item in inventory.items
            ],
            reported_revenue=reported,
            has_target_metric=inventory.target_metric_key is not None,
        )

        for outcome in summary.lines:
            item = items_by_id[outcome.item_id]
            item.difference = outcome.difference
            item.calculated_revenue = outcome.calculated_revenue
        # Item writes must reach the database while the session is still OPEN
        self.session.flush()

        mutator = StockMutator(self.session, self._clock)
        adjusted: list[UUID] = []
        stale: list[UUID] = []
        # Stable lock order across concurrent closes
        for outcome in sorted(summary.lines, key=lambda o: str(o.product_id)):
            # The count overwrites the live total, not the snapshot
            result = mutator.adjust_from_reconciliation(
                outcome.product_id,
                outcome.actual_stock,
                related_inventory_id=inventory.id,
            )
            if result.movement is not None:
                live_total = result.movement.previous_stock
                adjusted.append(outcome.product_id)
            else:
                live_total = result.state.total
            if live_total != outcome.expected_stock:
                stale.append(outcome.product_id)

        inventory.status = InventoryStatus.CLOSED.value
        inventory.closed_at = self._clock.now()
        inventory.closed_by_id = actor_id
        inventory.updated_by_id = actor_id
        inventory.reported_revenue = summary.reported_revenue
        inventory.calculated_revenue = summary.calculated_revenue
        inventory.revenue_difference = summary.revenue_difference
        self.session.flush()

        if stale:
            logger.warning(
                "inventory_snapshot_stale",
                extra={
                    "inventory_id": str(inventory.id),
                    "stale_product_ids": [str(p) for p in stale],
                },
            )
        logger.info(
            "inventory_closed",
            extra={
                "inventory_id": str(inventory.id),
                "counted_items": len(summary.lines),
                "skipped_items": len(summary.skipped_item_ids),
                "adjusted_products": len(adjusted),
                "calculated_revenue": summary.calculated_revenue,
                "reported_revenue": summary.reported_revenue,
                "revenue_difference": summary.revenue_difference,
            },
        )

        return CloseResult(
            inventory=InventoryInfo.from_model(inventory),
            adjusted_product_ids=tuple(adjusted),
            skipped_item_ids=summary.skipped_item_ids,
            stale_product_ids=tuple(stale),
        )

    def delete_inventory(self, inventory_id: UUID) -> None:
        """
        Discard an OPEN session and its items.

        Raises:
            InventoryAlreadyClosedError: CLOSED sessions are permanent.
        """
        inventory = self._get_open_inventory_for_update(inventory_id)
        item_count = len(inventory.items)
        self.session.delete(inventory)
        self.session.flush()

        logger.info(
            "inventory_deleted",
            extra={"inventory_id": str(inventory_id), "item_count": item_count},
        )
