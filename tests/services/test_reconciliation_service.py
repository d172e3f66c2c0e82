"""
Inventory session lifecycle: open, blind count, close exactly once.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stock_kernel.exceptions import (
    CategoryNotFoundError,
    ImmutabilityViolationError,
    InventoryAlreadyClosedError,
    InventoryItemNotFoundError,
    InventoryNotFoundError,
    UnknownMetricError,
)
from stock_kernel.models.inventory import Inventory, InventoryItem, InventoryStatus
from stock_kernel.models.stock_movement import MovementType, StockMovement


@pytest.fixture
def three_products(make_product):
    """Expected stocks [10, 5, 0] at selling prices [10, 20, 5]."""
    return [
        make_product("Gin", opening_stock=10, selling_price="10"),
        make_product("Tonic", opening_stock=5, selling_price="20"),
        make_product("Lime", opening_stock=0, selling_price="5"),
    ]


def _items_by_product(inventory_selector, inventory_id):
    return {i.product_id: i for i in inventory_selector.list_items(inventory_id)}


class TestOpenInventory:
    def test_snapshots_category_products(
        self, three_products, reconciliation_service, inventory_selector, category,
        deterministic_clock, test_actor_id,
    ):
        info = reconciliation_service.open_inventory(
            category_id=category.category_id,
            target_metric_key="bar_revenue",
            actor_id=test_actor_id,
        )

        assert info.status == InventoryStatus.OPEN.value
        assert info.started_at == deterministic_clock.now()
        assert info.item_count == 3
        assert info.created_by_id == test_actor_id

        items = _items_by_product(inventory_selector, info.inventory_id)
        gin, tonic, lime = three_products
        assert items[gin.product_id].expected_stock == 10
        assert items[tonic.product_id].selling_price_snapshot == Decimal("20")
        assert items[lime.product_id].actual_stock is None

    def test_inactive_products_excluded(
        self, three_products, reconciliation_service, catalog_service, category
    ):
        catalog_service.deactivate_product(three_products[2].product_id)
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        assert info.item_count == 2

    def test_unknown_metric_rejected(self, reconciliation_service):
        with pytest.raises(UnknownMetricError) as exc_info:
            reconciliation_service.open_inventory(target_metric_key="door_revenue")
        assert exc_info.value.metric_key == "door_revenue"

    def test_unknown_category_rejected(self, reconciliation_service):
        with pytest.raises(CategoryNotFoundError):
            reconciliation_service.open_inventory(category_id=uuid4())

    def test_warehouse_scope(
        self, three_products, reconciliation_service, catalog_service, inventory_selector
    ):
        warehouse = catalog_service.create_warehouse(f"Cellar {uuid4().hex[:6]}")
        catalog_service.set_warehouse_stock(
            warehouse.warehouse_id, three_products[0].product_id, 4
        )

        info = reconciliation_service.open_inventory(warehouse_id=warehouse.warehouse_id)

        items = inventory_selector.list_items(info.inventory_id)
        assert [i.product_id for i in items] == [three_products[0].product_id]
        assert items[0].expected_stock == 10


class TestRecordCount:
    def test_count_is_recorded(self, three_products, reconciliation_service, category):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item = reconciliation_service.add_item(info.inventory_id, three_products[0].product_id)

        updated = reconciliation_service.record_count(item.item_id, 8)
        assert updated.actual_stock == 8
        assert updated.difference is None

        recounted = reconciliation_service.record_count(item.item_id, 9)
        assert recounted.actual_stock == 9

    def test_negative_count_rejected(self, three_products, reconciliation_service, category):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item = reconciliation_service.add_item(info.inventory_id, three_products[0].product_id)
        with pytest.raises(ValueError):
            reconciliation_service.record_count(item.item_id, -1)

    def test_unknown_item(self, reconciliation_service):
        with pytest.raises(InventoryItemNotFoundError):
            reconciliation_service.record_count(uuid4(), 1)


class TestAddItem:
    def test_add_product_outside_scope(
        self, make_product, reconciliation_service, catalog_service, category
    ):
        other = catalog_service.create_category(f"Kitchen {uuid4().hex[:6]}")
        make_product("Gin", opening_stock=3)
        stray = make_product("Flour", opening_stock=7, category_id=other.category_id)
        info = reconciliation_service.open_inventory(category_id=category.category_id)

        item = reconciliation_service.add_item(info.inventory_id, stray.product_id)

        assert item.expected_stock == 7
        assert item.inventory_id == info.inventory_id

    def test_add_existing_product_returns_existing_item(
        self, three_products, reconciliation_service, category, inventory_selector
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        first = reconciliation_service.add_item(info.inventory_id, three_products[0].product_id)
        again = reconciliation_service.add_item(info.inventory_id, three_products[0].product_id)

        assert first.item_id == again.item_id
        assert len(inventory_selector.list_items(info.inventory_id)) == 3


class TestCloseInventory:
    def _counted_session(self, three_products, reconciliation_service, inventory_selector, category):
        info = reconciliation_service.open_inventory(
            category_id=category.category_id, target_metric_key="bar_revenue"
        )
        items = _items_by_product(inventory_selector, info.inventory_id)
        gin, tonic, _ = three_products
        reconciliation_service.record_count(items[gin.product_id].item_id, 8)
        reconciliation_service.record_count(items[tonic.product_id].item_id, 5)
        return info

    def test_close_adjusts_and_reconciles(
        self, three_products, reconciliation_service, inventory_selector,
        stock_selector, ledger_selector, category, test_actor_id, deterministic_clock,
    ):
        """Counts [8, 5, None] against [10, 5, 0]: revenue 20 vs reported 40."""
        info = self._counted_session(
            three_products, reconciliation_service, inventory_selector, category
        )
        deterministic_clock.advance(3600)

        result = reconciliation_service.close_inventory(
            info.inventory_id, reported_revenue=Decimal("40"), actor_id=test_actor_id
        )

        closed = result.inventory
        assert closed.status == InventoryStatus.CLOSED.value
        assert closed.closed_at == deterministic_clock.now()
        assert closed.closed_by_id == test_actor_id
        assert closed.calculated_revenue == Decimal("20")
        assert closed.reported_revenue == Decimal("40")
        assert closed.revenue_difference == Decimal("20")

        gin, tonic, lime = three_products
        assert result.adjusted_product_ids == (gin.product_id,)
        assert len(result.skipped_item_ids) == 1
        assert result.stale_product_ids == ()

        assert stock_selector.current_state(gin.product_id).total == 8
        assert stock_selector.current_state(tonic.product_id).total == 5
        assert stock_selector.current_state(lime.product_id).total == 0

        adjustment = ledger_selector.get_history(gin.product_id, limit=1)[0]
        assert adjustment.movement_type == MovementType.INVENTORY_ADJUSTMENT.value
        assert adjustment.change_amount == -2
        assert adjustment.related_entity_type == "inventory"
        assert adjustment.related_entity_id == info.inventory_id
        assert adjustment.actor_id is None

        items = _items_by_product(inventory_selector, info.inventory_id)
        assert items[gin.product_id].difference == 2
        assert items[gin.product_id].calculated_revenue == Decimal("20")
        assert items[tonic.product_id].difference == 0
        assert items[lime.product_id].difference is None

    def test_close_twice_raises(
        self, three_products, reconciliation_service, inventory_selector, category, session
    ):
        info = self._counted_session(
            three_products, reconciliation_service, inventory_selector, category
        )
        reconciliation_service.close_inventory(info.inventory_id, reported_revenue="40")

        with pytest.raises(InventoryAlreadyClosedError):
            reconciliation_service.close_inventory(info.inventory_id, reported_revenue="40")

        adjustments = session.execute(
            select(func.count()).select_from(StockMovement).where(
                StockMovement.related_entity_id == info.inventory_id
            )
        ).scalar_one()
        assert adjustments == 1

    def test_closed_session_rejects_counts_and_items(
        self, three_products, reconciliation_service, inventory_selector, category
    ):
        info = self._counted_session(
            three_products, reconciliation_service, inventory_selector, category
        )
        reconciliation_service.close_inventory(info.inventory_id)
        item = inventory_selector.list_items(info.inventory_id)[0]

        with pytest.raises(InventoryAlreadyClosedError):
            reconciliation_service.record_count(item.item_id, 1)
        with pytest.raises(InventoryAlreadyClosedError):
            reconciliation_service.add_item(info.inventory_id, three_products[0].product_id)
        with pytest.raises(InventoryAlreadyClosedError):
            reconciliation_service.delete_inventory(info.inventory_id)

    def test_without_metric_reported_revenue_ignored(
        self, three_products, reconciliation_service, inventory_selector, category
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        items = _items_by_product(inventory_selector, info.inventory_id)
        reconciliation_service.record_count(items[three_products[0].product_id].item_id, 8)

        result = reconciliation_service.close_inventory(
            info.inventory_id, reported_revenue="999"
        )

        assert result.inventory.reported_revenue == Decimal("0")
        assert result.inventory.revenue_difference == Decimal("-20")

    def test_surplus_count_raises_stock(
        self, three_products, reconciliation_service, inventory_selector,
        stock_selector, category,
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        lime = three_products[2]
        items = _items_by_product(inventory_selector, info.inventory_id)
        reconciliation_service.record_count(items[lime.product_id].item_id, 3)

        result = reconciliation_service.close_inventory(info.inventory_id)

        assert stock_selector.current_state(lime.product_id).total == 3
        assert result.inventory.calculated_revenue == Decimal("-15")

    def test_adjustment_resets_split_front_first(
        self, make_product, reconciliation_service, inventory_selector,
        stock_selector, category,
    ):
        state = make_product("Cola", opening_stock=30, max_front_stock=10, min_front_stock=2)
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item = inventory_selector.list_items(info.inventory_id)[0]
        reconciliation_service.record_count(item.item_id, 14)

        reconciliation_service.close_inventory(info.inventory_id)

        after = stock_selector.current_state(state.product_id)
        assert (after.total, after.front, after.back) == (14, 10, 4)

    def test_stale_snapshot_flagged_and_count_wins(
        self, make_product, mutator, reconciliation_service, inventory_selector,
        stock_selector, ledger_selector, category, captured_logs,
    ):
        state = make_product("Vodka", opening_stock=10)
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item = inventory_selector.list_items(info.inventory_id)[0]
        mutator.record_supply(state.product_id, 6)
        reconciliation_service.record_count(item.item_id, 9)

        result = reconciliation_service.close_inventory(info.inventory_id)

        assert result.stale_product_ids == (state.product_id,)
        assert stock_selector.current_state(state.product_id).total == 9
        adjustment = ledger_selector.get_history(state.product_id, limit=1)[0]
        assert (adjustment.previous_stock, adjustment.change_amount) == (16, -7)
        assert ledger_selector.replay(state.product_id).is_consistent

        warnings = [r for r in captured_logs() if r["message"] == "inventory_snapshot_stale"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"

    def test_stale_count_matching_snapshot_still_overwrites(
        self, make_product, mutator, reconciliation_service, inventory_selector,
        stock_selector, ledger_selector, category,
    ):
        state = make_product("Rye", opening_stock=10)
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item = inventory_selector.list_items(info.inventory_id)[0]
        mutator.record_supply(state.product_id, 6)
        reconciliation_service.record_count(item.item_id, 10)

        result = reconciliation_service.close_inventory(info.inventory_id)

        assert result.stale_product_ids == (state.product_id,)
        assert result.adjusted_product_ids == (state.product_id,)
        assert stock_selector.current_state(state.product_id).total == 10
        adjustment = ledger_selector.get_history(state.product_id, limit=1)[0]
        assert (adjustment.previous_stock, adjustment.change_amount) == (16, -6)
        [closed_item] = inventory_selector.list_items(info.inventory_id)
        assert closed_item.difference == 0
        assert ledger_selector.replay(state.product_id).is_consistent

    def test_close_unknown_inventory(self, reconciliation_service):
        with pytest.raises(InventoryNotFoundError):
            reconciliation_service.close_inventory(uuid4())


class TestDeleteInventory:
    def test_delete_open_session(
        self, three_products, reconciliation_service, category, session
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        reconciliation_service.delete_inventory(info.inventory_id)

        assert session.get(Inventory, info.inventory_id) is None
        remaining = session.execute(
            select(func.count()).select_from(InventoryItem).where(
                InventoryItem.inventory_id == info.inventory_id
            )
        ).scalar_one()
        assert remaining == 0


class TestImmutability:
    def test_closed_inventory_cannot_be_edited(
        self, three_products, reconciliation_service, category, session
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        reconciliation_service.close_inventory(info.inventory_id)

        inventory = session.get(Inventory, info.inventory_id)
        inventory.status = InventoryStatus.OPEN.value
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_expected_stock_is_frozen(
        self, three_products, reconciliation_service, category, session, inventory_selector
    ):
        info = reconciliation_service.open_inventory(category_id=category.category_id)
        item_id = inventory_selector.list_items(info.inventory_id)[0].item_id

        item = session.get(InventoryItem, item_id)
        item.expected_stock = 999
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_ledger_rows_cannot_be_updated(self, make_product, session):
        state = make_product(opening_stock=4)
        movement = session.execute(
            select(StockMovement).where(StockMovement.product_id == state.product_id)
        ).scalar_one()

        movement.change_amount = 40
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_ledger_rows_cannot_be_deleted(self, make_product, session):
        state = make_product(opening_stock=4)
        movement = session.execute(
            select(StockMovement).where(StockMovement.product_id == state.product_id)
        ).scalar_one()

        session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
