"""
Restock and transfer tasking.

Covers at-most-one OPEN task per product/route, completion semantics,
and isolation of task-creation failures from the parent mutation.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from stock_kernel.domain.split_policy import Bucket
from stock_kernel.exceptions import TaskAlreadyCompletedError, TaskNotFoundError
from stock_kernel.models.catalog import WarehouseStock
from stock_kernel.models.restock_task import TaskStatus, TaskType
from stock_kernel.models.stock_movement import MovementType
from stock_kernel.services.replenishment_service import ReplenishmentService


@pytest.fixture
def restock_product(make_product, mutator):
    """front 1 / back 20 with capacity 5 and threshold 2: one open restock task."""
    state = make_product(opening_stock=25, max_front_stock=5, min_front_stock=2)
    mutator.write_off(state.product_id, 4, bucket=Bucket.FRONT)
    return state.product_id


class TestRestockTask:
    def test_task_fields(self, restock_product, stock_selector):
        tasks = stock_selector.list_open_tasks(product_id=restock_product)
        assert len(tasks) == 1
        task = tasks[0]
        assert task.task_type == TaskType.RESTOCK.value
        assert task.status == TaskStatus.OPEN.value
        assert task.requested_quantity == 4
        assert task.title.startswith("Restock ")

    def test_complete_moves_back_to_front(
        self, restock_product, replenishment_service, stock_selector,
        ledger_selector, test_actor_id, deterministic_clock,
    ):
        task = stock_selector.list_open_tasks(product_id=restock_product)[0]
        deterministic_clock.advance(60)

        completed = replenishment_service.complete_task(task.task_id, test_actor_id)

        assert completed.status == TaskStatus.COMPLETED.value
        assert completed.moved_quantity == 4
        assert completed.completed_by_id == test_actor_id
        assert completed.completed_at == deterministic_clock.now()

        state = stock_selector.current_state(restock_product)
        assert (state.total, state.front, state.back) == (21, 5, 16)

        latest = ledger_selector.get_history(restock_product, limit=1)[0]
        assert latest.movement_type == MovementType.INTERNAL_MOVE.value
        assert latest.change_amount == 0
        assert latest.moved_quantity == 4
        assert (latest.from_location, latest.to_location) == ("back", "front")
        assert latest.related_entity_id == task.task_id

        assert stock_selector.list_open_tasks(product_id=restock_product) == []

    def test_complete_is_capped_by_back(
        self, make_product, mutator, replenishment_service, stock_selector
    ):
        state = make_product(opening_stock=7, max_front_stock=5, min_front_stock=2)
        mutator.write_off(state.product_id, 4, bucket=Bucket.FRONT)
        task = stock_selector.list_open_tasks(product_id=state.product_id)[0]

        completed = replenishment_service.complete_task(task.task_id)

        assert completed.moved_quantity == 2
        after = stock_selector.current_state(state.product_id)
        assert (after.front, after.back) == (3, 0)

    def test_complete_twice_raises(self, restock_product, replenishment_service, stock_selector):
        task = stock_selector.list_open_tasks(product_id=restock_product)[0]
        replenishment_service.complete_task(task.task_id)

        with pytest.raises(TaskAlreadyCompletedError):
            replenishment_service.complete_task(task.task_id)

    def test_complete_unknown_task(self, replenishment_service):
        with pytest.raises(TaskNotFoundError):
            replenishment_service.complete_task(uuid4())

    def test_new_task_after_completion(
        self, restock_product, replenishment_service, mutator, stock_selector
    ):
        task = stock_selector.list_open_tasks(product_id=restock_product)[0]
        replenishment_service.complete_task(task.task_id)

        mutator.write_off(restock_product, 4, bucket=Bucket.FRONT)

        tasks = stock_selector.list_open_tasks(product_id=restock_product)
        assert len(tasks) == 1
        assert tasks[0].task_id != task.task_id

    def test_recovery_does_not_cancel_task(self, restock_product, mutator, stock_selector):
        mutator.manual_edit(restock_product, front_stock=5, back_stock=16)
        assert len(stock_selector.list_open_tasks(product_id=restock_product)) == 1

    def test_insert_failure_does_not_fail_mutation(
        self, restock_product, session, deterministic_clock, mutator,
        stock_selector, captured_logs, monkeypatch,
    ):
        """A duplicate insert hits the partial unique index inside a savepoint."""
        existing = stock_selector.list_open_tasks(product_id=restock_product)
        assert len(existing) == 1
        monkeypatch.setattr(
            ReplenishmentService, "_open_restock_task", lambda self, product_id: None
        )

        result = mutator.write_off(restock_product, 1, bucket=Bucket.FRONT)

        assert result.state.front == 0
        assert result.movement is not None
        assert stock_selector.list_open_tasks(product_id=restock_product) == existing
        assert any(r["message"] == "task_insert_failed" for r in captured_logs())


class TestTransferRules:
    @pytest.fixture
    def route(self, make_product, catalog_service):
        product = make_product(opening_stock=40)
        source = catalog_service.create_warehouse(f"Main {uuid4().hex[:6]}")
        target = catalog_service.create_warehouse(f"Bar {uuid4().hex[:6]}")
        catalog_service.set_warehouse_stock(source.warehouse_id, product.product_id, 30)
        catalog_service.set_warehouse_stock(target.warehouse_id, product.product_id, 1)
        rule = catalog_service.create_replenishment_rule(
            product_id=product.product_id,
            source_warehouse_id=source.warehouse_id,
            target_warehouse_id=target.warehouse_id,
            min_stock_level=2,
            max_stock_level=10,
        )
        return product, source, target, rule

    def _quantity(self, session, warehouse_id, product_id) -> int:
        return session.execute(
            select(WarehouseStock.quantity).where(
                WarehouseStock.warehouse_id == warehouse_id,
                WarehouseStock.product_id == product_id,
            )
        ).scalar_one()

    def test_rule_creates_transfer_task(self, route, replenishment_service):
        product, source, target, _ = route

        created = replenishment_service.evaluate_transfer_rules()

        assert len(created) == 1
        task = created[0]
        assert task.task_type == TaskType.TRANSFER.value
        assert task.requested_quantity == 9
        assert task.source_warehouse_id == source.warehouse_id
        assert task.target_warehouse_id == target.warehouse_id

    def test_evaluation_is_idempotent(self, route, replenishment_service):
        replenishment_service.evaluate_transfer_rules()
        assert replenishment_service.evaluate_transfer_rules() == []

    def test_complete_transfer_moves_warehouse_stock(
        self, route, replenishment_service, session, stock_selector, ledger_selector
    ):
        product, source, target, _ = route
        task = replenishment_service.evaluate_transfer_rules()[0]

        completed = replenishment_service.complete_task(task.task_id)

        assert completed.moved_quantity == 9
        assert self._quantity(session, source.warehouse_id, product.product_id) == 21
        assert self._quantity(session, target.warehouse_id, product.product_id) == 10
        assert stock_selector.current_state(product.product_id).total == 40

        latest = ledger_selector.get_history(product.product_id, limit=1)[0]
        assert latest.movement_type == MovementType.INTERNAL_MOVE.value
        assert latest.from_location == f"warehouse:{source.warehouse_id}"
        assert latest.to_location == f"warehouse:{target.warehouse_id}"

    def test_transfer_capped_by_source(
        self, route, replenishment_service, catalog_service, session
    ):
        product, source, target, _ = route
        task = replenishment_service.evaluate_transfer_rules()[0]
        catalog_service.set_warehouse_stock(source.warehouse_id, product.product_id, 4)

        completed = replenishment_service.complete_task(task.task_id)

        assert completed.moved_quantity == 4
        assert self._quantity(session, source.warehouse_id, product.product_id) == 0
        assert self._quantity(session, target.warehouse_id, product.product_id) == 5

    def test_inactive_rule_skipped(self, route, replenishment_service, catalog_service):
        _, _, _, rule = route
        catalog_service.deactivate_rule(rule.rule_id)
        assert replenishment_service.evaluate_transfer_rules() == []

    def test_empty_source_skipped(self, route, replenishment_service, catalog_service):
        product, source, _, _ = route
        catalog_service.set_warehouse_stock(source.warehouse_id, product.product_id, 0)
        assert replenishment_service.evaluate_transfer_rules() == []

    def test_level_above_minimum_skipped(self, route, replenishment_service, catalog_service):
        product, _, target, _ = route
        catalog_service.set_warehouse_stock(target.warehouse_id, product.product_id, 3)
        assert replenishment_service.evaluate_transfer_rules() == []
