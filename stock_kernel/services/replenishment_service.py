"""
ReplenishmentService -- restock and transfer tasking.

Responsibility:
    Turns stock levels into work items.  After every stock mutation (except
    reconciliation overwrites) the front/back state of the product is
    evaluated and, when the front is at or below its threshold and back
    stock exists, exactly one OPEN RESTOCK task is ensured.  Warehouse
    replenishment rules are evaluated in batch and produce TRANSFER tasks.
    Completing a task moves the stock and records an INTERNAL_MOVE.

Architecture position:
    Kernel > Services.  Threshold math lives in
    ``stock_kernel.domain.replenishment``.

Invariants enforced:
    T1 -- At most one OPEN RESTOCK task per product: query-then-insert under
          the product row lock held by the calling mutation, backed by a
          partial unique index.
    T2 -- At most one OPEN TRANSFER task per (product, source, target).
    T3 -- Task creation failures never fail the parent mutation: the insert
          runs in a SAVEPOINT that is rolled back and logged on error.
    Tasks are never auto-cancelled when the level recovers.

Failure modes:
    - TaskNotFoundError / TaskAlreadyCompletedError on completion.
    - InsufficientStockError is impossible on completion: the moved
      quantity is capped by what the source holds.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from stock_kernel.domain.dtos import TaskInfo
from stock_kernel.domain.replenishment import (
    needs_front_restock,
    needs_replenishment,
    priority_for,
    replenishment_quantity,
)
from stock_kernel.domain.split_policy import Bucket
from stock_kernel.exceptions import TaskAlreadyCompletedError, TaskNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import ReplenishmentRule, WarehouseStock
from stock_kernel.models.product import Product
from stock_kernel.models.restock_task import RestockTask, TaskStatus, TaskType
from stock_kernel.services.base import BaseService

logger = get_logger("services.replenishment")


class ReplenishmentService(BaseService[RestockTask]):
    """
    Creates and completes replenishment tasks.

    Contract:
        evaluate_product() expects the caller to hold the product row lock
        (it is called from StockMutator).  complete_task() and
        evaluate_transfer_rules() are standalone operations.

    Guarantees:
        - Returned tasks are frozen ``TaskInfo`` DTOs.
        - Flush-only; SAVEPOINTs are opened and closed locally.
    """

    def _mutator(self):
        from stock_kernel.services.stock_mutator import StockMutator

        return StockMutator(self.session, self._clock, replenishment=self)

    def _get_task_for_update(self, task_id: UUID) -> RestockTask:
        task = self.session.execute(
            select(RestockTask)
            .where(RestockTask.id == task_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if task is None:
            raise TaskNotFoundError(str(task_id))
        return task

    def _open_restock_task(self, product_id: UUID) -> RestockTask | None:
        return self.session.execute(
            select(RestockTask).where(
                RestockTask.product_id == product_id,
                RestockTask.task_type == TaskType.RESTOCK.value,
                RestockTask.status == TaskStatus.OPEN.value,
            )
        ).scalar_one_or_none()

    def _open_transfer_task(
        self, product_id: UUID, source_id: UUID, target_id: UUID
    ) -> RestockTask | None:
        return self.session.execute(
            select(RestockTask).where(
                RestockTask.product_id == product_id,
                RestockTask.task_type == TaskType.TRANSFER.value,
                RestockTask.status == TaskStatus.OPEN.value,
                RestockTask.source_warehouse_id == source_id,
                RestockTask.target_warehouse_id == target_id,
            )
        ).scalars().first()

    def _insert_task(self, task: RestockTask) -> RestockTask | None:
        """Insert in a SAVEPOINT; on failure log, roll back the savepoint, return None."""
        savepoint = self.session.begin_nested()
        try:
            self.session.add(task)
            self.session.flush()
            savepoint.commit()
        except SQLAlchemyError:
            savepoint.rollback()
            logger.warning(
                "task_insert_failed",
                extra={
                    "product_id": str(task.product_id),
                    "task_type": task.task_type,
                },
                exc_info=True,
            )
            return None
        return task

    def _warehouse_stock(
        self, warehouse_id: UUID, product_id: UUID, for_update: bool = False
    ) -> WarehouseStock | None:
        stmt = select(WarehouseStock).where(
            WarehouseStock.warehouse_id == warehouse_id,
            WarehouseStock.product_id == product_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    # =========================================================================
    # Front/back restocking
    # =========================================================================

    def evaluate_product(self, product: Product) -> TaskInfo | None:
        """
        Ensure an OPEN RESTOCK task exists when the product needs one.

        Returns:
            The open task (new or pre-existing), or None when no restock
            is needed or the insert failed.
        """
        if not needs_front_restock(
            product.front_stock,
            product.back_stock,
            product.min_front_stock,
            product.max_front_stock,
        ):
            return None

        existing = self._open_restock_task(product.id)
        if existing is not None:
            return TaskInfo.from_model(existing)

        quantity = replenishment_quantity(
            product.front_stock, product.max_front_stock, product.back_stock
        )
        priority = priority_for(product.front_stock)
        task = self._insert_task(
            RestockTask(
                task_type=TaskType.RESTOCK.value,
                product_id=product.id,
                priority=priority.value,
                status=TaskStatus.OPEN.value,
                title=f"Restock {product.name}",
                description=(
                    f"Move {quantity} from back to front "
                    f"(front {product.front_stock}/{product.max_front_stock}, "
                    f"back {product.back_stock})"
                ),
                requested_quantity=quantity,
                created_at=self._clock.now(),
            )
        )
        if task is None:
            return None

        logger.info(
            "restock_task_created",
            extra={
                "task_id": str(task.id),
                "product_id": str(product.id),
                "priority": priority.value,
                "requested_quantity": quantity,
            },
        )
        return TaskInfo.from_model(task)

    # =========================================================================
    # Warehouse transfers
    # =========================================================================

    def evaluate_transfer_rules(self) -> list[TaskInfo]:
        """
        Batch-evaluate active replenishment rules.

        Idempotent: a rule whose route already has an OPEN TRANSFER task is
        skipped.

        Returns:
            The tasks created by this run.
        """
        rules = self.session.execute(
            select(ReplenishmentRule)
            .join(Product, Product.id == ReplenishmentRule.product_id)
            .where(ReplenishmentRule.is_active.is_(True), Product.is_active.is_(True))
            .order_by(ReplenishmentRule.created_at, ReplenishmentRule.id)
        ).scalars().all()

        created: list[TaskInfo] = []
        for rule in rules:
            target = self._warehouse_stock(rule.target_warehouse_id, rule.product_id)
            source = self._warehouse_stock(rule.source_warehouse_id, rule.product_id)
            level = target.quantity if target else 0
            available = source.quantity if source else 0

            if not needs_replenishment(level, rule.min_stock_level, available):
                continue
            if self._open_transfer_task(
                rule.product_id, rule.source_warehouse_id, rule.target_warehouse_id
            ):
                continue

            quantity = replenishment_quantity(level, rule.max_stock_level, available)
            if quantity <= 0:
                continue

            product = self.session.get(Product, rule.product_id)
            priority = priority_for(level)
            task = self._insert_task(
                RestockTask(
                    task_type=TaskType.TRANSFER.value,
                    product_id=rule.product_id,
                    priority=priority.value,
                    status=TaskStatus.OPEN.value,
                    title=f"Transfer {product.name}",
                    description=(
                        f"Move {quantity} to reach {rule.max_stock_level} "
                        f"(target holds {level}, source holds {available})"
                    ),
                    requested_quantity=quantity,
                    source_warehouse_id=rule.source_warehouse_id,
                    target_warehouse_id=rule.target_warehouse_id,
                    created_at=self._clock.now(),
                )
            )
            if task is None:
                continue
            created.append(TaskInfo.from_model(task))

        logger.info(
            "transfer_rules_evaluated",
            extra={"rule_count": len(rules), "tasks_created": len(created)},
        )
        return created

    # =========================================================================
    # Completion
    # =========================================================================

    def complete_task(self, task_id: UUID, actor_id: UUID | None = None) -> TaskInfo:
        """
        Complete an OPEN task and move the stock.

        RESTOCK moves min(back, max_front - front) from back to front.
        TRANSFER moves min(requested, source warehouse quantity) between
        the warehouses.  A positive move is ledgered as INTERNAL_MOVE.

        Raises:
            TaskNotFoundError: Unknown task.
            TaskAlreadyCompletedError: Task is not OPEN.
        """
        task = self._get_task_for_update(task_id)
        if task.status != TaskStatus.OPEN:
            raise TaskAlreadyCompletedError(str(task_id))

        if task.task_type == TaskType.TRANSFER:
            moved = self._complete_transfer(task, actor_id)
        else:
            moved = self._complete_restock(task, actor_id)

        task.status = TaskStatus.COMPLETED.value
        task.moved_quantity = moved
        task.completed_at = self._clock.now()
        task.completed_by_id = actor_id
        self.session.flush()

        logger.info(
            "task_completed",
            extra={
                "task_id": str(task.id),
                "task_type": task.task_type,
                "product_id": str(task.product_id),
                "moved_quantity": moved,
            },
        )

        if task.task_type == TaskType.RESTOCK:
            product = self.session.get(Product, task.product_id)
            self.evaluate_product(product)

        return TaskInfo.from_model(task)

    def _complete_restock(self, task: RestockTask, actor_id: UUID | None) -> int:
        product = self.session.execute(
            select(Product)
            .where(Product.id == task.product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
        moved = max(0, min(product.back_stock, product.max_front_stock - product.front_stock))
        if moved > 0:
            self._mutator().move_internal(
                product.id,
                moved,
                from_location=Bucket.BACK.value,
                to_location=Bucket.FRONT.value,
                related_task_id=task.id,
                actor_id=actor_id,
            )
        return moved

    def _complete_transfer(self, task: RestockTask, actor_id: UUID | None) -> int:
        source = self._warehouse_stock(
            task.source_warehouse_id, task.product_id, for_update=True
        )
        available = source.quantity if source else 0
        moved = min(task.requested_quantity, available)
        if moved <= 0:
            return 0

        target = self._warehouse_stock(
            task.target_warehouse_id, task.product_id, for_update=True
        )
        if target is None:
            target = WarehouseStock(
                warehouse_id=task.target_warehouse_id,
                product_id=task.product_id,
                quantity=0,
            )
            self.session.add(target)

        source.quantity -= moved
        target.quantity += moved
        self.session.flush()

        self._mutator().move_internal(
            task.product_id,
            moved,
            from_location=f"warehouse:{task.source_warehouse_id}",
            to_location=f"warehouse:{task.target_warehouse_id}",
            related_task_id=task.id,
            actor_id=actor_id,
        )
        return moved
