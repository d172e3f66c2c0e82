"""
StockSelector -- current product state and open work.

Architecture position:
    Kernel > Selectors -- read-only, no flush/commit.
"""

from uuid import UUID

from sqlalchemy import case, select

from stock_kernel.domain.dtos import StockState, TaskInfo
from stock_kernel.exceptions import ProductNotFoundError, TaskNotFoundError
from stock_kernel.models.product import Product
from stock_kernel.models.restock_task import RestockTask, TaskStatus, TaskType
from stock_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[Product]):
    """Selector for product stock and tasks."""

    def current_state(self, product_id: UUID) -> StockState:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return StockState.from_model(product)

    def list_products(
        self,
        category_id: UUID | None = None,
        include_inactive: bool = False,
    ) -> list[StockState]:
        stmt = select(Product)
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if not include_inactive:
            stmt = stmt.where(Product.is_active.is_(True))
        products = self.session.execute(
            stmt.order_by(Product.name, Product.id)
        ).scalars().all()
        return [StockState.from_model(p) for p in products]

    def list_open_tasks(
        self,
        product_id: UUID | None = None,
        task_type: TaskType | None = None,
    ) -> list[TaskInfo]:
        """Open tasks, HIGH priority first, then oldest first."""
        stmt = select(RestockTask).where(RestockTask.status == TaskStatus.OPEN.value)
        if product_id is not None:
            stmt = stmt.where(RestockTask.product_id == product_id)
        if task_type is not None:
            stmt = stmt.where(RestockTask.task_type == TaskType(task_type).value)
        urgency = case((RestockTask.priority == "HIGH", 0), else_=1)
        tasks = self.session.execute(
            stmt.order_by(urgency, RestockTask.created_at, RestockTask.id)
        ).scalars().all()
        return [TaskInfo.from_model(t) for t in tasks]

    def get_task(self, task_id: UUID) -> TaskInfo:
        task = self.session.get(RestockTask, task_id)
        if task is None:
            raise TaskNotFoundError(str(task_id))
        return TaskInfo.from_model(task)
