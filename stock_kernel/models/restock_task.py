"""
Module: stock_kernel.models.restock_task
Responsibility: ORM persistence for replenishment work items: RESTOCK tasks
    (move stock from back to front for one product) and TRANSFER tasks (move
    stock between two warehouses for one product).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    T1 -- At most one OPEN RESTOCK task per product (partial unique index
          uq_open_restock_per_product, plus a query-then-insert under the
          product row lock in ReplenishmentService).
    T2 -- At most one OPEN TRANSFER task per (product, source, target),
          checked by ReplenishmentService.evaluate_transfer_rules().
    T3 -- COMPLETED is terminal; completion records actor and time.

Failure modes:
    - IntegrityError from the partial unique index if T1 is raced; the
      service runs the insert inside a SAVEPOINT so the parent mutation
      survives.
    - TaskAlreadyCompletedError on completing a non-OPEN task.

Audit relevance:
    Tasks are never auto-cancelled.  A task's effect on stock is recorded
    as an INTERNAL_MOVE ledger row referencing the task.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class TaskType(str, Enum):
    RESTOCK = "RESTOCK"
    TRANSFER = "TRANSFER"


class TaskStatus(str, Enum):
    """OPEN -> COMPLETED, never back."""

    OPEN = "OPEN"
    COMPLETED = "COMPLETED"


_OPEN_RESTOCK = "status = 'OPEN' AND task_type = 'RESTOCK'"


class RestockTask(Base):
    """
    A unit of replenishment work.

    Contract:
        Created by ReplenishmentService only; completed through
        ReplenishmentService.complete_task().

    Guarantees:
        - requested_quantity is the quantity suggested at creation time;
          moved_quantity is what completion actually moved.
        - source/target warehouse ids are set for TRANSFER tasks only.
    """

    __tablename__ = "stock_tasks"

    __table_args__ = (
        Index(
            "uq_open_restock_per_product",
            "product_id",
            unique=True,
            postgresql_where=text(_OPEN_RESTOCK),
            sqlite_where=text(_OPEN_RESTOCK),
        ),
        Index("idx_task_status", "status"),
        Index(
            "idx_task_transfer_route",
            "product_id",
            "source_warehouse_id",
            "target_warehouse_id",
        ),
        CheckConstraint("requested_quantity >= 0", name="ck_task_requested_nonneg"),
    )

    task_type: Mapped[TaskType] = mapped_column(String(20), nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    priority: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[TaskStatus] = mapped_column(
        String(20), nullable=False, default=TaskStatus.OPEN.value
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # TRANSFER only
    source_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=True
    )
    target_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    moved_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<RestockTask {self.id} {self.task_type} {self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == TaskStatus.OPEN
