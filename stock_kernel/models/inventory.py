"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for physical-inventory sessions and their
    counted lines.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    I1 -- Status moves OPEN -> CLOSED exactly once; CLOSED is terminal.
    I2 -- A CLOSED session and its items are immutable (ORM listeners in
          db/immutability.py reject UPDATE/DELETE).
    I3 -- expected_stock and the price snapshots of an item are frozen at
          creation; only actual_stock changes while the session is OPEN.
    I4 -- (inventory_id, product_id) is unique (uq_inventory_item_product).
    I5 -- difference and calculated_revenue are written at close only.

Failure modes:
    - InventoryAlreadyClosedError for mutations after close (service layer).
    - ImmutabilityViolationError if a write slips past the service layer.

Audit relevance:
    revenue_difference = reported_revenue - calculated_revenue is the
    headline shrinkage/over-reporting figure of the session.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class InventoryStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Inventory(TrackedBase):
    """
    A physical-inventory session.

    Contract:
        Opened with a snapshot of every in-scope product, counted blind,
        closed once.  Closing overwrites product stock for counted items.

    Guarantees:
        - Revenue fields are null until close.
        - closed_at / closed_by_id are set exactly when status is CLOSED.
    """

    __tablename__ = "inventories"

    __table_args__ = (
        Index("idx_inventory_status", "status"),
        Index("idx_inventory_started", "started_at"),
    )

    status: Mapped[InventoryStatus] = mapped_column(
        String(20), nullable=False, default=InventoryStatus.OPEN.value
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Revenue metric the reported figure is claimed against
    target_metric_key: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reported_revenue: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    calculated_revenue: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    revenue_difference: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )

    # Scope filters applied when the session was opened
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=True
    )

    items: Mapped[list[InventoryItem]] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        order_by="InventoryItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Inventory {self.id} status={self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == InventoryStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == InventoryStatus.CLOSED


class InventoryItem(Base):
    """
    One product line of an inventory session.

    Guarantees:
        - actual_stock is None until counted; uncounted lines are skipped
          at close and never adjust stock.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("inventory_id", "product_id", name="uq_inventory_item_product"),
        CheckConstraint(
            "actual_stock IS NULL OR actual_stock >= 0", name="ck_item_count_nonneg"
        ),
        Index("idx_inventory_item_product", "product_id"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventories.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    # Frozen at creation
    expected_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_price_snapshot: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    selling_price_snapshot: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False
    )

    actual_stock: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Written at close
    difference: Mapped[int | None] = mapped_column(Integer, nullable=True)
    calculated_revenue: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    inventory: Mapped[Inventory] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.product_id} expected={self.expected_stock} "
            f"actual={self.actual_stock}>"
        )

    @property
    def is_counted(self) -> bool:
        return self.actual_stock is not None
