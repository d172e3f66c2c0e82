"""
Module: stock_kernel.models.procurement
Responsibility: ORM persistence for generated purchase suggestions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - suggested_quantity and actual_quantity are >= 0.
    - current_stock, sales_velocity and cost_price are snapshots taken at
      generation time; only actual_quantity is edited afterwards.

Audit relevance:
    Procurement lists are advisory drafts.  They never touch stock; goods
    are booked only when a Supply is recorded.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class ProcurementList(TrackedBase):
    __tablename__ = "procurement_lists"

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Window and horizon used to compute suggestions
    velocity_window_days: Mapped[int] = mapped_column(Integer, nullable=False)
    coverage_days: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[ProcurementListItem]] = relationship(
        back_populates="procurement_list",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ProcurementList {self.id} {self.title}>"


class ProcurementListItem(Base):
    __tablename__ = "procurement_list_items"

    __table_args__ = (
        CheckConstraint("suggested_quantity >= 0", name="ck_proc_suggested_nonneg"),
        CheckConstraint("actual_quantity >= 0", name="ck_proc_actual_nonneg"),
    )

    list_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("procurement_lists.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)

    # Units consumed per day over the window
    sales_velocity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    suggested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    cost_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    procurement_list: Mapped[ProcurementList] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<ProcurementListItem {self.product_id} "
            f"suggested={self.suggested_quantity} actual={self.actual_quantity}>"
        )
