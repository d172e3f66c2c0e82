"""
Module: stock_kernel.models.supply
Responsibility: ORM persistence for goods-received documents.  A Supply is the
    document; each SupplyItem is one received product line whose quantity is
    booked into stock by StockMutator.record_supply().
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - SupplyItem.quantity > 0, unit_cost >= 0.
    - total_cost == quantity * unit_cost per line; Supply.total_cost is the
      sum of its lines (computed by SupplyService).

Audit relevance:
    Each line produces one SUPPLY ledger row with related_entity_type
    "supply" and related_entity_id = the Supply id.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class Supply(TrackedBase):
    """A delivery from a supplier."""

    __tablename__ = "supplies"

    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    items: Mapped[list[SupplyItem]] = relationship(
        back_populates="supply",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Supply {self.id} from {self.supplier_name} total={self.total_cost}>"


class SupplyItem(Base):
    __tablename__ = "supply_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_supply_item_qty_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_supply_item_cost_nonneg"),
    )

    supply_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supplies.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    supply: Mapped[Supply] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<SupplyItem {self.product_id} x{self.quantity} @ {self.unit_cost}>"
