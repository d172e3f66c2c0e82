"""
Module: stock_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only stock ledger.  Each row is
    one immutable, signed quantity change of one product, with before/after
    snapshots of the product's total stock and a movement type tag.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    L1 -- new_stock == previous_stock + change_amount
          (CHECK ck_movement_arithmetic).
    L2 -- (product_id, sequence) is unique; sequences for a product are
          1, 2, 3, ... in commit order (the product row lock serializes them).
    L3 -- Rows are immutable from creation: UPDATE and DELETE are blocked by
          db/immutability.py listeners.
    L4 -- Replaying all rows of a product in sequence order from 0 reproduces
          the product's current total_stock.

Failure modes:
    - IntegrityError on duplicate (product_id, sequence) -- indicates a writer
      bypassed the product row lock.
    - ImmutabilityViolationError on UPDATE/DELETE attempts.

Audit relevance:
    This table is the source of truth for stock history.  actor_id is null
    for system-attributed rows (reconciliation adjustments).
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class MovementType(str, Enum):
    """Closed set of causes for a ledger row."""

    SUPPLY = "SUPPLY"
    WRITE_OFF = "WRITE_OFF"
    MANUAL_EDIT = "MANUAL_EDIT"
    INVENTORY_ADJUSTMENT = "INVENTORY_ADJUSTMENT"
    INTERNAL_MOVE = "INTERNAL_MOVE"


class StockMovement(Base):
    """
    One immutable ledger entry.

    Contract:
        Created only by StockMutator.  Never updated or deleted.

    Guarantees:
        - L1 holds at the database level.
        - INTERNAL_MOVE rows have change_amount == 0 and carry
          moved_quantity / from_location / to_location.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "sequence", name="uq_movement_product_seq"),
        CheckConstraint(
            "new_stock = previous_stock + change_amount",
            name="ck_movement_arithmetic",
        ),
        Index("idx_movement_product_created", "product_id", "created_at"),
        Index("idx_movement_type", "movement_type"),
        Index("idx_movement_related", "related_entity_type", "related_entity_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(30), nullable=False)

    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # Cause of the movement, e.g. ("supply", <id>) or ("inventory", <id>)
    related_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Null for system-initiated movements
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # INTERNAL_MOVE detail
    moved_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    from_location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.product_id}#{self.sequence}: "
            f"{self.movement_type} {self.change_amount:+d} "
            f"({self.previous_stock} -> {self.new_stock})>"
        )
