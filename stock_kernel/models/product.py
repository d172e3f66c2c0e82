"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for the mutable current-state stock record of
    a product: total quantity, its front (display, capacity-bounded) and back
    (bulk storage) split, and the prices that reconciliation snapshots.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    S1 -- front_stock + back_stock == total_stock (CHECK ck_product_split_sum).
    S2 -- front_stock, back_stock, total_stock >= 0 (CHECK constraints).
    S3 -- cost_price, selling_price >= 0.
    S4 -- Stock columns are written ONLY by StockMutator, under a row lock.
          Price and metadata columns belong to the surrounding catalog CRUD.

Failure modes:
    - IntegrityError on flush if S1-S3 are violated (the mutator checks
      first and raises typed errors before flush).

Audit relevance:
    ledger_version is the per-product movement sequence: the newest
    StockMovement for the product carries sequence == ledger_version.
    Products are soft-deleted (is_active=False), never removed while ledger
    rows reference them.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString


class Product(TrackedBase):
    """
    Current stock state of one product.

    Contract:
        A product's stock changes only through StockMutator, which locks the
        row (SELECT ... FOR UPDATE), validates the new split, updates it and
        appends a StockMovement in the same transaction.

    Guarantees:
        - The split invariant is enforced in the database as well as in code.
        - max_front_stock == 0 means split tracking is disabled: back_stock
          stays 0 and all stock is front.

    Non-goals:
        - Category is a weak lookup reference (no FK, no ownership).
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint(
            "front_stock + back_stock = total_stock", name="ck_product_split_sum"
        ),
        CheckConstraint("total_stock >= 0", name="ck_product_total_nonneg"),
        CheckConstraint("front_stock >= 0", name="ck_product_front_nonneg"),
        CheckConstraint("back_stock >= 0", name="ck_product_back_nonneg"),
        CheckConstraint("max_front_stock >= 0", name="ck_product_capacity_nonneg"),
        CheckConstraint("min_front_stock >= 0", name="ck_product_threshold_nonneg"),
        CheckConstraint("cost_price >= 0", name="ck_product_cost_nonneg"),
        CheckConstraint("selling_price >= 0", name="ck_product_price_nonneg"),
        Index("idx_product_category", "category_id"),
        Index("idx_product_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    cost_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    selling_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    # INVARIANT S1/S2: written only by StockMutator
    total_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    front_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    back_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Display capacity; 0 disables split tracking
    max_front_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Restock threshold for front stock
    min_front_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Sequence of the newest ledger row for this product
    ledger_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<Product {self.id}: {self.name} total={self.total_stock} "
            f"front={self.front_stock} back={self.back_stock}>"
        )

    @property
    def split_enabled(self) -> bool:
        return self.max_front_stock > 0
