"""
Module: stock_kernel.models.catalog
Responsibility: ORM persistence for collaborator metadata the stock core
    reads: categories, warehouses, per-warehouse stock levels, and
    warehouse-to-warehouse replenishment rules.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Category and warehouse names are unique (uq_category_name,
      uq_warehouse_name); CatalogService raises DuplicateNameError first.
    - WarehouseStock.quantity >= 0, one row per (warehouse, product).
    - ReplenishmentRule: max_stock_level > min_stock_level and
      source_warehouse_id != target_warehouse_id.

Audit relevance:
    ReplenishmentRule rows are read-only to the replenishment engine; only
    catalog CRUD creates or edits them.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class Category(TrackedBase):
    """Product category; may nest under a parent category."""

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("name", name="uq_category_name"),
        Index("idx_category_parent", "parent_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("categories.id"), nullable=True
    )

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"


class Warehouse(TrackedBase):
    """A storage location (stockroom, bar, kitchen, ...)."""

    __tablename__ = "warehouses"

    __table_args__ = (UniqueConstraint("name", name="uq_warehouse_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Warehouse {self.name}>"


class WarehouseStock(Base):
    """Quantity of one product held in one warehouse."""

    __tablename__ = "warehouse_stock"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", name="uq_warehouse_product"),
        CheckConstraint("quantity >= 0", name="ck_warehouse_stock_nonneg"),
        Index("idx_warehouse_stock_product", "product_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<WarehouseStock {self.warehouse_id}/{self.product_id}={self.quantity}>"


class ReplenishmentRule(TrackedBase):
    """
    Keeps a target warehouse's stock of a product between min and max by
    pulling from a source warehouse.

    Contract:
        evaluate_transfer_rules() reads active rules and creates TRANSFER
        tasks; it never edits a rule.
    """

    __tablename__ = "replenishment_rules"

    __table_args__ = (
        CheckConstraint(
            "max_stock_level > min_stock_level", name="ck_rule_max_above_min"
        ),
        CheckConstraint(
            "source_warehouse_id <> target_warehouse_id", name="ck_rule_distinct_sites"
        ),
        CheckConstraint("min_stock_level >= 0", name="ck_rule_min_nonneg"),
        Index("idx_rule_active", "is_active"),
    )

    source_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    target_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    min_stock_level: Mapped[int] = mapped_column(Integer, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<ReplenishmentRule {self.product_id} "
            f"{self.source_warehouse_id}->{self.target_warehouse_id} "
            f"[{self.min_stock_level}, {self.max_stock_level}]>"
        )
