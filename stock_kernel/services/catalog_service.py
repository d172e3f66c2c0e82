"""
CatalogService -- collaborator metadata around the stock core.

Responsibility:
    Categories (unique names, cycle-free parenting), warehouses (unique
    names), per-warehouse stock levels, replenishment rules, product price
    maintenance and product deactivation.  None of these change a product's
    stock quantities; they share the kernel's error and logging conventions.

Architecture position:
    Kernel > Services.

Failure modes:
    - DuplicateNameError: category/warehouse name already taken.
    - CircularReferenceError: category parented to itself or a descendant.
    - *NotFoundError for unknown ids.
    - ValueError for invalid thresholds, modes and negative amounts.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.db.types import round_money, to_money
from stock_kernel.domain.dtos import CategoryInfo, RuleInfo, StockState, WarehouseInfo
from stock_kernel.exceptions import (
    CategoryNotFoundError,
    CircularReferenceError,
    DuplicateNameError,
    ProductNotFoundError,
    RuleNotFoundError,
    WarehouseNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import (
    Category,
    ReplenishmentRule,
    Warehouse,
    WarehouseStock,
)
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService

logger = get_logger("services.catalog")

PRICE_MODES = ("fixed", "percent")


def _clean_name(name: str) -> str:
    if not name or not name.strip():
        raise ValueError("Name is required")
    return name.strip()


class CatalogService(BaseService[Category]):
    """
    Catalog CRUD with the kernel's typed errors.

    Non-goals:
        - Stock quantities: only StockMutator writes those.
    """

    # =========================================================================
    # Lookups
    # =========================================================================

    def _category(self, category_id: UUID) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        return category

    def _warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def _get_product_for_update(self, product_id: UUID) -> Product:
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _name_taken(self, model, name: str) -> bool:
        return (
            self.session.execute(
                select(func.count()).select_from(model).where(model.name == name)
            ).scalar_one()
            > 0
        )

    # =========================================================================
    # Categories
    # =========================================================================

    def create_category(
        self,
        name: str,
        *,
        parent_id: UUID | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> CategoryInfo:
        name = _clean_name(name)
        if self._name_taken(Category, name):
            raise DuplicateNameError("Category", name)
        if parent_id is not None:
            self._category(parent_id)

        category = Category(
            name=name,
            parent_id=parent_id,
            description=description,
            created_by_id=actor_id,
        )
        self.session.add(category)
        self.session.flush()

        logger.info(
            "category_created",
            extra={"category_id": str(category.id), "category_name": name},
        )
        return CategoryInfo.from_model(category)

    def set_category_parent(
        self, category_id: UUID, parent_id: UUID | None
    ) -> CategoryInfo:
        """
        Re-parent a category.

        Raises:
            CircularReferenceError: The new parent is the category itself or
                one of its descendants.
        """
        category = self._category(category_id)

        if parent_id is not None:
            if parent_id == category_id:
                raise CircularReferenceError(str(category_id), str(parent_id))
            seen: set[UUID] = set()
            current = self._category(parent_id)
            while current is not None and current.id not in seen:
                if current.id == category_id:
                    raise CircularReferenceError(str(category_id), str(parent_id))
                seen.add(current.id)
                current = (
                    self.session.get(Category, current.parent_id)
                    if current.parent_id is not None
                    else None
                )

        category.parent_id = parent_id
        self.session.flush()
        return CategoryInfo.from_model(category)

    def list_categories(self) -> list[CategoryInfo]:
        categories = self.session.execute(
            select(Category).order_by(Category.name)
        ).scalars().all()
        return [CategoryInfo.from_model(c) for c in categories]

    # =========================================================================
    # Warehouses
    # =========================================================================

    def create_warehouse(
        self,
        name: str,
        *,
        address: str | None = None,
        is_default: bool = False,
        actor_id: UUID | None = None,
    ) -> WarehouseInfo:
        name = _clean_name(name)
        if self._name_taken(Warehouse, name):
            raise DuplicateNameError("Warehouse", name)

        warehouse = Warehouse(
            name=name,
            address=address,
            is_default=is_default,
            created_by_id=actor_id,
        )
        self.session.add(warehouse)
        self.session.flush()

        logger.info(
            "warehouse_created",
            extra={"warehouse_id": str(warehouse.id), "warehouse_name": name},
        )
        return WarehouseInfo.from_model(warehouse)

    def set_warehouse_stock(
        self, warehouse_id: UUID, product_id: UUID, quantity: int
    ) -> int:
        """Set the quantity of a product held in a warehouse."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValueError(f"quantity must be a non-negative integer, got {quantity!r}")
        self._warehouse(warehouse_id)
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        row = self.session.execute(
            select(WarehouseStock)
            .where(
                WarehouseStock.warehouse_id == warehouse_id,
                WarehouseStock.product_id == product_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            row = WarehouseStock(
                warehouse_id=warehouse_id, product_id=product_id, quantity=quantity
            )
            self.session.add(row)
        else:
            row.quantity = quantity
        self.session.flush()
        return row.quantity

    def list_warehouses(self) -> list[WarehouseInfo]:
        warehouses = self.session.execute(
            select(Warehouse).order_by(Warehouse.name)
        ).scalars().all()
        return [WarehouseInfo.from_model(w) for w in warehouses]

    # =========================================================================
    # Replenishment rules
    # =========================================================================

    def create_replenishment_rule(
        self,
        *,
        product_id: UUID,
        source_warehouse_id: UUID,
        target_warehouse_id: UUID,
        min_stock_level: int,
        max_stock_level: int,
        actor_id: UUID | None = None,
    ) -> RuleInfo:
        if source_warehouse_id == target_warehouse_id:
            raise ValueError("Source and target warehouse must differ")
        if min_stock_level < 0:
            raise ValueError(f"min_stock_level cannot be negative, got {min_stock_level}")
        if max_stock_level <= min_stock_level:
            raise ValueError(
                f"max_stock_level ({max_stock_level}) must exceed "
                f"min_stock_level ({min_stock_level})"
            )
        self._warehouse(source_warehouse_id)
        self._warehouse(target_warehouse_id)
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        rule = ReplenishmentRule(
            product_id=product_id,
            source_warehouse_id=source_warehouse_id,
            target_warehouse_id=target_warehouse_id,
            min_stock_level=min_stock_level,
            max_stock_level=max_stock_level,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(rule)
        self.session.flush()

        logger.info(
            "replenishment_rule_created",
            extra={"rule_id": str(rule.id), "product_id": str(product_id)},
        )
        return RuleInfo.from_model(rule)

    def deactivate_rule(self, rule_id: UUID) -> RuleInfo:
        rule = self.session.get(ReplenishmentRule, rule_id)
        if rule is None:
            raise RuleNotFoundError(str(rule_id))
        rule.is_active = False
        self.session.flush()
        return RuleInfo.from_model(rule)

    # =========================================================================
    # Products (non-stock fields)
    # =========================================================================

    def update_prices(
        self,
        product_id: UUID,
        *,
        cost_price: Decimal | int | str | None = None,
        selling_price: Decimal | int | str | None = None,
        actor_id: UUID | None = None,
    ) -> StockState:
        product = self._get_product_for_update(product_id)
        if cost_price is not None:
            cost = to_money(cost_price)
            if cost < 0:
                raise ValueError(f"cost_price cannot be negative, got {cost}")
            product.cost_price = cost
        if selling_price is not None:
            price = to_money(selling_price)
            if price < 0:
                raise ValueError(f"selling_price cannot be negative, got {price}")
            product.selling_price = price
        product.updated_by_id = actor_id
        self.session.flush()
        return StockState.from_model(product)

    def bulk_update_prices(
        self,
        product_ids: list[UUID],
        *,
        mode: str,
        value: Decimal | int | str,
        actor_id: UUID | None = None,
    ) -> list[StockState]:
        """
        Reprice several products' selling prices at once.

        Modes:
            fixed   -- selling price becomes ``value``.
            percent -- selling price changes by ``value`` percent
                       (10 raises by 10%, -10 lowers by 10%).

        Results are rounded to 2 places with round_money().  A result
        below zero raises ValueError and nothing is applied.
        """
        if mode not in PRICE_MODES:
            raise ValueError(f"mode must be one of {PRICE_MODES}, got {mode!r}")
        amount = to_money(value)

        updated: list[Product] = []
        for product_id in sorted(set(product_ids), key=str):
            product = self._get_product_for_update(product_id)
            if mode == "fixed":
                new_price = round_money(amount)
            else:
                new_price = round_money(
                    product.selling_price * (Decimal("100") + amount) / Decimal("100")
                )
            if new_price < 0:
                raise ValueError(
                    f"Repricing {product_id} would make its price negative ({new_price})"
                )
            product.selling_price = new_price
            product.updated_by_id = actor_id
            updated.append(product)
        self.session.flush()

        logger.info(
            "prices_bulk_updated",
            extra={"mode": mode, "value": amount, "product_count": len(updated)},
        )
        return [StockState.from_model(p) for p in updated]

    def deactivate_product(
        self, product_id: UUID, actor_id: UUID | None = None
    ) -> StockState:
        """Soft-delete: the product keeps its ledger and leaves all scopes."""
        product = self._get_product_for_update(product_id)
        product.is_active = False
        product.updated_by_id = actor_id
        self.session.flush()
        logger.info("product_deactivated", extra={"product_id": str(product_id)})
        return StockState.from_model(product)
