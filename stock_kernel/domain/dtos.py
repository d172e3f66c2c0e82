"""
DTOs -- immutable data transfer objects returned by the stock kernel.

Responsibility:
    Every operation exposed by the services and selectors returns one of
    these frozen dataclasses, never an ORM entity.  Callers can hold them
    after the unit of work has closed.

Architecture position:
    Kernel > Domain -- pure, no database access.
    from_model() class methods are boundary converters invoked from the
    service and selector layers only.

Invariants enforced:
    - StockState.front + StockState.back == StockState.total
    - Money fields are Decimal, quantities are int.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from stock_kernel.models.catalog import (
        Category as CategoryModel,
    )
    from stock_kernel.models.catalog import (
        ReplenishmentRule as ReplenishmentRuleModel,
    )
    from stock_kernel.models.catalog import (
        Warehouse as WarehouseModel,
    )
    from stock_kernel.models.inventory import (
        Inventory as InventoryModel,
    )
    from stock_kernel.models.inventory import (
        InventoryItem as InventoryItemModel,
    )
    from stock_kernel.models.procurement import (
        ProcurementList as ProcurementListModel,
    )
    from stock_kernel.models.procurement import (
        ProcurementListItem as ProcurementListItemModel,
    )
    from stock_kernel.models.product import Product as ProductModel
    from stock_kernel.models.restock_task import RestockTask as RestockTaskModel
    from stock_kernel.models.stock_movement import (
        StockMovement as StockMovementModel,
    )
    from stock_kernel.models.supply import Supply as SupplyModel


def _str(value) -> str:
    # Enum columns load back as plain strings
    return value.value if hasattr(value, "value") else value


@dataclass(frozen=True)
class StockState:
    """Current stock of one product."""

    product_id: UUID
    name: str
    total: int
    front: int
    back: int
    capacity: int
    min_front: int
    cost_price: Decimal
    selling_price: Decimal
    is_active: bool
    ledger_version: int

    @classmethod
    def from_model(cls, model: ProductModel) -> StockState:
        return cls(
            product_id=model.id,
            name=model.name,
            total=model.total_stock,
            front=model.front_stock,
            back=model.back_stock,
            capacity=model.max_front_stock,
            min_front=model.min_front_stock,
            cost_price=model.cost_price,
            selling_price=model.selling_price,
            is_active=model.is_active,
            ledger_version=model.ledger_version,
        )


@dataclass(frozen=True)
class MovementRecord:
    """One ledger row."""

    movement_id: UUID
    product_id: UUID
    sequence: int
    change_amount: int
    previous_stock: int
    new_stock: int
    movement_type: str
    reason: str | None
    related_entity_type: str | None
    related_entity_id: UUID | None
    actor_id: UUID | None
    created_at: datetime
    moved_quantity: int | None = None
    from_location: str | None = None
    to_location: str | None = None

    @classmethod
    def from_model(cls, model: StockMovementModel) -> MovementRecord:
        return cls(
            movement_id=model.id,
            product_id=model.product_id,
            sequence=model.sequence,
            change_amount=model.change_amount,
            previous_stock=model.previous_stock,
            new_stock=model.new_stock,
            movement_type=_str(model.movement_type),
            reason=model.reason,
            related_entity_type=model.related_entity_type,
            related_entity_id=model.related_entity_id,
            actor_id=model.actor_id,
            created_at=model.created_at,
            moved_quantity=model.moved_quantity,
            from_location=model.from_location,
            to_location=model.to_location,
        )


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a single StockMutator operation."""

    state: StockState
    movement: MovementRecord | None


@dataclass(frozen=True)
class TaskInfo:
    task_id: UUID
    task_type: str
    product_id: UUID
    priority: str
    status: str
    title: str
    description: str | None
    requested_quantity: int
    source_warehouse_id: UUID | None
    target_warehouse_id: UUID | None
    created_at: datetime
    moved_quantity: int | None
    completed_at: datetime | None
    completed_by_id: UUID | None

    @classmethod
    def from_model(cls, model: RestockTaskModel) -> TaskInfo:
        return cls(
            task_id=model.id,
            task_type=_str(model.task_type),
            product_id=model.product_id,
            priority=_str(model.priority),
            status=_str(model.status),
            title=model.title,
            description=model.description,
            requested_quantity=model.requested_quantity,
            source_warehouse_id=model.source_warehouse_id,
            target_warehouse_id=model.target_warehouse_id,
            created_at=model.created_at,
            moved_quantity=model.moved_quantity,
            completed_at=model.completed_at,
            completed_by_id=model.completed_by_id,
        )


@dataclass(frozen=True)
class InventoryItemInfo:
    item_id: UUID
    inventory_id: UUID
    product_id: UUID
    expected_stock: int
    actual_stock: int | None
    cost_price_snapshot: Decimal
    selling_price_snapshot: Decimal
    difference: int | None
    calculated_revenue: Decimal | None

    @classmethod
    def from_model(cls, model: InventoryItemModel) -> InventoryItemInfo:
        return cls(
            item_id=model.id,
            inventory_id=model.inventory_id,
            product_id=model.product_id,
            expected_stock=model.expected_stock,
            actual_stock=model.actual_stock,
            cost_price_snapshot=model.cost_price_snapshot,
            selling_price_snapshot=model.selling_price_snapshot,
            difference=model.difference,
            calculated_revenue=model.calculated_revenue,
        )


@dataclass(frozen=True)
class InventoryInfo:
    inventory_id: UUID
    status: str
    started_at: datetime
    closed_at: datetime | None
    target_metric_key: str | None
    reported_revenue: Decimal | None
    calculated_revenue: Decimal | None
    revenue_difference: Decimal | None
    category_id: UUID | None
    warehouse_id: UUID | None
    created_by_id: UUID | None
    closed_by_id: UUID | None
    item_count: int

    @classmethod
    def from_model(cls, model: InventoryModel) -> InventoryInfo:
        return cls(
            inventory_id=model.id,
            status=_str(model.status),
            started_at=model.started_at,
            closed_at=model.closed_at,
            target_metric_key=model.target_metric_key,
            reported_revenue=model.reported_revenue,
            calculated_revenue=model.calculated_revenue,
            revenue_difference=model.revenue_difference,
            category_id=model.category_id,
            warehouse_id=model.warehouse_id,
            created_by_id=model.created_by_id,
            closed_by_id=model.closed_by_id,
            item_count=len(model.items),
        )


@dataclass(frozen=True)
class CloseResult:
    """
    Outcome of closing an inventory session.

    stale_product_ids lists products whose live total differed from the
    snapshot at close time (stock moved during counting).  The adjustment
    still overwrites to the counted figure.
    """

    inventory: InventoryInfo
    adjusted_product_ids: tuple[UUID, ...]
    skipped_item_ids: tuple[UUID, ...]
    stale_product_ids: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SupplyLine:
    """Caller input for one line of a supply document."""

    product_id: UUID
    quantity: int
    unit_cost: Decimal


@dataclass(frozen=True)
class SupplyInfo:
    supply_id: UUID
    supplier_name: str
    notes: str | None
    total_cost: Decimal
    lines: tuple[SupplyLine, ...]
    created_by_id: UUID | None

    @classmethod
    def from_model(cls, model: SupplyModel) -> SupplyInfo:
        return cls(
            supply_id=model.id,
            supplier_name=model.supplier_name,
            notes=model.notes,
            total_cost=model.total_cost,
            lines=tuple(
                SupplyLine(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                )
                for item in model.items
            ),
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class ProcurementItemInfo:
    item_id: UUID
    list_id: UUID
    product_id: UUID
    current_stock: int
    sales_velocity: Decimal
    suggested_quantity: int
    actual_quantity: int
    cost_price: Decimal

    @property
    def line_cost(self) -> Decimal:
        return self.cost_price * self.actual_quantity

    @classmethod
    def from_model(cls, model: ProcurementListItemModel) -> ProcurementItemInfo:
        return cls(
            item_id=model.id,
            list_id=model.list_id,
            product_id=model.product_id,
            current_stock=model.current_stock,
            sales_velocity=model.sales_velocity,
            suggested_quantity=model.suggested_quantity,
            actual_quantity=model.actual_quantity,
            cost_price=model.cost_price,
        )


@dataclass(frozen=True)
class ProcurementListInfo:
    list_id: UUID
    title: str
    velocity_window_days: int
    coverage_days: int
    items: tuple[ProcurementItemInfo, ...]

    @property
    def total_cost(self) -> Decimal:
        return sum((item.line_cost for item in self.items), Decimal("0"))

    @classmethod
    def from_model(cls, model: ProcurementListModel) -> ProcurementListInfo:
        return cls(
            list_id=model.id,
            title=model.title,
            velocity_window_days=model.velocity_window_days,
            coverage_days=model.coverage_days,
            items=tuple(ProcurementItemInfo.from_model(i) for i in model.items),
        )


@dataclass(frozen=True)
class CategoryInfo:
    category_id: UUID
    name: str
    parent_id: UUID | None
    description: str | None

    @classmethod
    def from_model(cls, model: CategoryModel) -> CategoryInfo:
        return cls(
            category_id=model.id,
            name=model.name,
            parent_id=model.parent_id,
            description=model.description,
        )


@dataclass(frozen=True)
class WarehouseInfo:
    warehouse_id: UUID
    name: str
    address: str | None
    is_default: bool

    @classmethod
    def from_model(cls, model: WarehouseModel) -> WarehouseInfo:
        return cls(
            warehouse_id=model.id,
            name=model.name,
            address=model.address,
            is_default=model.is_default,
        )


@dataclass(frozen=True)
class RuleInfo:
    rule_id: UUID
    product_id: UUID
    source_warehouse_id: UUID
    target_warehouse_id: UUID
    min_stock_level: int
    max_stock_level: int
    is_active: bool

    @classmethod
    def from_model(cls, model: ReplenishmentRuleModel) -> RuleInfo:
        return cls(
            rule_id=model.id,
            product_id=model.product_id,
            source_warehouse_id=model.source_warehouse_id,
            target_warehouse_id=model.target_warehouse_id,
            min_stock_level=model.min_stock_level,
            max_stock_level=model.max_stock_level,
            is_active=model.is_active,
        )
