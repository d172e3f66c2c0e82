"""
ProcurementService -- purchase suggestions from ledger history.

Responsibility:
    Derives, for every active product, how fast it is consumed and how many
    units to order to cover a horizon, and stores the result as an
    editable procurement list.  Consumption is read from the ledger:
    negative WRITE_OFF and INVENTORY_ADJUSTMENT rows inside the window.

Architecture position:
    Kernel > Services.  Math in ``stock_kernel.domain.procurement``.

Invariants enforced:
    - Only products with a positive suggestion become list items.
    - Lists never touch stock.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.dtos import ProcurementItemInfo, ProcurementListInfo
from stock_kernel.domain.procurement import consumption_velocity, suggested_quantity
from stock_kernel.exceptions import (
    ProcurementItemNotFoundError,
    ProcurementListNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.procurement import ProcurementList, ProcurementListItem
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import MovementType, StockMovement
from stock_kernel.services.base import BaseService

logger = get_logger("services.procurement")

_VELOCITY_QUANTUM = Decimal("0.000000001")

CONSUMPTION_TYPES = (
    MovementType.WRITE_OFF.value,
    MovementType.INVENTORY_ADJUSTMENT.value,
)


class ProcurementService(BaseService[ProcurementList]):
    """Generates and edits procurement lists."""

    def _consumption_since(self, since) -> dict[UUID, int]:
        rows = self.session.execute(
            select(StockMovement.product_id, func.sum(StockMovement.change_amount))
            .where(
                StockMovement.movement_type.in_(CONSUMPTION_TYPES),
                StockMovement.change_amount < 0,
                StockMovement.created_at >= since,
            )
            .group_by(StockMovement.product_id)
        ).all()
        return {product_id: -int(total) for product_id, total in rows}

    def generate_procurement_list(
        self,
        *,
        velocity_window_days: int,
        coverage_days: int,
        title: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProcurementListInfo:
        """
        Build a list of products to reorder.

        suggested = max(0, ceil(velocity x coverage_days) - total_stock)
        where velocity = units consumed / velocity_window_days.
        """
        if velocity_window_days <= 0:
            raise ValueError(
                f"velocity_window_days must be positive, got {velocity_window_days}"
            )
        if coverage_days <= 0:
            raise ValueError(f"coverage_days must be positive, got {coverage_days}")
        now = self._clock.now()
        consumed = self._consumption_since(now - timedelta(days=velocity_window_days))

        products = self.session.execute(
            select(Product)
            .where(Product.is_active.is_(True))
            .order_by(Product.name, Product.id)
        ).scalars().all()

        procurement_list = ProcurementList(
            title=title or f"Procurement {now:%Y-%m-%d}",
            velocity_window_days=velocity_window_days,
            coverage_days=coverage_days,
            created_by_id=actor_id,
        )
        for product in products:
            velocity = consumption_velocity(
                consumed.get(product.id, 0), velocity_window_days
            )
            quantity = suggested_quantity(velocity, coverage_days, product.total_stock)
            if quantity <= 0:
                continue
            procurement_list.items.append(
                ProcurementListItem(
                    product_id=product.id,
                    current_stock=product.total_stock,
                    sales_velocity=velocity.quantize(_VELOCITY_QUANTUM),
                    suggested_quantity=quantity,
                    actual_quantity=quantity,
                    cost_price=product.cost_price,
                )
            )

        self.session.add(procurement_list)
        self.session.flush()

        logger.info(
            "procurement_list_generated",
            extra={
                "list_id": str(procurement_list.id),
                "item_count": len(procurement_list.items),
                "velocity_window_days": velocity_window_days,
                "coverage_days": coverage_days,
            },
        )
        return ProcurementListInfo.from_model(procurement_list)

    def update_procurement_item(
        self, item_id: UUID, actual_quantity: int
    ) -> ProcurementItemInfo:
        if isinstance(actual_quantity, bool) or not isinstance(actual_quantity, int):
            raise ValueError(f"actual_quantity must be an integer, got {actual_quantity!r}")
        if actual_quantity < 0:
            raise ValueError(f"actual_quantity cannot be negative, got {actual_quantity}")

        item = self.session.get(ProcurementListItem, item_id)
        if item is None:
            raise ProcurementItemNotFoundError(str(item_id))
        item.actual_quantity = actual_quantity
        self.session.flush()
        return ProcurementItemInfo.from_model(item)

    def get_procurement_list(self, list_id: UUID) -> ProcurementListInfo:
        procurement_list = self.session.get(ProcurementList, list_id)
        if procurement_list is None:
            raise ProcurementListNotFoundError(str(list_id))
        return ProcurementListInfo.from_model(procurement_list)

    def delete_procurement_list(self, list_id: UUID) -> None:
        procurement_list = self.session.get(ProcurementList, list_id)
        if procurement_list is None:
            raise ProcurementListNotFoundError(str(list_id))
        self.session.delete(procurement_list)
        self.session.flush()
        logger.info("procurement_list_deleted", extra={"list_id": str(list_id)})
