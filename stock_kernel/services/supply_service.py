"""
SupplyService -- goods-received documents.

Responsibility:
    Records a supply document (supplier, notes, lines) and books every line
    into stock through StockMutator.record_supply() in the same unit of
    work.  Either the whole delivery lands, or none of it does.

Architecture position:
    Kernel > Services.

Failure modes:
    - ValueError: no lines, blank supplier name, non-positive quantity.
    - ProductNotFoundError / ProductInactiveError from any line.
    - SupplyNotFoundError on lookup.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from stock_kernel.db.types import to_money
from stock_kernel.domain.dtos import SupplyInfo, SupplyLine
from stock_kernel.exceptions import ProductNotFoundError, SupplyNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.models.supply import Supply, SupplyItem
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.supply")


class SupplyService(BaseService[Supply]):
    """Creates supply documents and their stock movements."""

    def create_supply(
        self,
        supplier_name: str,
        lines: list[SupplyLine],
        *,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> SupplyInfo:
        """
        Record a delivery.

        Each line's unit cost becomes the product's cost price (last-cost),
        line total = quantity x unit cost, document total = sum of lines.
        """
        if not supplier_name or not supplier_name.strip():
            raise ValueError("Supplier name is required")
        if not lines:
            raise ValueError("A supply needs at least one line")

        for line in lines:
            if self.session.get(Product, line.product_id) is None:
                raise ProductNotFoundError(str(line.product_id))

        supply = Supply(
            id=uuid4(),
            supplier_name=supplier_name.strip(),
            notes=notes,
            created_by_id=actor_id,
        )
        total = Decimal("0")
        for line in lines:
            unit_cost = to_money(line.unit_cost)
            line_total = unit_cost * line.quantity
            total += line_total
            supply.items.append(
                SupplyItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_cost=unit_cost,
                    total_cost=line_total,
                )
            )
        supply.total_cost = total

        # Stock first: quantity/price validation happens in the mutator
        mutator = StockMutator(self.session, self._clock)
        for line in lines:
            mutator.record_supply(
                line.product_id,
                line.quantity,
                unit_cost=line.unit_cost,
                related_supply_id=supply.id,
                actor_id=actor_id,
            )

        self.session.add(supply)
        self.session.flush()

        logger.info(
            "supply_created",
            extra={
                "supply_id": str(supply.id),
                "supplier_name": supply.supplier_name,
                "line_count": len(lines),
                "total_cost": total,
            },
        )
        return SupplyInfo.from_model(supply)

    def get_supply(self, supply_id: UUID) -> SupplyInfo:
        supply = self.session.get(Supply, supply_id)
        if supply is None:
            raise SupplyNotFoundError(str(supply_id))
        return SupplyInfo.from_model(supply)

    def list_supplies(self, limit: int = 50) -> list[SupplyInfo]:
        supplies = self.session.execute(
            select(Supply).order_by(Supply.created_at.desc(), Supply.id).limit(limit)
        ).scalars().all()
        return [SupplyInfo.from_model(s) for s in supplies]
