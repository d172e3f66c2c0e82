"""
LedgerSelector -- read access to the stock ledger.

Responsibility:
    History queries (newest first) and ledger replay.  Replay sums every
    change_amount of a product in sequence order starting from zero and
    checks the before/after chain; its result must equal the product's
    current total_stock.

Architecture position:
    Kernel > Selectors -- read-only, no flush/commit.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ReplayResult:
    """Outcome of replaying a product's ledger."""

    product_id: UUID
    replayed_total: int
    current_total: int
    movement_count: int
    chain_breaks: tuple[int, ...]

    @property
    def is_consistent(self) -> bool:
        return self.replayed_total == self.current_total and not self.chain_breaks


class LedgerSelector(BaseSelector[StockMovement]):
    """Selector for ledger history and replay."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_history(
        self,
        product_id: UUID,
        limit: int = 50,
        since: datetime | None = None,
    ) -> list[MovementRecord]:
        """Movements of a product, newest first."""
        stmt = select(StockMovement).where(StockMovement.product_id == product_id)
        if since is not None:
            stmt = stmt.where(StockMovement.created_at >= since)
        rows = self.session.execute(
            stmt.order_by(StockMovement.sequence.desc()).limit(limit)
        ).scalars().all()
        return [MovementRecord.from_model(m) for m in rows]

    def movements_in_order(self, product_id: UUID) -> list[MovementRecord]:
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.sequence)
        ).scalars().all()
        return [MovementRecord.from_model(m) for m in rows]

    def replay(self, product_id: UUID) -> ReplayResult:
        """
        Recompute the total from the ledger.

        chain_breaks lists sequences whose previous_stock does not equal the
        running total (a row written against a stale value).
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        running = 0
        breaks: list[int] = []
        movements = self.movements_in_order(product_id)
        for movement in movements:
            if movement.previous_stock != running:
                breaks.append(movement.sequence)
            running += movement.change_amount

        return ReplayResult(
            product_id=product_id,
            replayed_total=running,
            current_total=product.total_stock,
            movement_count=len(movements),
            chain_breaks=tuple(breaks),
        )

    def replay_total(self, product_id: UUID) -> int:
        return self.replay(product_id).replayed_total
