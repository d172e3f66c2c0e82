"""
Reconciliation -- pure count/revenue arithmetic for inventory close.

Responsibility:
    Turns counted lines into per-item differences and a derived revenue
    figure, then reconciles against the reported revenue.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by ReconciliationService.close_inventory().

Sign convention:
    difference = expected - actual.  Positive means less was found than
    expected (shrinkage, read as sold stock, so positive revenue); negative
    means surplus (negative revenue).

Invariants enforced:
    - Lines with actual_stock None are skipped: no difference, no revenue.
    - Without a target metric the reported revenue is treated as 0.
    - All money arithmetic is Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class CountLine:
    """One inventory item as seen by the close computation."""

    item_id: UUID
    product_id: UUID
    expected_stock: int
    actual_stock: int | None
    selling_price_snapshot: Decimal

    @property
    def is_counted(self) -> bool:
        return self.actual_stock is not None


@dataclass(frozen=True)
class LineOutcome:
    item_id: UUID
    product_id: UUID
    expected_stock: int
    actual_stock: int
    difference: int
    calculated_revenue: Decimal

    @property
    def needs_adjustment(self) -> bool:
        return self.difference != 0


@dataclass(frozen=True)
class ReconciliationSummary:
    """Result of reconciling a session's counted lines."""

    lines: tuple[LineOutcome, ...]
    calculated_revenue: Decimal
    reported_revenue: Decimal
    revenue_difference: Decimal
    skipped_item_ids: tuple[UUID, ...]


def reconcile(
    lines: list[CountLine] | tuple[CountLine, ...],
    reported_revenue: Decimal,
    has_target_metric: bool,
) -> ReconciliationSummary:
    """
    Compute differences and revenue for counted lines.

    Args:
        lines: All items of the session, counted or not.
        reported_revenue: User-reported revenue figure.
        has_target_metric: False when the session has no target_metric_key;
            the reported figure is then informational and treated as 0.
    """
    outcomes: list[LineOutcome] = []
    skipped: list[UUID] = []
    total = Decimal("0")

    for line in lines:
        if not line.is_counted:
            skipped.append(line.item_id)
            continue
        difference = line.expected_stock - line.actual_stock
        revenue = Decimal(difference) * line.selling_price_snapshot
        total += revenue
        outcomes.append(
            LineOutcome(
                item_id=line.item_id,
                product_id=line.product_id,
                expected_stock=line.expected_stock,
                actual_stock=line.actual_stock,
                difference=difference,
                calculated_revenue=revenue,
            )
        )

    reported = reported_revenue if has_target_metric else Decimal("0")
    return ReconciliationSummary(
        lines=tuple(outcomes),
        calculated_revenue=total,
        reported_revenue=reported,
        revenue_difference=reported - total,
        skipped_item_ids=tuple(skipped),
    )
