"""
Split policy -- front/back bucket assignment for stock changes.

Responsibility:
    Decides where a quantity change lands when a product's total stock
    changes, so that ``front + back == total`` and both stay non-negative.
    The heuristics of the venue back-office (goods received go to the
    stockroom, opening balances fill the display first, shrinkage is taken
    from the stockroom first) live here and nowhere else.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by StockMutator; independently testable.

Invariants enforced:
    - Every returned StockSplit has front >= 0 and back >= 0.
    - capacity == 0 means split tracking is off: back is always 0.

Failure modes:
    - InsufficientStockError when the requested decrease exceeds the
      available quantity (of the named bucket, or of the total).
    - InvalidInvariantError from validate_split() on inconsistent triples.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.exceptions import InsufficientStockError, InvalidInvariantError


class Bucket(str, Enum):
    """Which sub-quantity an explicit write targets."""

    FRONT = "front"
    BACK = "back"
    AUTO = "auto"  # front first, then back


@dataclass(frozen=True)
class StockSplit:
    """A front/back pair; total is derived."""

    front: int
    back: int

    @property
    def total(self) -> int:
        return self.front + self.back


def fill_front_first(total: int, capacity: int) -> StockSplit:
    """
    Place ``total`` units front-first, spilling overflow to back.

    Used for opening balances and for reconciliation overwrites (the count
    resets the model fresh).
    """
    if total < 0:
        raise ValueError(f"total cannot be negative, got {total}")
    if capacity <= 0:
        return StockSplit(front=total, back=0)
    front = min(total, capacity)
    return StockSplit(front=front, back=total - front)


def split_on_change(
    front: int,
    back: int,
    delta: int,
    capacity: int,
    is_initial_creation: bool = False,
    product_id: str = "",
) -> StockSplit:
    """
    Apply a signed change to the total without an explicit bucket.

    Rules:
        - capacity 0: everything is front, back stays 0.
        - initial creation: fill front up to capacity, overflow to back.
        - increase: new units land in back.
        - decrease: taken from back first, then front.

    Raises:
        InsufficientStockError: If the total would go negative.
    """
    new_total = front + back + delta
    if new_total < 0:
        raise InsufficientStockError(product_id, "total", -delta, front + back)

    if capacity <= 0:
        return StockSplit(front=new_total, back=0)

    if is_initial_creation:
        return fill_front_first(new_total, capacity)

    if delta >= 0:
        return StockSplit(front=front, back=back + delta)

    need = -delta
    from_back = min(back, need)
    from_front = need - from_back
    return StockSplit(front=front - from_front, back=back - from_back)


def take_from_bucket(
    front: int,
    back: int,
    quantity: int,
    bucket: Bucket,
    product_id: str = "",
) -> StockSplit:
    """
    Remove ``quantity`` units from an explicitly named bucket.

    AUTO takes from front first, then back (write-off order).

    Raises:
        InsufficientStockError: If the named bucket (or the total, for AUTO)
            holds fewer than ``quantity`` units.
    """
    if quantity < 0:
        raise ValueError(f"quantity cannot be negative, got {quantity}")

    if bucket == Bucket.FRONT:
        if quantity > front:
            raise InsufficientStockError(product_id, "front", quantity, front)
        return StockSplit(front=front - quantity, back=back)

    if bucket == Bucket.BACK:
        if quantity > back:
            raise InsufficientStockError(product_id, "back", quantity, back)
        return StockSplit(front=front, back=back - quantity)

    if quantity > front + back:
        raise InsufficientStockError(product_id, "total", quantity, front + back)
    from_front = min(front, quantity)
    return StockSplit(front=front - from_front, back=back - (quantity - from_front))


def clamp_to_capacity(front: int, back: int, capacity: int) -> StockSplit:
    """
    Re-fit a split to a (possibly changed) capacity.

    capacity 0 collapses everything into front; a front above capacity
    spills its overflow into back.
    """
    if capacity <= 0:
        return StockSplit(front=front + back, back=0)
    if front > capacity:
        return StockSplit(front=capacity, back=back + front - capacity)
    return StockSplit(front=front, back=back)


def validate_split(total: int, front: int, back: int, product_id: str = "") -> None:
    """
    Check the standing invariant for a product state.

    Raises:
        InvalidInvariantError: If a bucket is negative or the sum is wrong.
    """
    if front < 0 or back < 0 or total < 0 or front + back != total:
        raise InvalidInvariantError(product_id, total, front, back)
