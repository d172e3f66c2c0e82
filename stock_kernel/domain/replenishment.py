"""
Replenishment rules -- threshold evaluation shared by restock and transfer.

Responsibility:
    One threshold shape governs both front/back restocking (front is the
    level, back is the source, max_front_stock the ceiling) and
    warehouse-to-warehouse transfers (target warehouse stock is the level,
    source warehouse stock the source, max_stock_level the ceiling).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from __future__ import annotations

from enum import Enum


class TaskPriority(str, Enum):
    HIGH = "HIGH"
    NORMAL = "NORMAL"


def needs_replenishment(level: int, minimum: int, source_available: int) -> bool:
    """True when the level is at or below its minimum and the source has stock."""
    return level <= minimum and source_available > 0


def needs_front_restock(
    front_stock: int,
    back_stock: int,
    min_front_stock: int,
    max_front_stock: int,
) -> bool:
    """Front/back form: only meaningful when split tracking is on."""
    return max_front_stock > 0 and needs_replenishment(
        front_stock, min_front_stock, back_stock
    )


def replenishment_quantity(level: int, maximum: int, source_available: int) -> int:
    """Units to move: headroom up to the maximum, capped by the source."""
    return max(0, min(source_available, maximum - level))


def priority_for(level: int) -> TaskPriority:
    """An empty level is urgent."""
    return TaskPriority.HIGH if level <= 0 else TaskPriority.NORMAL
