"""Procurement suggestion math: consumption velocity and reorder quantity."""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal


def consumption_velocity(consumed_units: int, window_days: int) -> Decimal:
    """Average units consumed per day over the window."""
    if window_days <= 0:
        raise ValueError(f"window_days must be positive, got {window_days}")
    if consumed_units <= 0:
        return Decimal("0")
    return Decimal(consumed_units) / Decimal(window_days)


def suggested_quantity(velocity: Decimal, coverage_days: int, on_hand: int) -> int:
    """Units to order so that stock covers ``coverage_days`` of consumption."""
    target = (velocity * coverage_days).to_integral_value(rounding=ROUND_CEILING)
    return max(0, int(target) - on_hand)
