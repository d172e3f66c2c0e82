"""Threshold evaluation shared by restock and transfer tasking."""

from decimal import Decimal

import pytest

from stock_kernel.domain.procurement import consumption_velocity, suggested_quantity
from stock_kernel.domain.replenishment import (
    TaskPriority,
    needs_front_restock,
    needs_replenishment,
    priority_for,
    replenishment_quantity,
)


class TestNeedsReplenishment:
    @pytest.mark.parametrize(
        "level,minimum,source,expected",
        [
            (3, 3, 5, True),    # at threshold
            (2, 3, 5, True),    # below threshold
            (4, 3, 5, False),   # above threshold
            (0, 3, 0, False),   # nothing to move
        ],
    )
    def test_threshold(self, level, minimum, source, expected):
        assert needs_replenishment(level, minimum, source) is expected

    def test_front_restock_requires_split_tracking(self):
        assert not needs_front_restock(0, 10, 0, 0)
        assert needs_front_restock(0, 10, 0, 5)

    def test_front_restock_requires_back_stock(self):
        assert not needs_front_restock(2, 0, 3, 10)


class TestQuantityAndPriority:
    def test_quantity_is_headroom(self):
        assert replenishment_quantity(2, 10, 50) == 8

    def test_quantity_capped_by_source(self):
        assert replenishment_quantity(2, 10, 3) == 3

    def test_quantity_never_negative(self):
        assert replenishment_quantity(12, 10, 5) == 0

    def test_empty_level_is_high_priority(self):
        assert priority_for(0) is TaskPriority.HIGH
        assert priority_for(1) is TaskPriority.NORMAL


class TestProcurementMath:
    def test_velocity(self):
        assert consumption_velocity(60, 30) == Decimal("2")

    def test_velocity_without_consumption(self):
        assert consumption_velocity(0, 30) == Decimal("0")

    def test_velocity_rejects_empty_window(self):
        with pytest.raises(ValueError):
            consumption_velocity(10, 0)

    def test_suggestion_rounds_up(self):
        # 7 / 30 per day over 14 days = 3.27 -> 4
        velocity = consumption_velocity(7, 30)
        assert suggested_quantity(velocity, 14, 0) == 4

    def test_suggestion_subtracts_stock(self):
        assert suggested_quantity(Decimal("2"), 14, 20) == 8

    def test_suggestion_never_negative(self):
        assert suggested_quantity(Decimal("1"), 14, 100) == 0
