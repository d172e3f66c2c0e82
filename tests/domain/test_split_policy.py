"""
Front/back split policy tests.

Scenario tests pin each placement rule; property tests check that no
sequence of changes can break front + back == total or drive a bucket
negative.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stock_kernel.domain.split_policy import (
    Bucket,
    StockSplit,
    clamp_to_capacity,
    fill_front_first,
    split_on_change,
    take_from_bucket,
    validate_split,
)
from stock_kernel.exceptions import InsufficientStockError, InvalidInvariantError


class TestFillFrontFirst:
    def test_fills_front_up_to_capacity(self):
        assert fill_front_first(20, 12) == StockSplit(front=12, back=8)

    def test_below_capacity_all_front(self):
        assert fill_front_first(5, 12) == StockSplit(front=5, back=0)

    def test_capacity_zero_all_front(self):
        assert fill_front_first(7, 0) == StockSplit(front=7, back=0)

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError):
            fill_front_first(-1, 5)


class TestSplitOnChange:
    def test_initial_creation_fills_front_first(self):
        """Opening stock of 20 with capacity 12 lands 12 front, 8 back."""
        split = split_on_change(0, 0, 20, 12, is_initial_creation=True)
        assert split == StockSplit(front=12, back=8)

    def test_increase_lands_in_back(self):
        assert split_on_change(10, 0, 12, 10) == StockSplit(front=10, back=12)

    def test_increase_lands_in_back_even_when_front_has_room(self):
        assert split_on_change(2, 0, 5, 10) == StockSplit(front=2, back=5)

    def test_decrease_takes_back_first(self):
        assert split_on_change(4, 3, -5, 10) == StockSplit(front=2, back=0)

    def test_decrease_within_back(self):
        assert split_on_change(4, 3, -2, 10) == StockSplit(front=4, back=1)

    def test_capacity_zero_ignores_back(self):
        assert split_on_change(5, 0, 3, 0) == StockSplit(front=8, back=0)
        assert split_on_change(5, 0, -5, 0) == StockSplit(front=0, back=0)

    def test_decrease_below_zero_raises(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            split_on_change(1, 1, -3, 10, product_id="p1")
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2
        assert exc_info.value.code == "INSUFFICIENT_STOCK"


class TestTakeFromBucket:
    def test_auto_takes_front_first(self):
        assert take_from_bucket(2, 10, 5, Bucket.AUTO) == StockSplit(front=0, back=7)

    def test_front_bucket(self):
        assert take_from_bucket(5, 5, 3, Bucket.FRONT) == StockSplit(front=2, back=5)

    def test_back_bucket(self):
        assert take_from_bucket(5, 5, 3, Bucket.BACK) == StockSplit(front=5, back=2)

    def test_named_bucket_must_hold_quantity(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            take_from_bucket(2, 10, 3, Bucket.FRONT)
        assert exc_info.value.bucket == "front"

    def test_auto_exceeding_total_raises(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            take_from_bucket(2, 1, 4, Bucket.AUTO)
        assert exc_info.value.bucket == "total"

    def test_string_bucket_accepted(self):
        assert take_from_bucket(5, 5, 1, Bucket("back")) == StockSplit(front=5, back=4)


class TestClampToCapacity:
    def test_shrink_spills_to_back(self):
        assert clamp_to_capacity(10, 2, 6) == StockSplit(front=6, back=6)

    def test_capacity_zero_collapses_to_front(self):
        assert clamp_to_capacity(4, 6, 0) == StockSplit(front=10, back=0)

    def test_within_capacity_untouched(self):
        assert clamp_to_capacity(3, 4, 6) == StockSplit(front=3, back=4)


class TestValidateSplit:
    def test_consistent_split_passes(self):
        validate_split(10, 4, 6)

    @pytest.mark.parametrize(
        "total,front,back",
        [(10, 4, 5), (3, -1, 4), (3, 4, -1), (-1, 0, -1)],
    )
    def test_inconsistent_split_raises(self, total, front, back):
        with pytest.raises(InvalidInvariantError):
            validate_split(total, front, back, "p1")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

quantities = st.integers(min_value=0, max_value=500)
capacities = st.integers(min_value=0, max_value=100)
deltas = st.integers(min_value=-600, max_value=600)


class TestSplitProperties:
    @given(total=quantities, capacity=capacities)
    def test_fill_front_first_respects_capacity(self, total, capacity):
        split = fill_front_first(total, capacity)
        assert split.total == total
        assert split.front >= 0 and split.back >= 0
        if capacity > 0:
            assert split.front <= capacity
        else:
            assert split.back == 0

    @settings(max_examples=200)
    @given(
        opening=quantities,
        capacity=capacities,
        changes=st.lists(deltas, max_size=25),
    )
    def test_sequence_of_changes_keeps_invariant(self, opening, capacity, changes):
        split = split_on_change(0, 0, opening, capacity, is_initial_creation=True)
        for delta in changes:
            try:
                split = split_on_change(split.front, split.back, delta, capacity)
            except InsufficientStockError:
                assert split.total + delta < 0
                continue
            validate_split(split.total, split.front, split.back)
            if capacity == 0:
                assert split.back == 0

    @given(
        front=quantities,
        back=quantities,
        quantity=quantities,
        bucket=st.sampled_from(list(Bucket)),
    )
    def test_take_never_goes_negative(self, front, back, quantity, bucket):
        try:
            split = take_from_bucket(front, back, quantity, bucket)
        except InsufficientStockError:
            return
        assert split.front >= 0 and split.back >= 0
        assert split.total == front + back - quantity
