"""
Ledger replay: the sum of change_amount from zero equals the live total,
and every row's previous_stock chains onto the one before it.
"""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from stock_kernel.domain.split_policy import Bucket
from stock_kernel.exceptions import InsufficientStockError, ProductNotFoundError


class TestReplay:
    def test_mixed_history_replays(self, make_product, mutator, replenishment_service,
                                   stock_selector, ledger_selector):
        state = make_product(opening_stock=25, max_front_stock=5, min_front_stock=2)
        pid = state.product_id
        mutator.write_off(pid, 4, bucket=Bucket.FRONT)
        mutator.record_supply(pid, 12, unit_cost="3.20")
        task = stock_selector.list_open_tasks(product_id=pid)[0]
        replenishment_service.complete_task(task.task_id)
        mutator.manual_edit(pid, new_total=30)
        mutator.adjust_from_reconciliation(pid, 28, related_inventory_id=uuid4())

        replay = ledger_selector.replay(pid)

        assert replay.is_consistent
        assert replay.replayed_total == 28
        assert replay.current_total == 28
        assert replay.movement_count == 6
        assert ledger_selector.replay_total(pid) == 28

    def test_history_newest_first_with_limit(self, make_product, mutator, ledger_selector):
        state = make_product(opening_stock=5)
        for _ in range(4):
            mutator.write_off(state.product_id, 1)

        history = ledger_selector.get_history(state.product_id, limit=3)
        assert [m.sequence for m in history] == [5, 4, 3]

    def test_history_since(self, make_product, mutator, ledger_selector, deterministic_clock):
        state = make_product(opening_stock=5)
        deterministic_clock.advance(3600)
        cutoff = deterministic_clock.now()
        mutator.write_off(state.product_id, 1)

        history = ledger_selector.get_history(state.product_id, since=cutoff)
        assert [m.sequence for m in history] == [2]

    def test_unknown_product(self, ledger_selector):
        with pytest.raises(ProductNotFoundError):
            ledger_selector.replay(uuid4())


operations = st.lists(
    st.tuples(
        st.sampled_from(["supply", "write_off", "edit"]),
        st.integers(min_value=1, max_value=30),
    ),
    min_size=1,
    max_size=12,
)


class TestReplayProperty:
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(ops=operations)
    def test_any_sequence_replays(self, make_product, mutator, ledger_selector, ops):
        state = make_product(opening_stock=10, max_front_stock=6, min_front_stock=1)
        pid = state.product_id
        for op, quantity in ops:
            if op == "supply":
                mutator.record_supply(pid, quantity)
            elif op == "write_off":
                try:
                    mutator.write_off(pid, quantity)
                except InsufficientStockError:
                    continue
            else:
                mutator.manual_edit(pid, new_total=quantity)

        replay = ledger_selector.replay(pid)
        assert replay.is_consistent
