"""Pure close arithmetic: differences, revenue, reported-revenue handling."""

from decimal import Decimal
from uuid import uuid4

from stock_kernel.domain.reconciliation import CountLine, reconcile


def _line(expected, actual, price="10.00"):
    return CountLine(
        item_id=uuid4(),
        product_id=uuid4(),
        expected_stock=expected,
        actual_stock=actual,
        selling_price_snapshot=Decimal(price),
    )


class TestReconcile:
    def test_shrinkage_reads_as_revenue(self):
        """Expected 30, counted 25 at 10.00: difference 5, revenue 50.00."""
        line = _line(30, 25)
        summary = reconcile([line], Decimal("60.00"), has_target_metric=True)

        outcome = summary.lines[0]
        assert outcome.difference == 5
        assert outcome.calculated_revenue == Decimal("50.00")
        assert outcome.needs_adjustment
        assert summary.calculated_revenue == Decimal("50.00")
        assert summary.reported_revenue == Decimal("60.00")
        assert summary.revenue_difference == Decimal("10.00")

    def test_surplus_gives_negative_revenue(self):
        summary = reconcile([_line(3, 5, "2.50")], Decimal("0"), has_target_metric=True)
        assert summary.lines[0].difference == -2
        assert summary.calculated_revenue == Decimal("-5.00")

    def test_uncounted_lines_are_skipped(self):
        counted = _line(10, 8)
        uncounted = _line(7, None)
        summary = reconcile([counted, uncounted], Decimal("0"), has_target_metric=True)

        assert [o.item_id for o in summary.lines] == [counted.item_id]
        assert summary.skipped_item_ids == (uncounted.item_id,)
        assert summary.calculated_revenue == Decimal("20.00")

    def test_exact_count_needs_no_adjustment(self):
        summary = reconcile([_line(4, 4)], Decimal("0"), has_target_metric=True)
        assert not summary.lines[0].needs_adjustment
        assert summary.calculated_revenue == Decimal("0")

    def test_without_target_metric_reported_is_zero(self):
        summary = reconcile([_line(30, 25)], Decimal("999.00"), has_target_metric=False)
        assert summary.reported_revenue == Decimal("0")
        assert summary.revenue_difference == Decimal("-50.00")

    def test_revenue_sums_across_lines(self):
        lines = [_line(10, 9, "3.00"), _line(5, 2, "1.50"), _line(1, 2, "4.00")]
        summary = reconcile(lines, Decimal("5.00"), has_target_metric=True)
        # 3.00 + 4.50 - 4.00
        assert summary.calculated_revenue == Decimal("3.50")
        assert summary.revenue_difference == Decimal("1.50")

    def test_empty_session(self):
        summary = reconcile([], Decimal("12.00"), has_target_metric=True)
        assert summary.lines == ()
        assert summary.calculated_revenue == Decimal("0")
        assert summary.revenue_difference == Decimal("12.00")
