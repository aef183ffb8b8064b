"""Tests for departmental allocation figures."""

from dataclasses import dataclass
from decimal import Decimal

from budget_engines.allocation import compute_allocation_figures, summarize_allocations


@dataclass(frozen=True)
class _Allocation:
    allocated_amount: Decimal
    used_amount: Decimal


class TestAllocationFigures:

    def test_remaining_and_percentage(self):
        figures = compute_allocation_figures(Decimal("200"), Decimal("50"), Decimal("1000"))

        assert figures.remaining_amount == Decimal("150")
        assert figures.percentage == Decimal("20")

    def test_overused_allocation_goes_negative(self):
        figures = compute_allocation_figures(Decimal("100"), Decimal("130"), Decimal("1000"))

        assert figures.remaining_amount == Decimal("-30")

    def test_zero_item_budget_percentage_is_zero(self):
        figures = compute_allocation_figures(Decimal("100"), Decimal("0"), Decimal("0"))

        assert figures.percentage == Decimal("0")


class TestSummarizeAllocations:

    def test_unallocated_remainder(self):
        summary = summarize_allocations(
            [_Allocation(Decimal("300"), Decimal("100")), _Allocation(Decimal("200"), Decimal("50"))],
            Decimal("1000"),
        )

        assert summary.total_allocated == Decimal("500")
        assert summary.total_used == Decimal("150")
        assert summary.unallocated_amount == Decimal("500")
        assert summary.department_count == 2

    def test_over_allocation_is_negative(self):
        summary = summarize_allocations([_Allocation(Decimal("1200"), Decimal("0"))], Decimal("1000"))

        assert summary.unallocated_amount == Decimal("-200")

    def test_no_allocations(self):
        summary = summarize_allocations([], Decimal("1000"))

        assert summary.total_allocated == Decimal("0")
        assert summary.department_count == 0
