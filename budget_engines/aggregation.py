"""
budget_engines.aggregation -- Portfolio roll-ups over budget lines.

Responsibility:
    Sum budgeted, actual, committed and available amounts across all lines,
    derive overall variance, variance percentage and utilization rate, and
    partition variance results into over- and under-budget sets.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total_variance == total_actual - total_budget.
    - utilization_rate == total_actual / total_budget * 100, and
      Decimal("0") when total_budget is zero.
    - variance_percentage follows the same zero-budget guard.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from budget_engines.tracer import traced_engine
from budget_engines.variance import HUNDRED, ZERO, BudgetVariance, variance_percentage


class AmountLine(Protocol):
    budgeted_amount: Decimal
    actual_amount: Decimal
    committed_amount: Decimal
    available_amount: Decimal


@dataclass(frozen=True)
class BudgetTotals:
    """Whole-portfolio sums and ratios."""

    line_count: int
    total_budget: Decimal
    total_actual: Decimal
    total_committed: Decimal
    total_available: Decimal
    total_variance: Decimal
    variance_percentage: Decimal
    utilization_rate: Decimal


def utilization_rate(total_actual: Decimal, total_budget: Decimal) -> Decimal:
    if total_budget == ZERO:
        return ZERO
    return (total_actual / total_budget) * HUNDRED


@traced_engine("aggregation", "1.0", fingerprint_fields=("items",))
def summarize(items: Iterable[AmountLine]) -> BudgetTotals:
    lines = list(items)
    total_budget = sum((i.budgeted_amount for i in lines), ZERO)
    total_actual = sum((i.actual_amount for i in lines), ZERO)
    total_committed = sum((i.committed_amount for i in lines), ZERO)
    total_available = sum((i.available_amount for i in lines), ZERO)
    total_variance = total_actual - total_budget

    return BudgetTotals(
        line_count=len(lines),
        total_budget=total_budget,
        total_actual=total_actual,
        total_committed=total_committed,
        total_available=total_available,
        total_variance=total_variance,
        variance_percentage=variance_percentage(total_variance, total_budget),
        utilization_rate=utilization_rate(total_actual, total_budget),
    )


def partition_variances(
    variances: Iterable[BudgetVariance],
) -> tuple[list[BudgetVariance], list[BudgetVariance]]:
    """Split into (over budget, under budget); on-budget lines are in neither."""
    over: list[BudgetVariance] = []
    under: list[BudgetVariance] = []
    for v in variances:
        if v.variance_amount > ZERO:
            over.append(v)
        elif v.variance_amount < ZERO:
            under.append(v)
    return over, under


def top_over_budget(
    variances: Sequence[BudgetVariance],
    limit: int = 3,
) -> list[BudgetVariance]:
    """Largest overspends first, ties broken by category id."""
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")
    over, _ = partition_variances(variances)
    over.sort(key=lambda v: (-v.variance_amount, v.category_id))
    return over[:limit]
