"""
budget_engines.allocation -- Departmental sub-division of a budget line.

Responsibility:
    Derive remaining amount and share-of-budget percentage for one
    departmental allocation, and summarize all allocations of a line.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - remaining = allocated - used (may be negative).
    - percentage = allocated / line budget * 100; Decimal("0") when the
      line budget is zero.
    - unallocated = line budget - sum(allocated) (negative when the
      departments were over-allocated).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from budget_engines.variance import HUNDRED, ZERO


class AllocationLine(Protocol):
    allocated_amount: Decimal
    used_amount: Decimal


@dataclass(frozen=True)
class AllocationFigures:
    remaining_amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class AllocationSummary:
    item_budget: Decimal
    total_allocated: Decimal
    total_used: Decimal
    unallocated_amount: Decimal
    department_count: int


def compute_allocation_figures(
    allocated_amount: Decimal,
    used_amount: Decimal,
    item_budget: Decimal,
) -> AllocationFigures:
    percentage = ZERO if item_budget == ZERO else allocated_amount / item_budget * HUNDRED
    return AllocationFigures(
        remaining_amount=allocated_amount - used_amount,
        percentage=percentage,
    )


def summarize_allocations(
    allocations: Iterable[AllocationLine],
    item_budget: Decimal,
) -> AllocationSummary:
    lines = list(allocations)
    total_allocated = sum((a.allocated_amount for a in lines), ZERO)
    return AllocationSummary(
        item_budget=item_budget,
        total_allocated=total_allocated,
        total_used=sum((a.used_amount for a in lines), ZERO),
        unallocated_amount=item_budget - total_allocated,
        department_count=len(lines),
    )
