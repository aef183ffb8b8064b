"""
Actuals Sources (``budget_modules.budget.sources``).

Responsibility
--------------
Supply the actual and committed spend an engine is seeded with, and the
departmental split of each item.  The engine never invents figures itself:
a ledger-backed source feeds real postings, a seeded synthetic source
feeds demo data.

Architecture position
---------------------
**Modules layer** -- plug-in boundary consumed by
``BudgetAnalysisEngine.initialize``.  Sources are pure apart from the
injected random generator.

Invariants enforced
-------------------
* Every amount returned is a non-negative ``Decimal``.
* ``SyntheticActualsSource`` draws every random number from its own
  ``random.Random(seed)``; two sources with the same seed produce the
  same figures.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from budget_config.schema import SyntheticDataDef

ZERO = Decimal("0")


@dataclass(frozen=True)
class SpendFigures:
    actual_amount: Decimal
    committed_amount: Decimal = ZERO


@dataclass(frozen=True)
class DepartmentShare:
    department: str
    allocated_amount: Decimal
    used_amount: Decimal


def _floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


class ActualsSource(ABC):
    """Where seeded actual and committed spend comes from."""

    @abstractmethod
    def spend_for(self, category_id: str, budgeted_amount: Decimal) -> SpendFigures:
        """Actual and committed spend for one category."""

    def allocation_shares(
        self,
        departments: Sequence[str],
        budgeted_amount: Decimal,
        actual_amount: Decimal,
    ) -> list[DepartmentShare]:
        """
        Split an item across departments.

        Default: an even split of budget and spend, floored to whole
        units, with any remainder left unallocated.
        """
        if not departments:
            return []
        count = Decimal(len(departments))
        return [
            DepartmentShare(
                department=dept,
                allocated_amount=_floor(budgeted_amount / count),
                used_amount=_floor(actual_amount / count),
            )
            for dept in departments
        ]


class LedgerActualsSource(ActualsSource):
    """
    Actuals taken from posted ledger balances keyed by category id.

    Values may be ``SpendFigures`` or a bare amount (committed = 0).
    Categories with no postings have zero spend.
    """

    def __init__(self, balances: Mapping[str, SpendFigures | Decimal]):
        self._balances = dict(balances)

    def spend_for(self, category_id: str, budgeted_amount: Decimal) -> SpendFigures:
        value = self._balances.get(category_id)
        if value is None:
            return SpendFigures(actual_amount=ZERO, committed_amount=ZERO)
        if isinstance(value, SpendFigures):
            return value
        return SpendFigures(actual_amount=Decimal(value), committed_amount=ZERO)


class SyntheticActualsSource(ActualsSource):
    """
    Demo actuals: spend drawn uniformly between 80% and 120% of budget,
    10% of it committed, and departmental shares of 10-30% each.

    Ranges come from ``SyntheticDataDef`` so a configuration set can
    tune them.
    """

    def __init__(
        self,
        seed: int | None = None,
        ranges: SyntheticDataDef | None = None,
        rng: random.Random | None = None,
    ):
        self._rng = rng if rng is not None else random.Random(seed)
        self._ranges = ranges or SyntheticDataDef()

    def _uniform(self, low: Decimal, high: Decimal) -> Decimal:
        return low + (high - low) * Decimal(str(self._rng.random()))

    def spend_for(self, category_id: str, budgeted_amount: Decimal) -> SpendFigures:
        r = self._ranges
        actual = _floor(budgeted_amount * self._uniform(r.actual_low, r.actual_high))
        return SpendFigures(
            actual_amount=actual,
            committed_amount=_floor(actual * r.committed_ratio),
        )

    def allocation_shares(
        self,
        departments: Sequence[str],
        budgeted_amount: Decimal,
        actual_amount: Decimal,
    ) -> list[DepartmentShare]:
        r = self._ranges
        return [
            DepartmentShare(
                department=dept,
                allocated_amount=_floor(
                    budgeted_amount * self._uniform(r.allocation_low, r.allocation_high)
                ),
                used_amount=_floor(
                    actual_amount * self._uniform(r.allocation_low, r.allocation_high)
                ),
            )
            for dept in departments
        ]
