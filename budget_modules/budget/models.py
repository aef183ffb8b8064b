"""
Budgeting Domain Models (``budget_modules.budget.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of operating-expense
budgeting: periods, categories, items, departmental allocations, approvals,
templates, and the derived report/analysis roll-ups.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``BudgetAnalysisEngine`` and returned to callers.  Derived figures come
from ``budget_engines``.

Invariants enforced
-------------------
* All models are ``frozen=True``; changes produce new instances.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``BudgetItem`` derived fields (available, variance amount, variance
  percentage, over-budget flag) are only produced by ``BudgetItem.build``
  and ``BudgetItem.with_amounts``, which recompute all of them together.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from budget_config.schema import BudgetSettings
from budget_engines.allocation import compute_allocation_figures
from budget_engines.forecast import BudgetForecast
from budget_engines.variance import BudgetVariance, compute_item_figures


class BudgetType(str, Enum):
    OPERATING = "operating"
    INTEREST = "interest"
    TAX = "tax"


class ApprovalStatus(str, Enum):
    """Budget increase request states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIALLY_APPROVED = "partially_approved"


@dataclass(frozen=True)
class BudgetCategory:
    """Static taxonomy entry; seeded once from configuration."""
    id: str
    name: str
    description: str
    category_code: str
    is_budgetable: bool = True
    budget_type: BudgetType = BudgetType.OPERATING
    parent_category: str | None = None


@dataclass(frozen=True)
class BudgetPeriod:
    """A named fiscal interval. Only one period is current at a time."""
    id: str
    name: str
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    is_locked: bool = False
    created_by: str = "system"
    created_at: datetime | None = None

    @property
    def period_days(self) -> int:
        return (self.end_date.date() - self.start_date.date()).days + 1

    def overlaps(self, other: BudgetPeriod) -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date


@dataclass(frozen=True)
class BudgetItem:
    """Budgeted-vs-actual record for one category within one period."""
    id: str
    category_id: str
    category_name: str
    budget_period_id: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    committed_amount: Decimal
    available_amount: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal
    is_over_budget: bool
    last_updated: datetime
    updated_by: str
    version: int = 1

    @staticmethod
    def make_id(period_id: str, category_id: str) -> str:
        return f"budget-{period_id}-{category_id}"

    @classmethod
    def build(
        cls,
        *,
        category_id: str,
        category_name: str,
        budget_period_id: str,
        budgeted_amount: Decimal,
        actual_amount: Decimal,
        committed_amount: Decimal,
        last_updated: datetime,
        updated_by: str = "system",
        version: int = 1,
        item_id: str | None = None,
    ) -> BudgetItem:
        figures = compute_item_figures(budgeted_amount, actual_amount, committed_amount)
        return cls(
            id=item_id or cls.make_id(budget_period_id, category_id),
            category_id=category_id,
            category_name=category_name,
            budget_period_id=budget_period_id,
            budgeted_amount=budgeted_amount,
            actual_amount=actual_amount,
            committed_amount=committed_amount,
            available_amount=figures.available_amount,
            variance_amount=figures.variance_amount,
            variance_percentage=figures.variance_percentage,
            is_over_budget=figures.is_over_budget,
            last_updated=last_updated,
            updated_by=updated_by,
            version=version,
        )

    def with_amounts(
        self,
        *,
        last_updated: datetime,
        updated_by: str,
        budgeted_amount: Decimal | None = None,
        actual_amount: Decimal | None = None,
        committed_amount: Decimal | None = None,
        category_name: str | None = None,
    ) -> BudgetItem:
        """New version of this item with every derived field recomputed."""
        return BudgetItem.build(
            item_id=self.id,
            category_id=self.category_id,
            category_name=category_name if category_name is not None else self.category_name,
            budget_period_id=self.budget_period_id,
            budgeted_amount=self.budgeted_amount if budgeted_amount is None else budgeted_amount,
            actual_amount=self.actual_amount if actual_amount is None else actual_amount,
            committed_amount=self.committed_amount if committed_amount is None else committed_amount,
            last_updated=last_updated,
            updated_by=updated_by,
            version=self.version + 1,
        )


@dataclass(frozen=True)
class BudgetAllocation:
    """Departmental share of a budget item."""
    id: str
    budget_item_id: str
    department: str
    allocated_amount: Decimal
    used_amount: Decimal
    remaining_amount: Decimal
    percentage: Decimal

    @classmethod
    def build(
        cls,
        *,
        budget_item_id: str,
        department: str,
        allocated_amount: Decimal,
        used_amount: Decimal,
        item_budget: Decimal,
    ) -> BudgetAllocation:
        figures = compute_allocation_figures(allocated_amount, used_amount, item_budget)
        return cls(
            id=f"allocation-{budget_item_id}-{department}",
            budget_item_id=budget_item_id,
            department=department,
            allocated_amount=allocated_amount,
            used_amount=used_amount,
            remaining_amount=figures.remaining_amount,
            percentage=figures.percentage,
        )

    def rebased(self, *, item_budget: Decimal, used_amount: Decimal | None = None) -> BudgetAllocation:
        return BudgetAllocation.build(
            budget_item_id=self.budget_item_id,
            department=self.department,
            allocated_amount=self.allocated_amount,
            used_amount=self.used_amount if used_amount is None else used_amount,
            item_budget=item_budget,
        )


@dataclass(frozen=True)
class BudgetApproval:
    """A request to raise an item's budgeted amount."""
    id: str
    budget_item_id: str
    requested_amount: Decimal
    approved_amount: Decimal
    status: ApprovalStatus
    requested_by: str
    requested_date: datetime
    approved_by: str | None = None
    approved_date: datetime | None = None
    comments: str | None = None

    def decided(
        self,
        *,
        approved_amount: Decimal,
        approver: str,
        decided_at: datetime,
        comments: str | None = None,
    ) -> BudgetApproval:
        if approved_amount == 0:
            status = ApprovalStatus.REJECTED
        elif approved_amount < self.requested_amount:
            status = ApprovalStatus.PARTIALLY_APPROVED
        else:
            status = ApprovalStatus.APPROVED
        return dataclasses.replace(
            self,
            approved_amount=approved_amount,
            status=status,
            approved_by=approver,
            approved_date=decided_at,
            comments=comments if comments is not None else self.comments,
        )


@dataclass(frozen=True)
class BudgetTemplateItem:
    category_id: str
    category_name: str
    default_amount: Decimal
    percentage: Decimal
    is_required: bool


@dataclass(frozen=True)
class BudgetTemplate:
    id: str
    name: str
    description: str
    categories: tuple[BudgetTemplateItem, ...]
    is_default: bool
    created_by: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class BudgetReport:
    """Whole-portfolio budget-vs-actual report."""
    period: BudgetPeriod
    total_budget: Decimal
    total_actual: Decimal
    total_variance: Decimal
    variance_percentage: Decimal
    categories: tuple[BudgetVariance, ...]
    forecasts: tuple[BudgetForecast, ...]
    over_budget_categories: tuple[BudgetVariance, ...]
    under_budget_categories: tuple[BudgetVariance, ...]


@dataclass(frozen=True)
class BudgetAnalysis:
    """Whole-portfolio analysis with recommendations."""
    period: BudgetPeriod
    total_budget: Decimal
    total_actual: Decimal
    total_committed: Decimal
    total_available: Decimal
    utilization_rate: Decimal
    variance_analysis: tuple[BudgetVariance, ...]
    forecast_analysis: tuple[BudgetForecast, ...]
    recommendations: tuple[str, ...]


@dataclass(frozen=True)
class UtilizationAlert:
    """An item whose spend has crossed the notification threshold."""
    item_id: str
    category_name: str
    utilization_rate: Decimal
    threshold: Decimal


@dataclass(frozen=True)
class BudgetManagement:
    """Snapshot of everything the engine currently holds."""
    current_period: BudgetPeriod | None
    budget_items: tuple[BudgetItem, ...]
    allocations: tuple[BudgetAllocation, ...]
    approvals: tuple[BudgetApproval, ...]
    settings: BudgetSettings
    templates: tuple[BudgetTemplate, ...]
