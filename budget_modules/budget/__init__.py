"""
Budgeting Module (``budget_modules.budget``).

Responsibility
--------------
Operating-expense budgeting for a microfinance institution: one current
budget period, one item per expense category, departmental allocations,
budget increase approvals, and variance / burn-rate forecast / report /
analysis views.

Architecture position
---------------------
**Modules layer** -- domain models, a seed catalog built from
``budget_config``, pluggable actuals sources, a repository boundary and
the ``BudgetAnalysisEngine`` facade.  Calculations are delegated to
``budget_engines``.

Failure modes
-------------
* ``BudgetUpdateResult.is_success == False`` / ``PeriodCreationResult``
  likewise -- validation failure, state unchanged.
* ``BudgetNotInitializedError`` -- report or analysis before seeding.
"""

from budget_modules.budget.models import (
    ApprovalStatus,
    BudgetAllocation,
    BudgetAnalysis,
    BudgetApproval,
    BudgetCategory,
    BudgetForecast,
    BudgetItem,
    BudgetManagement,
    BudgetPeriod,
    BudgetReport,
    BudgetTemplate,
    BudgetTemplateItem,
    BudgetType,
    BudgetVariance,
    UtilizationAlert,
)
from budget_modules.budget.repository import (
    BudgetRepository,
    BudgetState,
    InMemoryBudgetRepository,
    SqlAlchemyBudgetRepository,
)
from budget_modules.budget.service import (
    BudgetAnalysisEngine,
    BudgetUpdateResult,
    BudgetUpdateStatus,
    PeriodCreationResult,
    PeriodCreationStatus,
)
from budget_modules.budget.sources import (
    ActualsSource,
    DepartmentShare,
    LedgerActualsSource,
    SpendFigures,
    SyntheticActualsSource,
)

__all__ = [
    "ActualsSource",
    "ApprovalStatus",
    "BudgetAllocation",
    "BudgetAnalysis",
    "BudgetAnalysisEngine",
    "BudgetApproval",
    "BudgetCategory",
    "BudgetForecast",
    "BudgetItem",
    "BudgetManagement",
    "BudgetPeriod",
    "BudgetReport",
    "BudgetRepository",
    "BudgetState",
    "BudgetTemplate",
    "BudgetTemplateItem",
    "BudgetType",
    "BudgetUpdateResult",
    "BudgetUpdateStatus",
    "BudgetVariance",
    "DepartmentShare",
    "InMemoryBudgetRepository",
    "LedgerActualsSource",
    "PeriodCreationResult",
    "PeriodCreationStatus",
    "SpendFigures",
    "SqlAlchemyBudgetRepository",
    "SyntheticActualsSource",
    "UtilizationAlert",
]
