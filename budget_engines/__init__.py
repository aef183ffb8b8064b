"""
Module: budget_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    budget calculation engines.  Canonical import surface for
    ``budget_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ``budget_kernel`` (logging) and sibling engine modules.
    MUST NOT import ``budget_modules``.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``; ``as_of`` is passed in.
    - Decimal-only arithmetic for every amount.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from budget_engines.variance import BudgetVarianceCalculator
    from budget_engines.forecast import BurnRateForecaster
    from budget_engines.aggregation import summarize
"""

from budget_engines.aggregation import (
    BudgetTotals,
    partition_variances,
    summarize,
    top_over_budget,
    utilization_rate,
)
from budget_engines.allocation import (
    AllocationFigures,
    AllocationSummary,
    compute_allocation_figures,
    summarize_allocations,
)
from budget_engines.forecast import (
    BudgetForecast,
    BurnRateForecaster,
    ForecastWindow,
    burn_rate,
    forecast_window,
)
from budget_engines.recommendations import (
    Escalation,
    EscalationRule,
    evaluate_escalations,
    generate_recommendations,
)
from budget_engines.variance import (
    BudgetVariance,
    BudgetVarianceCalculator,
    ItemFigures,
    SeverityTiers,
    VarianceSeverity,
    VarianceTrend,
    classify_severity,
    classify_trend,
    compute_item_figures,
    variance_percentage,
)

__all__ = [
    "AllocationFigures",
    "AllocationSummary",
    "BudgetForecast",
    "BudgetTotals",
    "BudgetVariance",
    "BudgetVarianceCalculator",
    "BurnRateForecaster",
    "Escalation",
    "EscalationRule",
    "ForecastWindow",
    "ItemFigures",
    "SeverityTiers",
    "VarianceSeverity",
    "VarianceTrend",
    "burn_rate",
    "classify_severity",
    "classify_trend",
    "compute_allocation_figures",
    "compute_item_figures",
    "evaluate_escalations",
    "forecast_window",
    "generate_recommendations",
    "partition_variances",
    "summarize",
    "summarize_allocations",
    "top_over_budget",
    "utilization_rate",
    "variance_percentage",
]
