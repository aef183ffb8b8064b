"""
budget_engines.variance -- Budget-vs-actual variance, trend and severity.

Responsibility:
    Derive the figures of a budget line (available, variance amount,
    variance percentage, over-budget flag) from its three base amounts,
    and classify each line's variance into a trend and a severity tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.
    Consumed by ``budget_modules.budget`` (item construction and the
    ``BudgetAnalysisEngine`` variance analysis).

Invariants enforced:
    - available = budgeted - actual - committed (may be negative).
    - variance = actual - budgeted; positive means overspend.
    - is_over_budget == (actual > budgeted).
    - All four derived figures are produced together by
      ``compute_item_figures``; nothing computes one of them alone.
    - Severity tiers are exhaustive and monotonic over |variance %|.

Failure modes:
    - Division-by-zero safe: variance percentage is Decimal("0") when the
      budgeted amount is zero.
    - ValueError from ``SeverityTiers`` if thresholds are not strictly
      increasing and positive.

Usage:
    from budget_engines.variance import BudgetVarianceCalculator

    calculator = BudgetVarianceCalculator()
    variances = calculator.analyze(items=engine.get_budget_items())
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from budget_engines.tracer import traced_engine
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.variance")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class BudgetLine(Protocol):
    """Anything that carries the figures of one budget line."""

    category_id: str
    category_name: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal


class VarianceTrend(str, Enum):
    """Direction of a variance for an expense line."""

    FAVORABLE = "favorable"  # spent less than budgeted
    UNFAVORABLE = "unfavorable"  # spent more than budgeted
    NEUTRAL = "neutral"


class VarianceSeverity(str, Enum):
    """Qualitative bucket derived from the absolute variance percentage."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SeverityTiers:
    """
    Lower bounds (inclusive) of the medium, high and critical tiers.

    Defaults: low < 5 <= medium < 15 <= high < 25 <= critical.
    """

    medium: Decimal = Decimal("5")
    high: Decimal = Decimal("15")
    critical: Decimal = Decimal("25")

    def __post_init__(self) -> None:
        if not (ZERO < self.medium < self.high < self.critical):
            raise ValueError(
                "Severity tiers must be positive and strictly increasing: "
                f"medium={self.medium}, high={self.high}, critical={self.critical}"
            )

    def classify(self, variance_percentage: Decimal) -> VarianceSeverity:
        magnitude = abs(variance_percentage)
        if magnitude < self.medium:
            return VarianceSeverity.LOW
        if magnitude < self.high:
            return VarianceSeverity.MEDIUM
        if magnitude < self.critical:
            return VarianceSeverity.HIGH
        return VarianceSeverity.CRITICAL


DEFAULT_TIERS = SeverityTiers()


@dataclass(frozen=True)
class ItemFigures:
    """Derived figures of a budget line."""

    available_amount: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal
    is_over_budget: bool


@dataclass(frozen=True)
class BudgetVariance:
    """Per-category variance view. Derived, never persisted."""

    category_id: str
    category_name: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    variance_amount: Decimal
    variance_percentage: Decimal
    trend: VarianceTrend
    severity: VarianceSeverity

    @property
    def is_over_budget(self) -> bool:
        return self.variance_amount > ZERO

    @property
    def is_under_budget(self) -> bool:
        return self.variance_amount < ZERO


def variance_percentage(variance_amount: Decimal, budgeted_amount: Decimal) -> Decimal:
    """Variance as a percentage of budget; Decimal("0") when budget is zero."""
    if budgeted_amount == ZERO:
        return ZERO
    return (variance_amount / budgeted_amount) * HUNDRED


def compute_item_figures(
    budgeted_amount: Decimal,
    actual_amount: Decimal,
    committed_amount: Decimal,
) -> ItemFigures:
    """
    Derive every dependent figure of a budget line at once.

    Preconditions:
        All amounts are finite Decimals (validated by the caller).
    Postconditions:
        The returned figures satisfy the module invariants above.
    """
    variance = actual_amount - budgeted_amount
    return ItemFigures(
        available_amount=budgeted_amount - actual_amount - committed_amount,
        variance_amount=variance,
        variance_percentage=variance_percentage(variance, budgeted_amount),
        is_over_budget=actual_amount > budgeted_amount,
    )


def classify_trend(variance_amount: Decimal) -> VarianceTrend:
    if variance_amount < ZERO:
        return VarianceTrend.FAVORABLE
    if variance_amount > ZERO:
        return VarianceTrend.UNFAVORABLE
    return VarianceTrend.NEUTRAL


def classify_severity(
    variance_percentage: Decimal,
    tiers: SeverityTiers = DEFAULT_TIERS,
) -> VarianceSeverity:
    return tiers.classify(variance_percentage)


class BudgetVarianceCalculator:
    """
    Pure function calculator for budget variance analysis.

    Contract:
        No I/O, no clock access, fully deterministic given the lines.
    Guarantees:
        - One ``BudgetVariance`` per input line, in input order.
        - Trend and severity follow ``classify_trend`` / ``SeverityTiers``.
    """

    def __init__(self, tiers: SeverityTiers = DEFAULT_TIERS):
        self._tiers = tiers

    @property
    def tiers(self) -> SeverityTiers:
        return self._tiers

    @traced_engine("variance", "1.0", fingerprint_fields=("items",))
    def analyze(self, items: Iterable[BudgetLine]) -> list[BudgetVariance]:
        variances = [
            BudgetVariance(
                category_id=item.category_id,
                category_name=item.category_name,
                budgeted_amount=item.budgeted_amount,
                actual_amount=item.actual_amount,
                variance_amount=item.variance_amount,
                variance_percentage=item.variance_percentage,
                trend=classify_trend(item.variance_amount),
                severity=self._tiers.classify(item.variance_percentage),
            )
            for item in items
        ]

        logger.debug("variance_analysis_calculated", extra={
            "line_count": len(variances),
            "critical_count": sum(
                1 for v in variances if v.severity is VarianceSeverity.CRITICAL
            ),
        })
        return variances
