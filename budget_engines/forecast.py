"""
budget_engines.forecast -- Linear burn-rate projection of period-end spend.

Responsibility:
    Project each budget line's spend to the end of its period from the
    average spend per elapsed day.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``as_of`` is always a
    parameter; the engine never reads the clock.

Invariants enforced:
    - days_remaining = ceil((period_end - as_of) / 1 day), clamped to
      [0, period_days].  No extrapolation beyond period end.
    - days_elapsed = period_days - days_remaining.
    - burn_rate = actual / days_elapsed; Decimal("0") when days_elapsed == 0.
    - projected_spend = actual + burn_rate * days_remaining, so
      projected_spend == actual when days_remaining == 0.
    - projected_overspend == (projected_spend > budgeted).

Failure modes:
    - ValueError if period_end is not after period_start, or if any
      datetime is naive.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from budget_engines.tracer import traced_engine
from budget_engines.variance import ZERO, BudgetLine
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.forecast")

CENT = Decimal("0.01")


@dataclass(frozen=True)
class ForecastWindow:
    """Position of ``as_of`` inside a budget period, in whole days."""

    period_days: int
    days_elapsed: int
    days_remaining: int


@dataclass(frozen=True)
class BudgetForecast:
    """Per-category projected period-end spend. Derived, never persisted."""

    category_id: str
    category_name: str
    current_spend: Decimal
    projected_spend: Decimal
    budget_remaining: Decimal
    days_remaining: int
    burn_rate: Decimal
    projected_overspend: bool


def _ceil_days(delta: timedelta) -> int:
    # timedelta normalises to (days, seconds>=0), so a partial day rounds up.
    extra = 1 if (delta.seconds or delta.microseconds) else 0
    return delta.days + extra


def forecast_window(
    period_start: datetime,
    period_end: datetime,
    as_of: datetime,
) -> ForecastWindow:
    """
    Locate ``as_of`` inside the period.

    ``period_days`` counts calendar days inclusively, so a Jan 1 - Dec 31
    period has 365 days (366 in a leap year).
    """
    for name, value in (
        ("period_start", period_start),
        ("period_end", period_end),
        ("as_of", as_of),
    ):
        if value.tzinfo is None:
            raise ValueError(f"{name} must be timezone-aware")
    if period_end <= period_start:
        raise ValueError(
            f"period_end {period_end.isoformat()} must be after "
            f"period_start {period_start.isoformat()}"
        )

    period_days = (period_end.date() - period_start.date()).days + 1
    days_remaining = _ceil_days(period_end - as_of)
    days_remaining = max(0, min(days_remaining, period_days))
    return ForecastWindow(
        period_days=period_days,
        days_elapsed=period_days - days_remaining,
        days_remaining=days_remaining,
    )


def burn_rate(actual_amount: Decimal, days_elapsed: int) -> Decimal:
    """Average spend per elapsed day; Decimal("0") on the first day."""
    if days_elapsed <= 0:
        return ZERO
    return actual_amount / Decimal(days_elapsed)


class BurnRateForecaster:
    """
    Pure linear forecaster.

    Contract:
        No I/O, no clock access; identical inputs give identical outputs.
    Guarantees:
        One ``BudgetForecast`` per input line, in input order.  Burn rate
        and projected spend are rounded half-up to cents after projection.
    """

    @traced_engine(
        "forecast", "1.0",
        fingerprint_fields=("items", "period_start", "period_end", "as_of"),
    )
    def forecast(
        self,
        items: Iterable[BudgetLine],
        period_start: datetime,
        period_end: datetime,
        as_of: datetime,
    ) -> list[BudgetForecast]:
        window = forecast_window(period_start, period_end, as_of)
        remaining = Decimal(window.days_remaining)

        forecasts: list[BudgetForecast] = []
        for item in items:
            rate = burn_rate(item.actual_amount, window.days_elapsed)
            projected = item.actual_amount + rate * remaining
            forecasts.append(
                BudgetForecast(
                    category_id=item.category_id,
                    category_name=item.category_name,
                    current_spend=item.actual_amount,
                    projected_spend=projected.quantize(CENT, rounding=ROUND_HALF_UP),
                    budget_remaining=item.budgeted_amount - item.actual_amount,
                    days_remaining=window.days_remaining,
                    burn_rate=rate.quantize(CENT, rounding=ROUND_HALF_UP),
                    projected_overspend=projected > item.budgeted_amount,
                )
            )

        logger.debug("forecast_calculated", extra={
            "line_count": len(forecasts),
            "period_days": window.period_days,
            "days_elapsed": window.days_elapsed,
            "days_remaining": window.days_remaining,
        })
        return forecasts
