"""
Hypothesis-based fuzzing of budget invariants.

Property-based tests generating arbitrary amounts, update sequences and
clock positions, verifying that:
- Item derived fields always satisfy their identities
- Severity is symmetric in the sign of the variance and monotone in its size
- Forecasts never extrapolate past period end and never project below actual
- Portfolio totals equal the sums of their lines
- Invalid updates leave the engine untouched
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from budget_config import parse_config
from budget_engines.aggregation import summarize
from budget_engines.forecast import BurnRateForecaster
from budget_engines.variance import (
    VarianceSeverity,
    classify_severity,
    compute_item_figures,
)
from budget_kernel.domain.clock import DeterministicClock
from budget_modules.budget import (
    BudgetAnalysisEngine,
    BudgetItem,
    BudgetUpdateStatus,
    LedgerActualsSource,
)

START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2025, 12, 31, tzinfo=timezone.utc)

amounts = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("999999999"),
    places=2, allow_nan=False, allow_infinity=False,
)
percentages = st.decimals(
    min_value=Decimal("-500"), max_value=Decimal("500"),
    places=4, allow_nan=False, allow_infinity=False,
)
as_of_times = st.integers(min_value=-30 * 86400, max_value=400 * 86400).map(
    lambda s: START + timedelta(seconds=s)
)

_SEVERITY_ORDER = [
    VarianceSeverity.LOW,
    VarianceSeverity.MEDIUM,
    VarianceSeverity.HIGH,
    VarianceSeverity.CRITICAL,
]

_CONFIG = parse_config({
    "categories": [
        {"id": "C1", "name": "Stationery", "default_budget": 100},
        {"id": "C2", "name": "Fuel", "default_budget": 200},
    ],
})
C1 = BudgetItem.make_id("fy-2025", "C1")


def _line(budget: Decimal, actual: Decimal, committed: Decimal = Decimal("0")) -> BudgetItem:
    return BudgetItem.build(
        category_id="C1",
        category_name="Stationery",
        budget_period_id="fy-2025",
        budgeted_amount=budget,
        actual_amount=actual,
        committed_amount=committed,
        last_updated=START,
    )


class TestItemFigureProperties:

    @given(budget=amounts, actual=amounts, committed=amounts)
    def test_identities_hold(self, budget, actual, committed):
        figures = compute_item_figures(budget, actual, committed)

        assert figures.available_amount == budget - actual - committed
        assert figures.variance_amount == actual - budget
        assert figures.is_over_budget == (actual > budget)
        if budget == 0:
            assert figures.variance_percentage == Decimal("0")
        else:
            assert figures.variance_percentage == (actual - budget) / budget * 100

    @given(pct=percentages)
    def test_severity_symmetric(self, pct):
        assert classify_severity(pct) == classify_severity(-pct)

    @given(a=percentages, b=percentages)
    def test_severity_monotone_in_magnitude(self, a, b):
        if abs(a) <= abs(b):
            assert _SEVERITY_ORDER.index(classify_severity(a)) <= _SEVERITY_ORDER.index(
                classify_severity(b)
            )


class TestForecastProperties:

    @given(budget=amounts, actual=amounts, as_of=as_of_times)
    def test_projection_bounds(self, budget, actual, as_of):
        [forecast] = BurnRateForecaster().forecast(
            items=[_line(budget, actual)], period_start=START, period_end=END, as_of=as_of,
        )

        assert 0 <= forecast.days_remaining <= 365
        assert forecast.projected_spend >= actual.quantize(Decimal("0.01"))
        if as_of >= END:
            assert forecast.days_remaining == 0
            assert forecast.projected_spend == actual.quantize(Decimal("0.01"))


class TestAggregationProperties:

    @given(st.lists(st.tuples(amounts, amounts, amounts), max_size=20))
    def test_totals_are_line_sums(self, rows):
        lines = [_line(b, a, c) for b, a, c in rows]

        totals = summarize(items=lines)

        assert totals.total_budget == sum((b for b, _, _ in rows), Decimal("0"))
        assert totals.total_actual == sum((a for _, a, _ in rows), Decimal("0"))
        assert totals.total_variance == totals.total_actual - totals.total_budget
        assert totals.total_available == (
            totals.total_budget - totals.total_actual - totals.total_committed
        )


class TestEngineProperties:

    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    @given(st.lists(
        st.tuples(
            st.sampled_from(["budgeted_amount", "actual_amount", "committed_amount"]),
            st.one_of(
                amounts,
                st.integers(min_value=-1000, max_value=-1),
                st.sampled_from(["abc", "NaN", "-0.5", None, float("inf")]),
            ),
        ),
        min_size=1,
        max_size=15,
    ))
    def test_updates_keep_identities_and_reject_invalid(self, updates):
        engine = BudgetAnalysisEngine(
            config=_CONFIG,
            clock=DeterministicClock(),
            actuals_source=LedgerActualsSource({"C1": Decimal("50")}),
        )
        engine.initialize()

        for field_name, value in updates:
            before = engine.get_budget_items()
            result = engine.update_item(C1, {field_name: value})

            if result.is_success:
                item = result.item
                assert item.available_amount == (
                    item.budgeted_amount - item.actual_amount - item.committed_amount
                )
                assert item.is_over_budget == (item.actual_amount > item.budgeted_amount)
            else:
                assert result.status == BudgetUpdateStatus.INVALID_AMOUNT
                assert engine.get_budget_items() == before

        report = engine.create_report()
        assert report.total_variance == report.total_actual - report.total_budget
