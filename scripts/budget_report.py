#!/usr/bin/env python3
"""
Budget Report Viewer.

Seeds a budget analysis engine and prints the budget-vs-actual report,
burn-rate forecast, recommendations and escalations to stdout.

Figures are synthetic unless a database already holds saved state
(``--db-url`` together with ``--restore``).

Usage:
    python3 scripts/budget_report.py
    python3 scripts/budget_report.py --seed 42 --as-of 2025-09-30
    python3 scripts/budget_report.py --db-url sqlite:///budget.db
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


# ===================================================================
# Pretty-print helpers
# ===================================================================

W = 78  # total line width
AMT_W = 16  # amount column width


def _hdr(title: str, subtitle: str = "") -> str:
    lines = ["", "=" * W, title.center(W)]
    if subtitle:
        lines.append(subtitle.center(W))
    lines.append("=" * W)
    return "\n".join(lines)


def _fmt(v, currency: str = "") -> str:
    """Format a Decimal as 1,234.56 with negatives in parentheses."""
    if v is None:
        return ""
    d = Decimal(str(v))
    formatted = f"{currency}{abs(d):,.2f}"
    return f"({formatted})" if d < 0 else f" {formatted} "


def _pct(v) -> str:
    return f"{Decimal(str(v)):.2f}%"


# ===================================================================
# Report printers
# ===================================================================


def print_report(report, currency: str) -> None:
    period = report.period
    print(_hdr(
        "BUDGET VS ACTUAL",
        f"{period.name}  ({period.start_date.date()} to {period.end_date.date()})",
    ))
    label_w = W - 3 * AMT_W - 12
    print(f"  {'Category':<{label_w}}{'Budget':>{AMT_W}}{'Actual':>{AMT_W}}{'Variance':>{AMT_W}}  Severity")
    print("  " + "-" * (W - 2))
    for v in report.categories:
        print(
            f"  {v.category_name[:label_w - 1]:<{label_w}}"
            f"{_fmt(v.budgeted_amount):>{AMT_W}}"
            f"{_fmt(v.actual_amount):>{AMT_W}}"
            f"{_fmt(v.variance_amount):>{AMT_W}}"
            f"  {v.severity.value}"
        )
    print("  " + "-" * (W - 2))
    print(
        f"  {'TOTALS':<{label_w}}"
        f"{_fmt(report.total_budget, currency):>{AMT_W}}"
        f"{_fmt(report.total_actual, currency):>{AMT_W}}"
        f"{_fmt(report.total_variance, currency):>{AMT_W}}"
        f"  {_pct(report.variance_percentage)}"
    )
    print(f"  Over budget: {len(report.over_budget_categories)}   "
          f"Under budget: {len(report.under_budget_categories)}")
    print()


def print_forecast(forecasts) -> None:
    print(_hdr("BURN-RATE FORECAST"))
    label_w = W - 3 * AMT_W - 10
    print(f"  {'Category':<{label_w}}{'Burn/day':>{AMT_W}}{'Projected':>{AMT_W}}{'Remaining':>{AMT_W}}  Days")
    print("  " + "-" * (W - 2))
    for f in forecasts:
        flag = " !" if f.projected_overspend else ""
        print(
            f"  {f.category_name[:label_w - 1]:<{label_w}}"
            f"{_fmt(f.burn_rate):>{AMT_W}}"
            f"{_fmt(f.projected_spend):>{AMT_W}}"
            f"{_fmt(f.budget_remaining):>{AMT_W}}"
            f"  {f.days_remaining}{flag}"
        )
    print()


def print_analysis(analysis, escalations) -> None:
    print(_hdr("ANALYSIS"))
    print(f"  Utilization rate:   {_pct(analysis.utilization_rate)}")
    print(f"  Total committed:    {_fmt(analysis.total_committed)}")
    print(f"  Total available:    {_fmt(analysis.total_available)}")
    print()
    print("  Recommendations:")
    if not analysis.recommendations:
        print("    (none)")
    for rec in analysis.recommendations:
        print(f"    - {rec}")
    print()
    print("  Escalations:")
    if not escalations:
        print("    (none)")
    for e in escalations:
        print(
            f"    - {e.category_name}: {_pct(e.variance_percentage)} over "
            f"-> level {e.escalation_level} ({', '.join(e.approvers)})"
        )
    print()


def _parse_as_of(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def main() -> int:
    parser = argparse.ArgumentParser(description="Operating-expense budget report")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for synthetic actuals (reproducible output)")
    parser.add_argument("--as-of", type=_parse_as_of, default=None,
                        help="Report date (ISO 8601); defaults to now")
    parser.add_argument("--config", type=Path, default=None,
                        help="Budget configuration YAML (defaults to the shipped set)")
    parser.add_argument("--db-url", default=None,
                        help="Database URL for persisting state")
    parser.add_argument("--restore", action="store_true",
                        help="Load saved state from --db-url instead of seeding")
    parser.add_argument("--verbose", action="store_true",
                        help="Emit structured JSON logs to stderr")
    args = parser.parse_args()

    from budget_config import load_budget_config
    from budget_kernel.domain.clock import DeterministicClock, SystemClock
    from budget_kernel.exceptions import BudgetKernelError
    from budget_kernel.logging_config import configure_logging
    from budget_modules.budget import (
        BudgetAnalysisEngine,
        InMemoryBudgetRepository,
        SqlAlchemyBudgetRepository,
    )

    if args.verbose:
        configure_logging(level=logging.INFO)
    else:
        logging.disable(logging.CRITICAL)

    if args.restore and not args.db_url:
        print("Error: --restore requires --db-url", file=sys.stderr)
        return 2

    try:
        config = load_budget_config(args.config)
    except (FileNotFoundError, BudgetKernelError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    repository = InMemoryBudgetRepository()
    if args.db_url:
        from budget_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url

        init_engine_from_url(args.db_url)
        create_tables()
        repository = SqlAlchemyBudgetRepository(get_session_factory())

    clock = DeterministicClock(args.as_of) if args.as_of else SystemClock()
    engine = BudgetAnalysisEngine(
        config=config, clock=clock, repository=repository, seed=args.seed,
    )

    if args.restore:
        if not engine.restore():
            print("Error: no saved budget state found", file=sys.stderr)
            return 1
    else:
        engine.initialize()

    report = engine.create_report()
    print_report(report, config.currency + " ")
    print_forecast(report.forecasts)
    print_analysis(engine.get_analysis(), engine.get_escalations())
    return 0


if __name__ == "__main__":
    sys.exit(main())
