"""
Pytest fixtures for the budget engine test suite.

Provides:
- Structured logging configured for every test, with captured JSON logs
- A deterministic clock pinned inside the 2025 fiscal year
- Ledger-backed actuals with known figures
- Seeded engines (ledger and synthetic) and a small two-category config
- An in-memory SQLite session factory for repository tests
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from budget_config import BudgetConfig, load_budget_config, parse_config
from budget_kernel.db.base import Base
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from budget_modules.budget import (
    BudgetAnalysisEngine,
    LedgerActualsSource,
    SpendFigures,
)

MID_YEAR = datetime(2025, 7, 2, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture budget_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.update_item(...)
            logs = captured_logs()
            assert any(r["message"] == "budget_item_updated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("budget_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing (2025-07-02 12:00 UTC)."""
    return DeterministicClock(MID_YEAR)


@pytest.fixture(scope="session")
def default_config() -> BudgetConfig:
    return load_budget_config()


@pytest.fixture
def two_category_config() -> BudgetConfig:
    """Budgets of 100 and 200, no departments."""
    return parse_config({
        "currency": "TZS",
        "categories": [
            {"id": "C1", "name": "Stationery", "default_budget": 100},
            {"id": "C2", "name": "Fuel", "default_budget": 200},
        ],
    }, source="two_category_config")


@pytest.fixture
def ledger_source() -> LedgerActualsSource:
    """
    Known actuals for the shipped categories.

    OP001 is over budget by 50000 (5.88%); OP009 is 40% over; OP011 has
    no postings; everything else has spent half its budget.
    """
    config = load_budget_config()
    balances = {
        c.id: SpendFigures(c.default_budget / 2, Decimal("0"))
        for c in config.categories
    }
    balances["OP001"] = SpendFigures(Decimal("900000"), Decimal("0"))
    balances["OP009"] = SpendFigures(Decimal("105000"), Decimal("5000"))
    del balances["OP011"]
    return LedgerActualsSource(balances)


@pytest.fixture
def engine(default_config, deterministic_clock, ledger_source) -> BudgetAnalysisEngine:
    """An initialized engine seeded from ``ledger_source``."""
    e = BudgetAnalysisEngine(
        config=default_config,
        clock=deterministic_clock,
        actuals_source=ledger_source,
    )
    e.initialize()
    return e


@pytest.fixture
def synthetic_engine(default_config, deterministic_clock) -> BudgetAnalysisEngine:
    e = BudgetAnalysisEngine(config=default_config, clock=deterministic_clock, seed=1234)
    e.initialize()
    return e


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    import budget_modules.budget.orm  # noqa: F401  (registers tables)

    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(db_engine)
    yield sessionmaker(bind=db_engine, expire_on_commit=False)
    Base.metadata.drop_all(db_engine)
    db_engine.dispose()
