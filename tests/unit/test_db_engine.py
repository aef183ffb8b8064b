"""Tests for engine initialization and the transactional session scope."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, inspect, select

from budget_kernel.db import create_tables, get_engine, get_session_factory, init_engine_from_url, session_scope
from budget_modules.budget.orm import BudgetPeriodModel

FY_START = datetime(2025, 1, 1, tzinfo=timezone.utc)
FY_END = datetime(2025, 12, 31, tzinfo=timezone.utc)


def _period(period_id: str = "fy-2025") -> BudgetPeriodModel:
    return BudgetPeriodModel(
        id=period_id,
        name="FY 2025",
        start_date=FY_START,
        end_date=FY_END,
        created_by="system",
    )


def _period_count(session_factory) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(BudgetPeriodModel))


class TestSessionScope:

    def test_commits_on_normal_exit(self, session_factory):
        with session_scope(session_factory) as session:
            session.add(_period())

        assert _period_count(session_factory) == 1

    def test_rolls_back_and_reraises(self, session_factory):
        with pytest.raises(RuntimeError, match="ledger offline"):
            with session_scope(session_factory) as session:
                session.add(_period())
                session.flush()
                raise RuntimeError("ledger offline")

        assert _period_count(session_factory) == 0


class TestInitEngine:

    def test_sqlite_url_creates_budget_tables(self):
        init_engine_from_url("sqlite://")
        create_tables()

        tables = set(inspect(get_engine()).get_table_names())
        assert {"budget_periods", "budget_items"} <= tables

    def test_default_scope_uses_module_factory(self):
        init_engine_from_url("sqlite://")
        create_tables()

        with session_scope() as session:
            session.add(_period("fy-2026"))

        assert _period_count(get_session_factory()) == 1
