"""
Budget catalog seeding (``budget_modules.budget.catalog``).

Turns a ``BudgetConfig`` into the static domain objects the engine starts
from: the category taxonomy, templates, and the fiscal-year period that
contains a given instant.  Pure functions; no clock access.
"""

from __future__ import annotations

from datetime import datetime, timezone

from budget_config.schema import BudgetConfig, CategoryDef, TemplateDef
from budget_modules.budget.models import (
    BudgetCategory,
    BudgetPeriod,
    BudgetTemplate,
    BudgetTemplateItem,
    BudgetType,
)


def build_category(definition: CategoryDef) -> BudgetCategory:
    return BudgetCategory(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        category_code=definition.id,
        is_budgetable=definition.is_budgetable,
        budget_type=BudgetType(definition.budget_type),
        parent_category=definition.parent_category,
    )


def build_categories(config: BudgetConfig) -> tuple[BudgetCategory, ...]:
    return tuple(build_category(c) for c in config.categories)


def build_template(definition: TemplateDef, created_at: datetime) -> BudgetTemplate:
    return BudgetTemplate(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        categories=tuple(
            BudgetTemplateItem(
                category_id=i.category_id,
                category_name=i.category_name,
                default_amount=i.default_amount,
                percentage=i.percentage,
                is_required=i.is_required,
            )
            for i in definition.items
        ),
        is_default=definition.is_default,
        created_by=definition.created_by,
        created_at=created_at,
    )


def build_templates(config: BudgetConfig, created_at: datetime) -> tuple[BudgetTemplate, ...]:
    return tuple(build_template(t, created_at) for t in config.templates)


def fiscal_year_period(as_of: datetime, created_by: str = "system") -> BudgetPeriod:
    """
    The calendar-year period containing ``as_of``.

    Runs from Jan 1 00:00 UTC to Dec 31 00:00 UTC of the year of ``as_of``
    (taken in UTC).
    """
    year = as_of.astimezone(timezone.utc).year
    return BudgetPeriod(
        id=f"fy-{year}",
        name=f"{year} Annual Budget",
        start_date=datetime(year, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(year, 12, 31, tzinfo=timezone.utc),
        is_active=True,
        is_locked=False,
        created_by=created_by,
        created_at=as_of,
    )
