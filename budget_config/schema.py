"""
Configuration Schema (``budget_config.schema``).

Frozen dataclasses describing one budget configuration set.  Produced by
``budget_config.loader``; consumed by ``budget_modules.budget``.
All amounts and percentages are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from budget_engines.recommendations import EscalationRule
from budget_engines.variance import SeverityTiers

BUDGET_TYPES = ("operating", "interest", "tax")


@dataclass(frozen=True)
class BudgetSettings:
    """Control settings applied by the budget service."""

    allow_over_budget: bool = False
    over_budget_threshold: Decimal = Decimal("10")
    require_approval_for_over_budget: bool = True
    auto_lock_period: int = 30
    notification_threshold: Decimal = Decimal("80")


@dataclass(frozen=True)
class SyntheticDataDef:
    """Ranges used when seeding demo actuals instead of ledger figures."""

    actual_low: Decimal = Decimal("0.80")
    actual_high: Decimal = Decimal("1.20")
    committed_ratio: Decimal = Decimal("0.10")
    allocation_low: Decimal = Decimal("0.10")
    allocation_high: Decimal = Decimal("0.30")


@dataclass(frozen=True)
class CategoryDef:
    id: str
    name: str
    description: str
    default_budget: Decimal
    budget_type: str = "operating"
    is_budgetable: bool = True
    parent_category: str | None = None


@dataclass(frozen=True)
class TemplateItemDef:
    category_id: str
    category_name: str
    default_amount: Decimal
    percentage: Decimal
    is_required: bool


@dataclass(frozen=True)
class TemplateDef:
    id: str
    name: str
    description: str
    is_default: bool
    created_by: str
    items: tuple[TemplateItemDef, ...] = ()


@dataclass(frozen=True)
class BudgetConfig:
    """A complete, validated budget configuration set."""

    currency: str
    settings: BudgetSettings
    severity_tiers: SeverityTiers
    high_variance_threshold: Decimal
    synthetic_data: SyntheticDataDef
    departments: tuple[str, ...]
    escalation_rules: tuple[EscalationRule, ...]
    categories: tuple[CategoryDef, ...]
    templates: tuple[TemplateDef, ...] = ()
    checksum: str = field(default="", compare=False)

    def category(self, category_id: str) -> CategoryDef | None:
        for c in self.categories:
            if c.id == category_id:
                return c
        return None

    @classmethod
    def with_defaults(cls) -> BudgetConfig:
        """The shipped operating-budget configuration."""
        from budget_config.loader import load_budget_config

        return load_budget_config()
