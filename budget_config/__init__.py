"""
budget_config -- YAML-backed configuration for the budget engine.

Responsibility:
    The single way to obtain budget configuration: categories and their
    default budgets, control settings, severity tiers, escalation rules,
    departments and templates.  ``load_budget_config()`` returns a frozen,
    validated ``BudgetConfig``.

Architecture position:
    Configuration -- sits above ``budget_kernel`` / ``budget_engines`` and
    below ``budget_modules``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``ConfigurationError`` -- schema or value validation failures.
"""

from budget_config.loader import DEFAULT_CONFIG_PATH, load_budget_config, parse_config
from budget_config.schema import (
    BudgetConfig,
    BudgetSettings,
    CategoryDef,
    SyntheticDataDef,
    TemplateDef,
    TemplateItemDef,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BudgetConfig",
    "BudgetSettings",
    "CategoryDef",
    "SyntheticDataDef",
    "TemplateDef",
    "TemplateItemDef",
    "load_budget_config",
    "parse_config",
]
