"""
Configuration Loader (``budget_config.loader``).

Responsibility
--------------
Loads a budget configuration YAML file and parses it into the frozen
``budget_config.schema`` dataclasses, validating it on the way.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Numbers are parsed into ``Decimal`` through ``str`` (never via float
  arithmetic).
* Category ids are unique; template items reference known categories;
  every category has a non-negative default budget.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys or invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from budget_config.schema import (
    BUDGET_TYPES,
    BudgetConfig,
    BudgetSettings,
    CategoryDef,
    SyntheticDataDef,
    TemplateDef,
    TemplateItemDef,
)
from budget_engines.recommendations import EscalationRule
from budget_engines.variance import SeverityTiers
from budget_kernel.exceptions import ConfigurationError
from budget_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "operating_budget.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_decimal(value: Any, field_name: str, source: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ConfigurationError(source, f"{field_name} must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(source, f"{field_name} must be a number, got {value!r}")
    if not result.is_finite():
        raise ConfigurationError(source, f"{field_name} must be finite, got {value!r}")
    return result


def _require(data: dict[str, Any], key: str, source: str) -> Any:
    if key not in data:
        raise ConfigurationError(source, f"missing required key '{key}'")
    return data[key]


def parse_settings(data: dict[str, Any], source: str) -> BudgetSettings:
    defaults = BudgetSettings()
    return BudgetSettings(
        allow_over_budget=bool(data.get("allow_over_budget", defaults.allow_over_budget)),
        over_budget_threshold=parse_decimal(
            data.get("over_budget_threshold", defaults.over_budget_threshold),
            "settings.over_budget_threshold", source,
        ),
        require_approval_for_over_budget=bool(data.get(
            "require_approval_for_over_budget",
            defaults.require_approval_for_over_budget,
        )),
        auto_lock_period=int(data.get("auto_lock_period", defaults.auto_lock_period)),
        notification_threshold=parse_decimal(
            data.get("notification_threshold", defaults.notification_threshold),
            "settings.notification_threshold", source,
        ),
    )


def parse_tiers(data: dict[str, Any], source: str) -> SeverityTiers:
    defaults = SeverityTiers()
    try:
        return SeverityTiers(
            medium=parse_decimal(data.get("medium", defaults.medium), "severity_tiers.medium", source),
            high=parse_decimal(data.get("high", defaults.high), "severity_tiers.high", source),
            critical=parse_decimal(
                data.get("critical", defaults.critical), "severity_tiers.critical", source
            ),
        )
    except ValueError as exc:
        raise ConfigurationError(source, str(exc)) from exc


def parse_synthetic(data: dict[str, Any], source: str) -> SyntheticDataDef:
    defaults = SyntheticDataDef()
    parsed = {
        name: parse_decimal(data.get(name, getattr(defaults, name)), f"synthetic_data.{name}", source)
        for name in (
            "actual_low", "actual_high", "committed_ratio",
            "allocation_low", "allocation_high",
        )
    }
    if parsed["actual_low"] > parsed["actual_high"]:
        raise ConfigurationError(source, "synthetic_data.actual_low exceeds actual_high")
    if parsed["allocation_low"] > parsed["allocation_high"]:
        raise ConfigurationError(source, "synthetic_data.allocation_low exceeds allocation_high")
    return SyntheticDataDef(**parsed)


def parse_escalation_rule(data: dict[str, Any], source: str) -> EscalationRule:
    return EscalationRule(
        id=str(_require(data, "id", source)),
        condition=str(_require(data, "condition", source)),
        threshold=parse_decimal(_require(data, "threshold", source), "escalation_rules.threshold", source),
        escalation_level=int(_require(data, "escalation_level", source)),
        approvers=tuple(str(a) for a in data.get("approvers", ())),
        notification_required=bool(data.get("notification_required", True)),
    )


def parse_category(data: dict[str, Any], source: str) -> CategoryDef:
    category_id = str(_require(data, "id", source))
    default_budget = parse_decimal(
        _require(data, "default_budget", source), f"categories.{category_id}.default_budget", source
    )
    if default_budget < 0:
        raise ConfigurationError(source, f"category {category_id} has a negative default_budget")
    budget_type = str(data.get("budget_type", "operating"))
    if budget_type not in BUDGET_TYPES:
        raise ConfigurationError(source, f"category {category_id} has unknown budget_type '{budget_type}'")
    return CategoryDef(
        id=category_id,
        name=str(_require(data, "name", source)),
        description=str(data.get("description", "")),
        default_budget=default_budget,
        budget_type=budget_type,
        is_budgetable=bool(data.get("is_budgetable", True)),
        parent_category=data.get("parent_category"),
    )


def parse_template(
    data: dict[str, Any],
    categories: dict[str, CategoryDef],
    source: str,
) -> TemplateDef:
    template_id = str(_require(data, "id", source))
    items: list[TemplateItemDef] = []
    for raw in data.get("items", ()):
        category_id = str(_require(raw, "category_id", source))
        category = categories.get(category_id)
        if category is None:
            raise ConfigurationError(
                source, f"template {template_id} references unknown category {category_id}"
            )
        items.append(TemplateItemDef(
            category_id=category_id,
            category_name=category.name,
            default_amount=parse_decimal(
                raw.get("default_amount", category.default_budget),
                f"templates.{template_id}.default_amount", source,
            ),
            percentage=parse_decimal(raw.get("percentage", 0), f"templates.{template_id}.percentage", source),
            is_required=bool(raw.get("is_required", False)),
        ))
    return TemplateDef(
        id=template_id,
        name=str(_require(data, "name", source)),
        description=str(data.get("description", "")),
        is_default=bool(data.get("is_default", False)),
        created_by=str(data.get("created_by", "system")),
        items=tuple(items),
    )


def parse_config(data: dict[str, Any], source: str = "<dict>") -> BudgetConfig:
    """
    Parse a ``BudgetConfig`` from a dict.

    Raises:
        ConfigurationError: on missing keys or invalid values.
    """
    categories = tuple(parse_category(c, source) for c in _require(data, "categories", source))
    if not categories:
        raise ConfigurationError(source, "at least one category is required")
    by_id = {c.id: c for c in categories}
    if len(by_id) != len(categories):
        raise ConfigurationError(source, "category ids must be unique")

    departments = tuple(str(d) for d in data.get("departments", ()))
    if len(set(departments)) != len(departments):
        raise ConfigurationError(source, "department names must be unique")

    return BudgetConfig(
        currency=str(data.get("currency", "USD")),
        settings=parse_settings(data.get("settings", {}), source),
        severity_tiers=parse_tiers(data.get("severity_tiers", {}), source),
        high_variance_threshold=parse_decimal(
            data.get("high_variance_threshold", 20), "high_variance_threshold", source
        ),
        synthetic_data=parse_synthetic(data.get("synthetic_data", {}), source),
        departments=departments,
        escalation_rules=tuple(
            parse_escalation_rule(r, source) for r in data.get("escalation_rules", ())
        ),
        categories=categories,
        templates=tuple(parse_template(t, by_id, source) for t in data.get("templates", ())),
        checksum=compute_checksum(data),
    )


def load_budget_config(path: Path | str | None = None) -> BudgetConfig:
    """Load and validate a budget configuration file (default: shipped set)."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(config_path), source=str(config_path))
    logger.info("budget_config_loaded", extra={
        "path": str(config_path),
        "checksum": config.checksum,
        "category_count": len(config.categories),
        "department_count": len(config.departments),
        "currency": config.currency,
    })
    return config
