"""
budget_engines.recommendations -- Threshold rules over variance and forecast.

Responsibility:
    Synthesize free-text recommendations from variance and forecast results,
    and match over-budget lines against escalation rules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - At most one recommendation per rule, in a fixed order: over-budget
      count, projected-overspend count, high-variance count.
    - A rule whose count is zero contributes nothing.
    - Each over-budget line escalates to at most one rule: the highest
      escalation level whose threshold it meets.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from budget_engines.forecast import BudgetForecast
from budget_engines.tracer import traced_engine
from budget_engines.variance import BudgetVariance

DEFAULT_HIGH_VARIANCE_THRESHOLD = Decimal("20")

OVER_BUDGET_CONDITION = "over_budget"


@dataclass(frozen=True)
class EscalationRule:
    """Escalate over-budget lines whose variance % reaches ``threshold``."""

    id: str
    condition: str
    threshold: Decimal
    escalation_level: int
    approvers: tuple[str, ...]
    notification_required: bool = True


@dataclass(frozen=True)
class Escalation:
    """An over-budget line and the rule it triggered."""

    category_id: str
    category_name: str
    variance_percentage: Decimal
    rule_id: str
    escalation_level: int
    approvers: tuple[str, ...]
    notification_required: bool


@traced_engine(
    "recommendations", "1.0",
    fingerprint_fields=("variances", "forecasts", "high_variance_threshold"),
)
def generate_recommendations(
    variances: Sequence[BudgetVariance],
    forecasts: Sequence[BudgetForecast],
    high_variance_threshold: Decimal = DEFAULT_HIGH_VARIANCE_THRESHOLD,
) -> list[str]:
    recommendations: list[str] = []

    over_budget = sum(1 for v in variances if v.variance_amount > 0)
    if over_budget > 0:
        recommendations.append(f"Review {over_budget} categories that are over budget")

    projected = sum(1 for f in forecasts if f.projected_overspend)
    if projected > 0:
        recommendations.append(
            f"Take action on {projected} categories projected to overspend"
        )

    high_variance = sum(
        1 for v in variances if abs(v.variance_percentage) > high_variance_threshold
    )
    if high_variance > 0:
        recommendations.append(
            f"Investigate {high_variance} categories with high variance "
            f"(>{high_variance_threshold.normalize():f}%)"
        )

    return recommendations


def evaluate_escalations(
    variances: Iterable[BudgetVariance],
    rules: Sequence[EscalationRule],
) -> list[Escalation]:
    over_budget_rules = sorted(
        (r for r in rules if r.condition == OVER_BUDGET_CONDITION),
        key=lambda r: r.escalation_level,
        reverse=True,
    )

    escalations: list[Escalation] = []
    for v in variances:
        if v.variance_amount <= 0:
            continue
        for rule in over_budget_rules:
            if v.variance_percentage >= rule.threshold:
                escalations.append(
                    Escalation(
                        category_id=v.category_id,
                        category_name=v.category_name,
                        variance_percentage=v.variance_percentage,
                        rule_id=rule.id,
                        escalation_level=rule.escalation_level,
                        approvers=rule.approvers,
                        notification_required=rule.notification_required,
                    )
                )
                break
    return escalations
