"""
Budget Analysis Service (``budget_modules.budget.service``).

Responsibility
--------------
Owns one current budget period with its items, departmental allocations
and budget increase approvals, and produces variance, forecast, report
and analysis views of them on demand.  Mutations (item updates, spend,
periods, approvals, locking) are validated here and persisted through a
``BudgetRepository``.

Architecture position
---------------------
**Modules layer** -- ``BudgetAnalysisEngine`` is the sole public entry
point for budget operations.  All arithmetic is delegated to the pure
``budget_engines`` package; configuration comes from ``budget_config``;
"now" comes from the injected ``Clock``.

Invariants enforced
-------------------
* Item derived fields are recomputed on every mutation
  (``BudgetItem.with_amounts``); they are never written directly.
* Locked periods reject item updates, spend, budget increase requests
  and approval decisions with ``PERIOD_LOCKED``.  A new period overlapping a locked current period is
  rejected the same way.
* All mutations are serialized by one re-entrant lock and bump the
  item's ``version``; ``expected_version`` turns a lost update into
  ``VERSION_CONFLICT``.
* Every mutation runs inside ``_transaction``: state is saved to the
  repository before the call returns, never after a rejected mutation,
  and a failed save restores the in-memory state it started from.
* Period ids are unique; ``create_period`` never replaces an existing
  period.

Failure modes
-------------
* Validation failures of ``update_item`` / ``record_spend`` /
  ``create_period`` -> typed result with ``is_success == False`` and the
  exception in ``result.error``; state unchanged.
* Report or analysis before ``initialize`` -> ``BudgetNotInitializedError``.
* Approval, lock and allocation operations raise their typed errors.
* Repository errors (e.g. ``SQLAlchemyError``) propagate after the
  in-memory state has been rolled back.

Audit relevance
---------------
Structured log events are emitted for every mutation and every rejection,
carrying item ids, period ids, amounts and the acting user.
"""

from __future__ import annotations

import dataclasses
import math
import random
import threading
from collections.abc import Generator, Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import uuid4

from budget_config.schema import BudgetConfig
from budget_engines.aggregation import (
    partition_variances,
    summarize,
    top_over_budget,
    utilization_rate,
)
from budget_engines.allocation import AllocationSummary, summarize_allocations
from budget_engines.forecast import BudgetForecast, BurnRateForecaster
from budget_engines.recommendations import (
    Escalation,
    evaluate_escalations,
    generate_recommendations,
)
from budget_engines.variance import BudgetVariance, BudgetVarianceCalculator
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    ApprovalNotFoundError,
    BudgetKernelError,
    BudgetNotInitializedError,
    DuplicatePeriodError,
    InvalidAmountError,
    InvalidFieldError,
    InvalidPeriodError,
    ItemNotFoundError,
    OptimisticLockError,
    OverBudgetError,
    PeriodLockedError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_modules.budget.catalog import (
    build_categories,
    build_templates,
    fiscal_year_period,
)
from budget_modules.budget.models import (
    ApprovalStatus,
    BudgetAllocation,
    BudgetAnalysis,
    BudgetApproval,
    BudgetCategory,
    BudgetItem,
    BudgetManagement,
    BudgetPeriod,
    BudgetReport,
    BudgetTemplate,
    UtilizationAlert,
)
from budget_modules.budget.repository import (
    BudgetRepository,
    BudgetState,
    InMemoryBudgetRepository,
)
from budget_modules.budget.sources import ActualsSource, SyntheticActualsSource

logger = get_logger("modules.budget.service")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

AMOUNT_FIELDS = ("budgeted_amount", "actual_amount", "committed_amount")
UPDATABLE_FIELDS = frozenset(AMOUNT_FIELDS) | {"category_name"}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class BudgetUpdateStatus(str, Enum):
    """Outcome of an item mutation."""

    UPDATED = "updated"
    NOT_INITIALIZED = "not_initialized"
    ITEM_NOT_FOUND = "item_not_found"
    INVALID_FIELD = "invalid_field"
    INVALID_AMOUNT = "invalid_amount"
    OVER_BUDGET = "over_budget"
    PERIOD_LOCKED = "period_locked"
    VERSION_CONFLICT = "version_conflict"


_UPDATE_STATUS_BY_ERROR: dict[type[BudgetKernelError], BudgetUpdateStatus] = {
    BudgetNotInitializedError: BudgetUpdateStatus.NOT_INITIALIZED,
    ItemNotFoundError: BudgetUpdateStatus.ITEM_NOT_FOUND,
    InvalidFieldError: BudgetUpdateStatus.INVALID_FIELD,
    InvalidAmountError: BudgetUpdateStatus.INVALID_AMOUNT,
    OverBudgetError: BudgetUpdateStatus.OVER_BUDGET,
    PeriodLockedError: BudgetUpdateStatus.PERIOD_LOCKED,
    OptimisticLockError: BudgetUpdateStatus.VERSION_CONFLICT,
}


@dataclass(frozen=True)
class BudgetUpdateResult:
    """Result of ``update_item`` / ``record_spend``."""

    status: BudgetUpdateStatus
    item_id: str
    item: BudgetItem | None = None
    error: BudgetKernelError | None = None

    @property
    def is_success(self) -> bool:
        return self.status is BudgetUpdateStatus.UPDATED

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def __bool__(self) -> bool:
        return self.is_success

    @classmethod
    def rejected(cls, item_id: str, error: BudgetKernelError) -> BudgetUpdateResult:
        return cls(status=_UPDATE_STATUS_BY_ERROR[type(error)], item_id=item_id, error=error)


class PeriodCreationStatus(str, Enum):
    CREATED = "created"
    INVALID_PERIOD = "invalid_period"
    DUPLICATE_PERIOD = "duplicate_period"
    PERIOD_LOCKED = "period_locked"


@dataclass(frozen=True)
class PeriodCreationResult:
    """Result of ``create_period``."""

    status: PeriodCreationStatus
    period: BudgetPeriod | None = None
    error: BudgetKernelError | None = None

    @property
    def is_success(self) -> bool:
        return self.status is PeriodCreationStatus.CREATED

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def __bool__(self) -> bool:
        return self.is_success


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def coerce_amount(field_name: str, value: Any) -> Decimal:
    """
    Convert a caller-supplied amount to ``Decimal``.

    Raises:
        InvalidAmountError: non-numeric, NaN, infinite or negative values.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(field_name, value, "not a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, (float, str)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidAmountError(field_name, value, "not finite")
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(field_name, value, "not a number") from None
    else:
        raise InvalidAmountError(field_name, value, "not a number")

    if amount.is_nan():
        raise InvalidAmountError(field_name, value, "not a number")
    if not amount.is_finite():
        raise InvalidAmountError(field_name, value, "not finite")
    if amount < ZERO:
        raise InvalidAmountError(field_name, value, "negative")
    return amount


def _as_utc(value: datetime) -> datetime:
    # Naive period boundaries are taken as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class BudgetAnalysisEngine:
    """
    Operating-expense budget tracking and analysis for one institution.

    Contract
    --------
    * ``initialize`` seeds the fiscal-year period containing ``clock.now()``
      with one item per budgetable category, replacing all prior state.
    * Read operations return immutable snapshots; ``get_budget_items``,
      ``get_variance_analysis`` and ``get_forecast_analysis`` return ``[]``
      before initialization.
    * ``update_item``, ``record_spend`` and ``create_period`` never raise
      for validation failures; they return a typed result.

    Guarantees
    ----------
    * Clock and actuals source are injectable; with a ``DeterministicClock``
      and a seeded or ledger source every output is reproducible.
    * One instance per owner; there is no process-wide singleton.

    Non-goals
    ---------
    * Does NOT post journal entries or read the general ledger itself;
      actuals arrive through an ``ActualsSource``.
    * Does NOT authenticate the ``updated_by`` / approver names it records.
    """

    def __init__(
        self,
        config: BudgetConfig | None = None,
        clock: Clock | None = None,
        repository: BudgetRepository | None = None,
        actuals_source: ActualsSource | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
    ):
        self._config = config or BudgetConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._repository = repository or InMemoryBudgetRepository()
        self._actuals_source = actuals_source or SyntheticActualsSource(
            seed=seed, ranges=self._config.synthetic_data, rng=rng,
        )
        self._variance = BudgetVarianceCalculator(self._config.severity_tiers)
        self._forecaster = BurnRateForecaster()

        self._categories = build_categories(self._config)
        self._templates = build_templates(self._config, self._clock.now())

        self._lock = threading.RLock()
        self._periods: dict[str, BudgetPeriod] = {}
        self._current_period_id: str | None = None
        self._items: dict[str, BudgetItem] = {}
        self._allocations: dict[str, BudgetAllocation] = {}
        self._approvals: dict[str, BudgetApproval] = {}

    @property
    def config(self) -> BudgetConfig:
        return self._config

    @property
    def is_initialized(self) -> bool:
        return self._current_period_id is not None

    @property
    def current_period(self) -> BudgetPeriod | None:
        with self._lock:
            if self._current_period_id is None:
                return None
            return self._periods[self._current_period_id]

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(self, actuals_source: ActualsSource | None = None) -> BudgetPeriod:
        """
        Seed the current fiscal-year period and one item per category.

        Replaces every period, item, allocation and approval held so far.
        Figures come from ``actuals_source`` (or the engine's default).

        Raises:
            InvalidAmountError: if the source yields a negative or
                non-finite amount.
        """
        source = actuals_source or self._actuals_source
        with self._lock:
            now = self._clock.now()
            period = fiscal_year_period(now)

            items: dict[str, BudgetItem] = {}
            allocations: dict[str, BudgetAllocation] = {}
            for definition in self._config.categories:
                if not definition.is_budgetable:
                    continue
                spend = source.spend_for(definition.id, definition.default_budget)
                item = BudgetItem.build(
                    category_id=definition.id,
                    category_name=definition.name,
                    budget_period_id=period.id,
                    budgeted_amount=definition.default_budget,
                    actual_amount=coerce_amount("actual_amount", spend.actual_amount),
                    committed_amount=coerce_amount("committed_amount", spend.committed_amount),
                    last_updated=now,
                )
                items[item.id] = item
                for share in source.allocation_shares(
                    self._config.departments, item.budgeted_amount, item.actual_amount,
                ):
                    allocation = BudgetAllocation.build(
                        budget_item_id=item.id,
                        department=share.department,
                        allocated_amount=coerce_amount("allocated_amount", share.allocated_amount),
                        used_amount=coerce_amount("used_amount", share.used_amount),
                        item_budget=item.budgeted_amount,
                    )
                    allocations[allocation.id] = allocation

            with self._transaction():
                self._periods = {period.id: period}
                self._current_period_id = period.id
                self._items = items
                self._allocations = allocations
                self._approvals = {}

        logger.info("budget_initialized", extra={
            "period_id": period.id,
            "item_count": len(items),
            "allocation_count": len(allocations),
            "source": type(source).__name__,
            "config_checksum": self._config.checksum,
        })
        return period

    def restore(self) -> bool:
        """Reload state from the repository; False if nothing was saved."""
        state = self._repository.load()
        if state is None:
            logger.info("budget_state_restore_empty")
            return False
        with self._lock:
            self._apply(state)
        logger.info("budget_state_restored", extra={
            "current_period_id": state.current_period_id,
            "item_count": len(state.items),
        })
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    def get_budget_items(self, period_id: str | None = None) -> list[BudgetItem]:
        with self._lock:
            items = list(self._items.values())
        if period_id is None:
            return items
        return [i for i in items if i.budget_period_id == period_id]

    def get_budget_categories(self) -> list[BudgetCategory]:
        return list(self._categories)

    def get_templates(self) -> list[BudgetTemplate]:
        return list(self._templates)

    def get_allocations(self, item_id: str | None = None) -> list[BudgetAllocation]:
        with self._lock:
            allocations = list(self._allocations.values())
        if item_id is None:
            return allocations
        return [a for a in allocations if a.budget_item_id == item_id]

    def get_allocation_summary(self, item_id: str) -> AllocationSummary:
        """
        Raises:
            ItemNotFoundError: if ``item_id`` does not exist.
        """
        with self._lock:
            item = self._require_item(item_id)
            allocations = [a for a in self._allocations.values() if a.budget_item_id == item_id]
        return summarize_allocations(allocations, item.budgeted_amount)

    def get_approvals(self, item_id: str | None = None) -> list[BudgetApproval]:
        with self._lock:
            approvals = list(self._approvals.values())
        if item_id is None:
            return approvals
        return [a for a in approvals if a.budget_item_id == item_id]

    def get_budget_management(self) -> BudgetManagement | None:
        with self._lock:
            if self._current_period_id is None:
                return None
            return BudgetManagement(
                current_period=self._periods[self._current_period_id],
                budget_items=tuple(self._items.values()),
                allocations=tuple(self._allocations.values()),
                approvals=tuple(self._approvals.values()),
                settings=self._config.settings,
                templates=self._templates,
            )

    # =========================================================================
    # Analysis
    # =========================================================================

    def get_variance_analysis(self) -> list[BudgetVariance]:
        period, items = self._current_snapshot()
        if period is None:
            return []
        return self._variance.analyze(items=items)

    def get_forecast_analysis(self) -> list[BudgetForecast]:
        period, items = self._current_snapshot()
        if period is None:
            return []
        return self._forecast(period, items)

    def create_report(self) -> BudgetReport:
        """
        Portfolio budget-vs-actual report for the current period.

        Raises:
            BudgetNotInitializedError: before ``initialize``.
        """
        period, items = self._current_snapshot()
        if period is None:
            raise BudgetNotInitializedError("create_report")

        variances = self._variance.analyze(items=items)
        forecasts = self._forecast(period, items)
        totals = summarize(items=items)
        over, under = partition_variances(variances)

        logger.info("budget_report_created", extra={
            "period_id": period.id,
            "total_budget": totals.total_budget,
            "total_actual": totals.total_actual,
            "over_budget_count": len(over),
        })
        return BudgetReport(
            period=period,
            total_budget=totals.total_budget,
            total_actual=totals.total_actual,
            total_variance=totals.total_variance,
            variance_percentage=totals.variance_percentage,
            categories=tuple(variances),
            forecasts=tuple(forecasts),
            over_budget_categories=tuple(over),
            under_budget_categories=tuple(under),
        )

    def get_analysis(self) -> BudgetAnalysis:
        """
        Portfolio analysis with recommendations for the current period.

        Raises:
            BudgetNotInitializedError: before ``initialize``.
        """
        period, items = self._current_snapshot()
        if period is None:
            raise BudgetNotInitializedError("get_analysis")

        variances = self._variance.analyze(items=items)
        forecasts = self._forecast(period, items)
        totals = summarize(items=items)
        recommendations = generate_recommendations(
            variances, forecasts, self._config.high_variance_threshold,
        )

        logger.info("budget_analysis_created", extra={
            "period_id": period.id,
            "utilization_rate": totals.utilization_rate,
            "recommendation_count": len(recommendations),
        })
        return BudgetAnalysis(
            period=period,
            total_budget=totals.total_budget,
            total_actual=totals.total_actual,
            total_committed=totals.total_committed,
            total_available=totals.total_available,
            utilization_rate=totals.utilization_rate,
            variance_analysis=tuple(variances),
            forecast_analysis=tuple(forecasts),
            recommendations=tuple(recommendations),
        )

    def get_top_over_budget(self, limit: int = 3) -> list[BudgetVariance]:
        return top_over_budget(self.get_variance_analysis(), limit)

    def get_escalations(self) -> list[Escalation]:
        return evaluate_escalations(self.get_variance_analysis(), self._config.escalation_rules)

    def get_utilization_alerts(self) -> list[UtilizationAlert]:
        """Current-period items whose utilization reached the notification threshold."""
        threshold = self._config.settings.notification_threshold
        _, items = self._current_snapshot()
        alerts: list[UtilizationAlert] = []
        for item in items:
            rate = utilization_rate(item.actual_amount, item.budgeted_amount)
            if item.budgeted_amount > ZERO and rate >= threshold:
                alerts.append(UtilizationAlert(
                    item_id=item.id,
                    category_name=item.category_name,
                    utilization_rate=rate,
                    threshold=threshold,
                ))
        return alerts

    # =========================================================================
    # Item mutation
    # =========================================================================

    def update_item(
        self,
        item_id: str,
        updates: Mapping[str, Any],
        *,
        updated_by: str = "system",
        expected_version: int | None = None,
    ) -> BudgetUpdateResult:
        """
        Overwrite base fields of one item and recompute its derived fields.

        Only ``budgeted_amount``, ``actual_amount``, ``committed_amount``
        and ``category_name`` may be updated.
        """
        with self._lock, LogContext.bind(item_id=item_id, actor_id=updated_by):
            try:
                self._require_initialized("update_item")
                item = self._require_item(item_id)

                unknown = sorted(set(updates) - UPDATABLE_FIELDS)
                if unknown:
                    raise InvalidFieldError(item_id, unknown)
                self._require_unlocked(item.budget_period_id, "update budget item")
                if expected_version is not None and expected_version != item.version:
                    raise OptimisticLockError(item_id, expected_version, item.version)

                amounts = {
                    name: coerce_amount(name, updates[name])
                    for name in AMOUNT_FIELDS if name in updates
                }
                category_name = updates.get("category_name")
                if category_name is not None:
                    category_name = str(category_name)
            except BudgetKernelError as exc:
                logger.warning("budget_item_update_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return BudgetUpdateResult.rejected(item_id, exc)

            updated = item.with_amounts(
                last_updated=self._clock.now(),
                updated_by=updated_by,
                category_name=category_name,
                **amounts,
            )
            with self._transaction():
                self._store_item(updated)

            logger.info("budget_item_updated", extra={
                "fields": sorted(updates),
                "version": updated.version,
                "budgeted_amount": updated.budgeted_amount,
                "actual_amount": updated.actual_amount,
                "is_over_budget": updated.is_over_budget,
            })
            return BudgetUpdateResult(
                status=BudgetUpdateStatus.UPDATED, item_id=item_id, item=updated,
            )

    def record_spend(
        self,
        item_id: str,
        amount: Any,
        *,
        department: str | None = None,
        committed: bool = False,
        updated_by: str = "system",
    ) -> BudgetUpdateResult:
        """
        Add spend to an item's actual amount (or its committed amount).

        Actual spend also counts against the department's allocation.
        Unless ``allow_over_budget`` is set, actual spend may not exceed
        the budget by more than ``over_budget_threshold`` percent;
        such spend is rejected with ``OVER_BUDGET`` and should go through
        ``request_budget_increase``.
        """
        with self._lock, LogContext.bind(item_id=item_id, actor_id=updated_by):
            try:
                self._require_initialized("record_spend")
                item = self._require_item(item_id)
                self._require_unlocked(item.budget_period_id, "record spend")
                spend = coerce_amount("amount", amount)
                if spend == ZERO:
                    raise InvalidAmountError("amount", amount, "must be positive")
                if not committed:
                    self._check_over_budget(item, item.actual_amount + spend)
            except BudgetKernelError as exc:
                logger.warning("budget_spend_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                    "amount": str(amount),
                })
                return BudgetUpdateResult.rejected(item_id, exc)

            now = self._clock.now()
            if committed:
                updated = item.with_amounts(
                    last_updated=now, updated_by=updated_by,
                    committed_amount=item.committed_amount + spend,
                )
            else:
                updated = item.with_amounts(
                    last_updated=now, updated_by=updated_by,
                    actual_amount=item.actual_amount + spend,
                )
            with self._transaction():
                self._store_item(updated)
                if department is not None and not committed:
                    self._charge_department(updated, department, spend)

            logger.info("budget_spend_recorded", extra={
                "amount": spend,
                "committed": committed,
                "department": department,
                "actual_amount": updated.actual_amount,
                "committed_amount": updated.committed_amount,
                "version": updated.version,
            })
            return BudgetUpdateResult(
                status=BudgetUpdateStatus.UPDATED, item_id=item_id, item=updated,
            )

    # =========================================================================
    # Periods
    # =========================================================================

    def create_period(
        self,
        name: str,
        start_date: datetime,
        end_date: datetime,
        *,
        created_by: str = "system",
        is_active: bool = True,
        is_locked: bool = False,
        carry_forward: bool = False,
        period_id: str | None = None,
    ) -> PeriodCreationResult:
        """
        Create a period and make it current.

        With ``carry_forward`` the current period's items (and allocations)
        are copied into the new period with the same budgets and zero spend.
        """
        start = _as_utc(start_date)
        end = _as_utc(end_date)
        with self._lock, LogContext.bind(actor_id=created_by):
            current = self.current_period
            if end <= start:
                error: BudgetKernelError = InvalidPeriodError(start.isoformat(), end.isoformat())
                status = PeriodCreationStatus.INVALID_PERIOD
            elif period_id is not None and period_id in self._periods:
                error = DuplicatePeriodError(period_id)
                status = PeriodCreationStatus.DUPLICATE_PERIOD
            elif current is not None and current.is_locked and current.overlaps(
                BudgetPeriod(id="", name=name, start_date=start, end_date=end)
            ):
                error = PeriodLockedError(current.id, "create an overlapping period")
                status = PeriodCreationStatus.PERIOD_LOCKED
            else:
                return self._open_period(
                    name=name,
                    start=start,
                    end=end,
                    created_by=created_by,
                    is_active=is_active,
                    is_locked=is_locked,
                    carry_forward=carry_forward,
                    period_id=period_id or f"period-{uuid4().hex[:12]}",
                    previous=current,
                )

        logger.warning("budget_period_creation_rejected", extra={
            "error_code": error.code,
            "reason": str(error),
            "start_date": start,
            "end_date": end,
        })
        return PeriodCreationResult(status=status, error=error)

    def lock_period(self, actor: str = "system") -> BudgetPeriod:
        """
        Raises:
            BudgetNotInitializedError: when there is no current period.
        """
        return self._set_locked(True, actor)

    def unlock_period(self, actor: str = "system") -> BudgetPeriod:
        return self._set_locked(False, actor)

    def auto_lock_if_due(self) -> bool:
        """
        Lock the current period once ``auto_lock_period`` days have passed
        since its end.  Returns True if this call locked it.
        """
        with self._lock:
            period = self.current_period
            if period is None or period.is_locked:
                return False
            due = period.end_date + timedelta(days=self._config.settings.auto_lock_period)
            if self._clock.now() < due:
                return False
            self._set_locked(True, "system")
            return True

    # =========================================================================
    # Approvals
    # =========================================================================

    def request_budget_increase(
        self,
        item_id: str,
        requested_amount: Any,
        requested_by: str,
        comments: str | None = None,
    ) -> BudgetApproval:
        """
        Open a pending request to raise an item's budget.

        Raises:
            ItemNotFoundError: unknown item.
            InvalidAmountError: non-positive or invalid amount.
            PeriodLockedError: the item's period is locked.
        """
        with self._lock, LogContext.bind(item_id=item_id, actor_id=requested_by):
            item = self._require_item(item_id)
            self._require_unlocked(item.budget_period_id, "request budget increase")
            amount = coerce_amount("requested_amount", requested_amount)
            if amount == ZERO:
                raise InvalidAmountError("requested_amount", requested_amount, "must be positive")

            approval = BudgetApproval(
                id=f"approval-{uuid4().hex[:12]}",
                budget_item_id=item.id,
                requested_amount=amount,
                approved_amount=ZERO,
                status=ApprovalStatus.PENDING,
                requested_by=requested_by,
                requested_date=self._clock.now(),
                comments=comments,
            )
            with self._transaction():
                self._approvals[approval.id] = approval

        logger.info("budget_increase_requested", extra={
            "approval_id": approval.id,
            "requested_amount": amount,
            "require_approval_for_over_budget": (
                self._config.settings.require_approval_for_over_budget
            ),
        })
        return approval

    def decide_approval(
        self,
        approval_id: str,
        approved_amount: Any,
        approver: str,
        comments: str | None = None,
    ) -> BudgetApproval:
        """
        Decide a pending request.  The approved amount is added to the
        item's budget; ``0`` rejects the request and an amount below the
        request partially approves it.

        Raises:
            ApprovalNotFoundError: unknown approval id.
            ApprovalAlreadyDecidedError: approval is not pending.
            InvalidAmountError: invalid amount or more than requested.
            PeriodLockedError: the item's period is locked.
        """
        with self._lock, LogContext.bind(actor_id=approver):
            approval = self._approvals.get(approval_id)
            if approval is None:
                raise ApprovalNotFoundError(approval_id)
            if approval.status is not ApprovalStatus.PENDING:
                raise ApprovalAlreadyDecidedError(approval_id, approval.status.value)
            amount = coerce_amount("approved_amount", approved_amount)
            if amount > approval.requested_amount:
                raise InvalidAmountError("approved_amount", approved_amount, "exceeds requested amount")
            item = self._require_item(approval.budget_item_id)
            self._require_unlocked(item.budget_period_id, "decide budget approval")

            now = self._clock.now()
            decided = approval.decided(
                approved_amount=amount, approver=approver, decided_at=now, comments=comments,
            )
            with self._transaction():
                self._approvals[decided.id] = decided
                if amount > ZERO:
                    self._store_item(item.with_amounts(
                        last_updated=now,
                        updated_by=approver,
                        budgeted_amount=item.budgeted_amount + amount,
                    ))

        logger.info("budget_approval_decided", extra={
            "approval_id": approval_id,
            "item_id": decided.budget_item_id,
            "status": decided.status.value,
            "approved_amount": amount,
        })
        return decided

    # =========================================================================
    # Internal
    # =========================================================================

    def _current_snapshot(self) -> tuple[BudgetPeriod | None, list[BudgetItem]]:
        with self._lock:
            if self._current_period_id is None:
                return None, []
            period = self._periods[self._current_period_id]
            items = [i for i in self._items.values() if i.budget_period_id == period.id]
            return period, items

    def _forecast(self, period: BudgetPeriod, items: Iterable[BudgetItem]) -> list[BudgetForecast]:
        return self._forecaster.forecast(
            items=list(items),
            period_start=period.start_date,
            period_end=period.end_date,
            as_of=self._clock.now(),
        )

    def _require_initialized(self, operation: str) -> None:
        if self._current_period_id is None:
            raise BudgetNotInitializedError(operation)

    def _require_item(self, item_id: str) -> BudgetItem:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def _require_unlocked(self, period_id: str, operation: str) -> None:
        period = self._periods.get(period_id)
        if period is not None and period.is_locked:
            raise PeriodLockedError(period_id, operation)

    def _check_over_budget(self, item: BudgetItem, new_actual: Decimal) -> None:
        settings = self._config.settings
        if settings.allow_over_budget:
            return
        ceiling = item.budgeted_amount * (1 + settings.over_budget_threshold / HUNDRED)
        if new_actual > ceiling:
            raise OverBudgetError(item.id, new_actual, ceiling)

    def _store_item(self, item: BudgetItem) -> None:
        previous = self._items.get(item.id)
        self._items[item.id] = item
        if previous is not None and previous.budgeted_amount != item.budgeted_amount:
            for allocation in list(self._allocations.values()):
                if allocation.budget_item_id == item.id:
                    self._allocations[allocation.id] = allocation.rebased(
                        item_budget=item.budgeted_amount,
                    )

    def _charge_department(self, item: BudgetItem, department: str, spend: Decimal) -> None:
        allocation_id = f"allocation-{item.id}-{department}"
        allocation = self._allocations.get(allocation_id)
        if allocation is None:
            allocation = BudgetAllocation.build(
                budget_item_id=item.id,
                department=department,
                allocated_amount=ZERO,
                used_amount=spend,
                item_budget=item.budgeted_amount,
            )
        else:
            allocation = allocation.rebased(
                item_budget=item.budgeted_amount,
                used_amount=allocation.used_amount + spend,
            )
        self._allocations[allocation.id] = allocation

    def _open_period(
        self,
        *,
        name: str,
        start: datetime,
        end: datetime,
        created_by: str,
        is_active: bool,
        is_locked: bool,
        carry_forward: bool,
        period_id: str,
        previous: BudgetPeriod | None,
    ) -> PeriodCreationResult:
        now = self._clock.now()
        period = BudgetPeriod(
            id=period_id,
            name=name,
            start_date=start,
            end_date=end,
            is_active=is_active,
            is_locked=is_locked,
            created_by=created_by,
            created_at=now,
        )

        carried = 0
        with self._transaction():
            if carry_forward and previous is not None:
                for item in [i for i in self._items.values() if i.budget_period_id == previous.id]:
                    copy = BudgetItem.build(
                        category_id=item.category_id,
                        category_name=item.category_name,
                        budget_period_id=period.id,
                        budgeted_amount=item.budgeted_amount,
                        actual_amount=ZERO,
                        committed_amount=ZERO,
                        last_updated=now,
                        updated_by=created_by,
                    )
                    self._items[copy.id] = copy
                    for allocation in [
                        a for a in self._allocations.values() if a.budget_item_id == item.id
                    ]:
                        moved = BudgetAllocation.build(
                            budget_item_id=copy.id,
                            department=allocation.department,
                            allocated_amount=allocation.allocated_amount,
                            used_amount=ZERO,
                            item_budget=copy.budgeted_amount,
                        )
                        self._allocations[moved.id] = moved
                    carried += 1

            self._periods[period.id] = period
            self._current_period_id = period.id

        logger.info("budget_period_created", extra={
            "period_id": period.id,
            "period_name": period.name,
            "start_date": period.start_date,
            "end_date": period.end_date,
            "carried_item_count": carried,
            "previous_period_id": previous.id if previous else None,
        })
        return PeriodCreationResult(status=PeriodCreationStatus.CREATED, period=period)

    def _set_locked(self, locked: bool, actor: str) -> BudgetPeriod:
        with self._lock:
            self._require_initialized("lock_period" if locked else "unlock_period")
            period = dataclasses.replace(self.current_period, is_locked=locked)
            with self._transaction():
                self._periods[period.id] = period
        logger.info(
            "budget_period_locked" if locked else "budget_period_unlocked",
            extra={"period_id": period.id, "actor": actor},
        )
        return period

    def _snapshot(self) -> BudgetState:
        return BudgetState(
            periods=tuple(self._periods.values()),
            current_period_id=self._current_period_id,
            items=tuple(self._items.values()),
            allocations=tuple(self._allocations.values()),
            approvals=tuple(self._approvals.values()),
        )

    def _apply(self, state: BudgetState) -> None:
        self._periods = {p.id: p for p in state.periods}
        self._current_period_id = state.current_period_id
        self._items = {i.id: i for i in state.items}
        self._allocations = {a.id: a for a in state.allocations}
        self._approvals = {a.id: a for a in state.approvals}

    @contextmanager
    def _transaction(self) -> Generator[None, None, None]:
        """
        Save the state mutated inside the block, restoring the prior
        in-memory state if the block or the save raises.
        """
        saved = (
            dict(self._periods),
            self._current_period_id,
            dict(self._items),
            dict(self._allocations),
            dict(self._approvals),
        )
        try:
            yield
            self._repository.save(self._snapshot())
        except Exception:
            (
                self._periods,
                self._current_period_id,
                self._items,
                self._allocations,
                self._approvals,
            ) = saved
            logger.warning("budget_state_rolled_back", exc_info=True)
            raise
