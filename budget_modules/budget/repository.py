"""
Budget State Repository (``budget_modules.budget.repository``).

Responsibility
--------------
Persist and restore everything a ``BudgetAnalysisEngine`` owns: periods,
the current period marker, items, allocations and approvals.

Architecture position
---------------------
**Modules layer** -- persistence boundary.  The engine depends only on the
``BudgetRepository`` interface; ``InMemoryBudgetRepository`` is the
default, ``SqlAlchemyBudgetRepository`` stores state in the tables defined
in ``budget_modules.budget.orm``.

Invariants enforced
-------------------
* ``save`` is whole-state: after it returns, ``load`` yields exactly the
  saved state (rows no longer present in the state are removed).
* Each ``save`` runs in one transaction (``session_scope``); a failure
  rolls the whole snapshot back.

Failure modes
-------------
* Database errors propagate as ``sqlalchemy.exc.SQLAlchemyError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from budget_kernel.db.engine import session_scope
from budget_kernel.logging_config import get_logger
from budget_modules.budget.models import (
    BudgetAllocation,
    BudgetApproval,
    BudgetItem,
    BudgetPeriod,
)
from budget_modules.budget.orm import (
    BudgetAllocationModel,
    BudgetApprovalModel,
    BudgetItemModel,
    BudgetPeriodModel,
)

logger = get_logger("modules.budget.repository")


@dataclass(frozen=True)
class BudgetState:
    """Immutable snapshot of an engine's data."""

    periods: tuple[BudgetPeriod, ...]
    current_period_id: str | None
    items: tuple[BudgetItem, ...]
    allocations: tuple[BudgetAllocation, ...] = ()
    approvals: tuple[BudgetApproval, ...] = ()

    @property
    def current_period(self) -> BudgetPeriod | None:
        for p in self.periods:
            if p.id == self.current_period_id:
                return p
        return None


class BudgetRepository(ABC):
    """Load/save contract for engine state."""

    @abstractmethod
    def load(self) -> BudgetState | None:
        """Return the last saved state, or None if nothing was saved."""

    @abstractmethod
    def save(self, state: BudgetState) -> None:
        """Replace the stored state with ``state``."""


class InMemoryBudgetRepository(BudgetRepository):
    """Keeps the latest snapshot in process memory."""

    def __init__(self, state: BudgetState | None = None):
        self._state = state

    def load(self) -> BudgetState | None:
        return self._state

    def save(self, state: BudgetState) -> None:
        self._state = state


class SqlAlchemyBudgetRepository(BudgetRepository):
    """
    Relational persistence through SQLAlchemy.

    Rows are upserted with ``Session.merge`` and rows absent from the new
    state are deleted, children before parents.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def load(self) -> BudgetState | None:
        with session_scope(self._session_factory) as session:
            period_rows = session.scalars(
                select(BudgetPeriodModel).order_by(BudgetPeriodModel.start_date, BudgetPeriodModel.id)
            ).all()
            if not period_rows:
                return None

            current_id = next((p.id for p in period_rows if p.is_current), None)
            item_rows = session.scalars(
                select(BudgetItemModel).order_by(BudgetItemModel.budget_period_id, BudgetItemModel.category_id)
            ).all()
            items = tuple(r.to_dto() for r in item_rows)
            budgets = {i.id: i.budgeted_amount for i in items}

            allocation_rows = session.scalars(
                select(BudgetAllocationModel).order_by(BudgetAllocationModel.id)
            ).all()
            approval_rows = session.scalars(
                select(BudgetApprovalModel).order_by(BudgetApprovalModel.requested_date, BudgetApprovalModel.id)
            ).all()

            state = BudgetState(
                periods=tuple(p.to_dto() for p in period_rows),
                current_period_id=current_id,
                items=items,
                allocations=tuple(
                    a.to_dto(budgets.get(a.budget_item_id, Decimal("0"))) for a in allocation_rows
                ),
                approvals=tuple(a.to_dto() for a in approval_rows),
            )

        logger.info("budget_state_loaded", extra={
            "period_count": len(state.periods),
            "item_count": len(state.items),
            "current_period_id": state.current_period_id,
        })
        return state

    def save(self, state: BudgetState) -> None:
        with session_scope(self._session_factory) as session:
            self._delete_stale(session, state)
            for period in state.periods:
                session.merge(
                    BudgetPeriodModel.from_dto(period, is_current=period.id == state.current_period_id)
                )
            session.flush()
            for item in state.items:
                session.merge(BudgetItemModel.from_dto(item))
            session.flush()
            for allocation in state.allocations:
                session.merge(BudgetAllocationModel.from_dto(allocation))
            for approval in state.approvals:
                session.merge(BudgetApprovalModel.from_dto(approval))

        logger.debug("budget_state_saved", extra={
            "period_count": len(state.periods),
            "item_count": len(state.items),
            "allocation_count": len(state.allocations),
            "approval_count": len(state.approvals),
        })

    @staticmethod
    def _delete_stale(session: Session, state: BudgetState) -> None:
        for model, keep in (
            (BudgetApprovalModel, [a.id for a in state.approvals]),
            (BudgetAllocationModel, [a.id for a in state.allocations]),
            (BudgetItemModel, [i.id for i in state.items]),
            (BudgetPeriodModel, [p.id for p in state.periods]),
        ):
            session.execute(delete(model).where(model.id.not_in(keep)))
