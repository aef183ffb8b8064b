"""
SQLAlchemy ORM persistence models for the Budget module.

Responsibility
--------------
Provide database-backed persistence for budget periods, budget items,
departmental allocations and budget increase approvals.
``BudgetVariance`` and ``BudgetForecast`` are computed/transient DTOs and
do not require ORM persistence.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``SqlAlchemyBudgetRepository``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(50) for readability and portability.
* Only base amounts are stored.  Available amount, variance and the
  over-budget flag are recomputed by ``to_dto`` so a row can never hold
  derived figures that disagree with its base amounts.
* ``BudgetItemModel`` uniqueness: one item per period + category.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; every stored instant is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# BudgetPeriodModel
# ---------------------------------------------------------------------------


class BudgetPeriodModel(TrackedBase):
    """
    A budget period.

    Maps to the ``BudgetPeriod`` DTO in ``budget_modules.budget.models``.
    ``is_current`` marks the single period the engine is working in.
    """

    __tablename__ = "budget_periods"

    __table_args__ = (
        Index("idx_budget_period_start", "start_date"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[datetime]
    end_date: Mapped[datetime]
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    opened_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self):
        from budget_modules.budget.models import BudgetPeriod

        return BudgetPeriod(
            id=self.id,
            name=self.name,
            start_date=_aware(self.start_date),
            end_date=_aware(self.end_date),
            is_active=self.is_active,
            is_locked=self.is_locked,
            created_by=self.created_by,
            created_at=_aware(self.opened_at),
        )

    @classmethod
    def from_dto(cls, dto, is_current: bool = False) -> "BudgetPeriodModel":
        return cls(
            id=dto.id,
            name=dto.name,
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
            is_locked=dto.is_locked,
            is_current=is_current,
            opened_at=dto.created_at,
            created_by=dto.created_by,
        )

    def __repr__(self) -> str:
        lock = " locked" if self.is_locked else ""
        return f"<BudgetPeriodModel {self.id}{lock}>"


# ---------------------------------------------------------------------------
# BudgetItemModel
# ---------------------------------------------------------------------------


class BudgetItemModel(TrackedBase):
    """
    Budgeted-vs-actual record for one category in one period.

    Maps to the ``BudgetItem`` DTO in ``budget_modules.budget.models``.
    """

    __tablename__ = "budget_items"

    __table_args__ = (
        UniqueConstraint("budget_period_id", "category_id", name="uq_budget_item_period_category"),
        Index("idx_budget_item_period", "budget_period_id"),
    )

    id: Mapped[str] = mapped_column(String(150), primary_key=True)
    budget_period_id: Mapped[str] = mapped_column(
        ForeignKey("budget_periods.id"), nullable=False,
    )
    category_id: Mapped[str] = mapped_column(String(50), nullable=False)
    category_name: Mapped[str] = mapped_column(String(255), nullable=False)
    budgeted_amount: Mapped[Decimal]
    actual_amount: Mapped[Decimal]
    committed_amount: Mapped[Decimal]
    last_updated: Mapped[datetime]
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def to_dto(self):
        from budget_modules.budget.models import BudgetItem

        return BudgetItem.build(
            item_id=self.id,
            category_id=self.category_id,
            category_name=self.category_name,
            budget_period_id=self.budget_period_id,
            budgeted_amount=self.budgeted_amount,
            actual_amount=self.actual_amount,
            committed_amount=self.committed_amount,
            last_updated=_aware(self.last_updated),
            updated_by=self.updated_by or self.created_by,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto) -> "BudgetItemModel":
        return cls(
            id=dto.id,
            budget_period_id=dto.budget_period_id,
            category_id=dto.category_id,
            category_name=dto.category_name,
            budgeted_amount=dto.budgeted_amount,
            actual_amount=dto.actual_amount,
            committed_amount=dto.committed_amount,
            last_updated=dto.last_updated,
            version=dto.version,
            created_by=dto.updated_by,
            updated_by=dto.updated_by,
        )

    def __repr__(self) -> str:
        return f"<BudgetItemModel {self.id} v{self.version}>"


# ---------------------------------------------------------------------------
# BudgetAllocationModel
# ---------------------------------------------------------------------------


class BudgetAllocationModel(TrackedBase):
    """
    Departmental share of a budget item.

    Maps to the ``BudgetAllocation`` DTO.  Remaining amount and percentage
    depend on the item's budget and are recomputed on load.
    """

    __tablename__ = "budget_allocations"

    __table_args__ = (
        UniqueConstraint("budget_item_id", "department", name="uq_budget_allocation_item_dept"),
        Index("idx_budget_allocation_item", "budget_item_id"),
    )

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    budget_item_id: Mapped[str] = mapped_column(ForeignKey("budget_items.id"), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    allocated_amount: Mapped[Decimal]
    used_amount: Mapped[Decimal]

    def to_dto(self, item_budget: Decimal):
        from budget_modules.budget.models import BudgetAllocation

        return BudgetAllocation.build(
            budget_item_id=self.budget_item_id,
            department=self.department,
            allocated_amount=self.allocated_amount,
            used_amount=self.used_amount,
            item_budget=item_budget,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = "system") -> "BudgetAllocationModel":
        return cls(
            id=dto.id,
            budget_item_id=dto.budget_item_id,
            department=dto.department,
            allocated_amount=dto.allocated_amount,
            used_amount=dto.used_amount,
            created_by=created_by,
        )

    def __repr__(self) -> str:
        return f"<BudgetAllocationModel {self.budget_item_id} {self.department}>"


# ---------------------------------------------------------------------------
# BudgetApprovalModel
# ---------------------------------------------------------------------------


class BudgetApprovalModel(TrackedBase):
    """
    A budget increase request and its decision.

    Maps to the ``BudgetApproval`` DTO.
    """

    __tablename__ = "budget_approvals"

    __table_args__ = (
        Index("idx_budget_approval_item", "budget_item_id"),
        Index("idx_budget_approval_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    budget_item_id: Mapped[str] = mapped_column(ForeignKey("budget_items.id"), nullable=False)
    requested_amount: Mapped[Decimal]
    approved_amount: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_date: Mapped[datetime]
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_date: Mapped[datetime | None] = mapped_column(nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from budget_modules.budget.models import ApprovalStatus, BudgetApproval

        return BudgetApproval(
            id=self.id,
            budget_item_id=self.budget_item_id,
            requested_amount=self.requested_amount,
            approved_amount=self.approved_amount,
            status=ApprovalStatus(self.status),
            requested_by=self.requested_by,
            requested_date=_aware(self.requested_date),
            approved_by=self.approved_by,
            approved_date=_aware(self.approved_date),
            comments=self.comments,
        )

    @classmethod
    def from_dto(cls, dto) -> "BudgetApprovalModel":
        from budget_modules.budget.models import ApprovalStatus

        return cls(
            id=dto.id,
            budget_item_id=dto.budget_item_id,
            requested_amount=dto.requested_amount,
            approved_amount=dto.approved_amount,
            status=dto.status.value if isinstance(dto.status, ApprovalStatus) else dto.status,
            requested_by=dto.requested_by,
            requested_date=dto.requested_date,
            approved_by=dto.approved_by,
            approved_date=dto.approved_date,
            comments=dto.comments,
            created_by=dto.requested_by,
            updated_by=dto.approved_by,
        )

    def __repr__(self) -> str:
        return f"<BudgetApprovalModel {self.id} [{self.status}]>"
