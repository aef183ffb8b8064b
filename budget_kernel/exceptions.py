"""
Typed Exception Hierarchy for the budget kernel.

Every error has a typed exception class, a class-level ``code`` attribute
(machine-readable, API-safe) and carries its context as attributes rather
than only inside the message string.

    BudgetKernelError (base)
    |
    +-- BudgetStateError
    |   +-- BudgetNotInitializedError
    |
    +-- ItemError
    |   +-- ItemNotFoundError
    |   +-- InvalidFieldError
    |
    +-- AmountError
    |   +-- InvalidAmountError
    |   +-- OverBudgetError
    |
    +-- PeriodError
    |   +-- InvalidPeriodError
    |   +-- DuplicatePeriodError
    |   +-- PeriodLockedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ApprovalError
    |   +-- ApprovalNotFoundError
    |   +-- ApprovalAlreadyDecidedError
    |
    +-- ConfigurationError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
State           | NOT_INITIALIZED             | Report/analysis before seeding
Item            | ITEM_NOT_FOUND              | Mutation target id does not exist
                | INVALID_FIELD               | Unknown or derived field in an update
Amount          | INVALID_AMOUNT              | Negative, NaN, infinite or non-numeric
                | OVER_BUDGET                 | Spend beyond the tolerated ceiling
Period          | INVALID_PERIOD              | end_date <= start_date
                | DUPLICATE_PERIOD            | New period reuses an existing period id
                | PERIOD_LOCKED               | Mutation against a locked period
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | expected_version does not match
Approval        | APPROVAL_NOT_FOUND          | Approval id does not exist
                | APPROVAL_ALREADY_DECIDED    | Approval is no longer pending
Config          | INVALID_CONFIGURATION       | YAML config failed validation

Mutations on ``BudgetAnalysisEngine`` return these exceptions inside a
typed result instead of raising them; see ``BudgetUpdateResult``.
"""


class BudgetKernelError(Exception):
    """Base exception for all budget kernel errors."""

    code: str = "BUDGET_KERNEL_ERROR"


# State


class BudgetStateError(BudgetKernelError):
    code: str = "BUDGET_STATE_ERROR"


class BudgetNotInitializedError(BudgetStateError):
    """Report or analysis requested before the engine was seeded."""

    code: str = "NOT_INITIALIZED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Budget data not initialized (operation: {operation})")


# Items


class ItemError(BudgetKernelError):
    code: str = "ITEM_ERROR"


class ItemNotFoundError(ItemError):
    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Budget item not found: {item_id}")


class InvalidFieldError(ItemError):
    """Update touches a field that is unknown or derived."""

    code: str = "INVALID_FIELD"

    def __init__(self, item_id: str, field_names: list[str]):
        self.item_id = item_id
        self.field_names = field_names
        super().__init__(
            f"Cannot update field(s) {', '.join(field_names)} on budget item {item_id}"
        )


# Amounts


class AmountError(BudgetKernelError):
    code: str = "AMOUNT_ERROR"


class InvalidAmountError(AmountError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, field_name: str, value: object, reason: str):
        self.field_name = field_name
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount for {field_name}: {value!r} ({reason})")


class OverBudgetError(AmountError):
    """Spend would push an item past its tolerated over-budget ceiling."""

    code: str = "OVER_BUDGET"

    def __init__(self, item_id: str, attempted_actual: object, ceiling: object):
        self.item_id = item_id
        self.attempted_actual = str(attempted_actual)
        self.ceiling = str(ceiling)
        super().__init__(
            f"Spend on budget item {item_id} would reach {attempted_actual}, "
            f"above the allowed ceiling of {ceiling}"
        )


# Periods


class PeriodError(BudgetKernelError):
    code: str = "PERIOD_ERROR"


class InvalidPeriodError(PeriodError):
    code: str = "INVALID_PERIOD"

    def __init__(self, start_date: str, end_date: str):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Period end {end_date} must be after period start {start_date}"
        )


class DuplicatePeriodError(PeriodError):
    code: str = "DUPLICATE_PERIOD"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Budget period {period_id} already exists")


class PeriodLockedError(PeriodError):
    """Mutation attempted against a locked budget period."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, period_id: str, operation: str):
        self.period_id = period_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: budget period {period_id} is locked")


# Concurrency


class ConcurrencyError(BudgetKernelError):
    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, item_id: str, expected_version: int, actual_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on budget item {item_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


# Approvals


class ApprovalError(BudgetKernelError):
    code: str = "APPROVAL_ERROR"


class ApprovalNotFoundError(ApprovalError):
    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Budget approval not found: {approval_id}")


class ApprovalAlreadyDecidedError(ApprovalError):
    code: str = "APPROVAL_ALREADY_DECIDED"

    def __init__(self, approval_id: str, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(f"Budget approval {approval_id} already {status}")


# Configuration


class ConfigurationError(BudgetKernelError):
    code: str = "INVALID_CONFIGURATION"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid budget configuration in {source}: {reason}")
