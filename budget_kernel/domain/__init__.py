"""Pure domain primitives shared by the budget engines and services."""

from budget_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
