"""
Budget Modules.

Thin orchestration layers over the budget kernel and engines.
Each module contains:
- Domain models (the nouns)
- Seed catalog and actuals sources
- Repository and ORM persistence
- A service facade

Modules:
- Budget: operating-expense budgets, variance, forecast, approvals

Actual arithmetic lives in the engines.
"""

from budget_modules import budget

__all__ = ["budget"]
