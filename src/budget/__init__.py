"""Budget storage package."""

from src.budget.adapter import BudgetStore

__all__ = ["BudgetStore"]
