"""Expense feed package."""

from src.feed.expense_feed import OWNER_FIELD, ExpenseFeed

__all__ = ["OWNER_FIELD", "ExpenseFeed"]
