"""Input validation package."""

from src.validation.validator import (
    BudgetValidationError,
    ExpenseValidationError,
    ExpenseValidator,
    MAX_AMOUNT,
    ValidationError,
    parse_amount,
    parse_category,
    parse_date,
)

__all__ = [
    "BudgetValidationError",
    "ExpenseValidationError",
    "ExpenseValidator",
    "MAX_AMOUNT",
    "ValidationError",
    "parse_amount",
    "parse_category",
    "parse_date",
]
