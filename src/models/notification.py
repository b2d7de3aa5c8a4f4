"""
User-facing notification models.

The orchestrator never renders anything. It records what the user should be
told and the presentation layer decides how to show it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.models.expense import Expense


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Operation(str, Enum):
    """Operations that carry an in-progress flag."""
    SIGN_UP = "sign_up"
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"
    RESET_PASSWORD = "reset_password"
    RESEND_VERIFICATION = "resend_verification"
    REFRESH_VERIFICATION = "refresh_verification"
    DELETE_ACCOUNT = "delete_account"
    ADD_EXPENSE = "add_expense"
    DELETE_EXPENSE = "delete_expense"
    SAVE_BUDGET = "save_budget"
    DELETE_BUDGET = "delete_budget"


class Notification(BaseModel):
    """A message for the user."""

    level: NotificationLevel
    message: str = Field(..., min_length=1)
    code: Optional[str] = Field(
        default=None,
        description="Machine-readable reason, e.g. 'not-verified' or 'budget-exceeded'"
    )
    field: Optional[str] = Field(
        default=None,
        description="Form field the message belongs to, for validation errors"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AddExpenseOutcome(BaseModel):
    """Result of a successful add."""

    expense: Expense
    budget_exceeded: bool = False
