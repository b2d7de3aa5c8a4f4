"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from src.models.expense import (
    BUDGETS_COLLECTION,
    EXPENSES_COLLECTION,
    Budget,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseView,
    SortDirection,
    SortKey,
    SortOption,
    ValidationIssue,
    ViewState,
    period_key,
)
from src.models.session import (
    Identity,
    InvalidTransitionError,
    SessionState,
    SessionStatus,
    transition,
)
from src.models.notification import (
    AddExpenseOutcome,
    Notification,
    NotificationLevel,
    Operation,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "BUDGETS_COLLECTION",
    "EXPENSES_COLLECTION",
    "Budget",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseView",
    "SortDirection",
    "SortKey",
    "SortOption",
    "ValidationIssue",
    "ViewState",
    "period_key",
    # Session models
    "Identity",
    "InvalidTransitionError",
    "SessionState",
    "SessionStatus",
    "transition",
    # Notifications
    "AddExpenseOutcome",
    "Notification",
    "NotificationLevel",
    "Operation",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
