"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Convert cleanly to and from store documents
4. Feed the view engine without further checks

DESIGN DECISION: Money is always Decimal. Floats are only accepted at the
edges (store documents, user input) and converted via str() so that
0.1 + 0.2 style drift never reaches a total or a budget comparison.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


EXPENSES_COLLECTION = "expenses"
BUDGETS_COLLECTION = "budgets"

MAX_DESCRIPTION_LENGTH = 500


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: The set is closed. It is used both to validate new
    expenses and to group totals, so free text would split one category
    into several buckets.
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    SHOPPING = "Shopping"
    HEALTHCARE = "Healthcare"
    OTHER = "Other"


class SortKey(str, Enum):
    """Field the expense list is ordered by."""
    DATE = "date"
    AMOUNT = "amount"


class SortDirection(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


class SortOption(str, Enum):
    """
    The sort presets offered in the UI.

    Each preset is just a (key, direction) pair.
    """
    NEWEST = "newest"
    OLDEST = "oldest"
    LOWEST_AMOUNT = "low"
    HIGHEST_AMOUNT = "high"

    @property
    def label(self) -> str:
        return {
            SortOption.NEWEST: "Newest First",
            SortOption.OLDEST: "Oldest First",
            SortOption.LOWEST_AMOUNT: "Lowest Amount",
            SortOption.HIGHEST_AMOUNT: "Highest Amount",
        }[self]

    @property
    def key(self) -> SortKey:
        if self in (SortOption.NEWEST, SortOption.OLDEST):
            return SortKey.DATE
        return SortKey.AMOUNT

    @property
    def direction(self) -> SortDirection:
        if self in (SortOption.OLDEST, SortOption.LOWEST_AMOUNT):
            return SortDirection.ASC
        return SortDirection.DESC


def period_key(day: dt.date) -> str:
    """Calendar-month bucket of a date, e.g. '2024-03'."""
    return f"{day.year:04d}-{day.month:02d}"


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Raw expense input as typed by the user.

    CRITICAL: Nothing here is trusted. Every field is optional and loosely
    typed so that the validator, not pydantic, decides what is wrong and
    reports it per field.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Any] = None
    description: Optional[str] = None
    category: Optional[Any] = None
    date: Optional[Any] = None


class Expense(BaseModel):
    """
    A single expense record as confirmed by the remote store.

    Expenses are never edited in place. They are created and deleted only.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned document id"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount spent"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="What the money was spent on"
    )
    category: ExpenseCategory = Field(
        ...,
        description="Expense category"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the expense (no time of day)"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Identity id of the owner"
    )

    @property
    def period(self) -> str:
        return period_key(self.date)

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored document shape (the id lives outside the document)."""
        return {
            "amount": str(self.amount),
            "description": self.description,
            "category": self.category.value,
            "date": self.date.isoformat(),
            "userId": self.owner_id,
        }

    @classmethod
    def from_document(cls, document_id: str, data: dict[str, Any]) -> "Expense":
        """
        Build an Expense from a stored document.

        Timestamps written by other clients are cut down to their date part.
        """
        raw_date = data.get("date")
        if isinstance(raw_date, dt.datetime):
            day = raw_date.date()
        elif isinstance(raw_date, dt.date):
            day = raw_date
        else:
            day = dt.date.fromisoformat(str(raw_date)[:10])

        return cls(
            id=document_id,
            amount=Decimal(str(data.get("amount"))),
            description=data.get("description"),
            category=ExpenseCategory(data.get("category")),
            date=day,
            owner_id=data.get("userId"),
        )


class Budget(BaseModel):
    """
    Monthly spending ceiling for one owner.

    Keyed by owner AND period. A missing document means "no budget",
    which is not the same thing as a budget of zero.
    """
    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(..., min_length=1)
    period: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Calendar month, YYYY-MM"
    )
    amount: Decimal = Field(..., ge=0)

    @staticmethod
    def document_key(owner_id: str, period: str) -> str:
        return f"{owner_id}_{period}"

    @property
    def key(self) -> str:
        return self.document_key(self.owner_id, self.period)

    def to_document(self) -> dict[str, Any]:
        return {
            "userId": self.owner_id,
            "period": self.period,
            "amount": str(self.amount),
        }


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


# =============================================================================
# VIEW MODELS
# =============================================================================

class ViewState(BaseModel):
    """
    What the user asked to see.

    category=None means "all categories".
    """
    model_config = ConfigDict(frozen=True)

    category: Optional[ExpenseCategory] = None
    sort_key: SortKey = SortKey.DATE
    sort_direction: SortDirection = SortDirection.DESC

    @classmethod
    def from_option(
        cls,
        option: SortOption,
        category: Optional[ExpenseCategory] = None,
    ) -> "ViewState":
        return cls(
            category=category,
            sort_key=option.key,
            sort_direction=option.direction,
        )


class ExpenseView(BaseModel):
    """
    Everything the presentation layer renders.

    Recomputed from the cached records on every change, never stored.
    """
    model_config = ConfigDict(frozen=True)

    records: tuple[Expense, ...] = ()
    total: Decimal = Decimal("0")
    visible_total: Decimal = Decimal("0")
    category_totals: dict[ExpenseCategory, Decimal] = Field(default_factory=dict)

    # Budget for the current period
    budget: Optional[Decimal] = None
    budget_period: Optional[str] = None
    period_total: Decimal = Decimal("0")

    @property
    def budget_remaining(self) -> Optional[Decimal]:
        if self.budget is None:
            return None
        return self.budget - self.period_total

    @property
    def is_over_budget(self) -> bool:
        return self.budget is not None and self.period_total > self.budget
