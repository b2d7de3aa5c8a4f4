"""
Input Validation

DESIGN DECISION: Validation runs locally, before any collaborator is called.
A rejected expense or budget never costs a network round-trip.

Checks:
- Amount present, numeric, finite, not negative and below MAX_AMOUNT
- Description present (after trimming) and at most MAX_DESCRIPTION_LENGTH
- Category is one of the fixed categories
- Date present and a real calendar date

IMPORTANT: Validation NEVER silently fixes issues.
Every problem is reported per field so the form can show it next to the
input that caused it.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from src.models.expense import (
    MAX_DESCRIPTION_LENGTH,
    ExpenseCategory,
    ExpenseDraft,
    ValidationIssue,
)


# Keeps every amount and every total representable at cent precision
MAX_AMOUNT = Decimal("1000000000000")


class ValidationError(Exception):
    """Base exception for rejected input. Carries field-level issues."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class ExpenseValidationError(ValidationError):
    """An expense draft failed validation."""
    pass


class BudgetValidationError(ValidationError):
    """A budget amount failed validation."""
    pass


def parse_amount(value: Any, field: str = "amount") -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
    """
    Parse a money amount.

    Returns (amount, None) on success or (None, issue) on failure.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, ValidationIssue(
            field=field,
            issue_type="missing",
            message="Amount is required",
        )

    if isinstance(value, bool):
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_format",
            message="Amount must be a number",
        )

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_format",
            message="Amount must be a number",
            suggested_fix="Use digits and an optional decimal point, e.g. 12.50",
        )

    if not amount.is_finite():
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message="Amount must be a finite number",
        )

    if amount < 0:
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message="Amount cannot be negative",
        )

    if amount >= MAX_AMOUNT:
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message="Amount is too large",
            suggested_fix=f"Enter less than {MAX_AMOUNT:,}",
        )

    if amount.is_zero():
        amount = abs(amount)

    return amount, None


def parse_date(value: Any) -> tuple[Optional[date], Optional[ValidationIssue]]:
    """Parse a calendar date from a date, datetime or ISO string."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, ValidationIssue(
            field="date",
            issue_type="missing",
            message="Date is required",
        )

    if isinstance(value, datetime):
        return value.date(), None
    if isinstance(value, date):
        return value, None

    try:
        return date.fromisoformat(str(value).strip()), None
    except ValueError:
        return None, ValidationIssue(
            field="date",
            issue_type="invalid_format",
            message="Date must be a valid calendar date",
            suggested_fix="Use the format YYYY-MM-DD",
        )


def parse_category(value: Any) -> tuple[Optional[ExpenseCategory], Optional[ValidationIssue]]:
    """Match a category by value or by name, case-insensitively."""
    if isinstance(value, ExpenseCategory):
        return value, None

    if value is None or not str(value).strip():
        return None, ValidationIssue(
            field="category",
            issue_type="missing",
            message="Category is required",
        )

    wanted = str(value).strip().lower()
    for category in ExpenseCategory:
        if wanted in (category.value.lower(), category.name.lower()):
            return category, None

    return None, ValidationIssue(
        field="category",
        issue_type="invalid_value",
        message=f"Unknown category: {value}",
        suggested_fix="Pick one of: " + ", ".join(c.value for c in ExpenseCategory),
    )


class ExpenseValidator:
    """
    Validates expense drafts and budget amounts.

    Stateless; one instance can be shared.
    """

    def validate(self, draft: ExpenseDraft) -> tuple[Decimal, str, ExpenseCategory, date]:
        """
        Validate a draft and return its clean fields.

        Returns:
            (amount, description, category, date)

        Raises:
            ExpenseValidationError: with every issue found, not just the first
        """
        issues = []

        amount, issue = parse_amount(draft.amount)
        if issue:
            issues.append(issue)

        description = (draft.description or "").strip()
        if not description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
            ))
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
            ))

        category, issue = parse_category(draft.category)
        if issue:
            issues.append(issue)

        day, issue = parse_date(draft.date)
        if issue:
            issues.append(issue)

        if issues:
            raise ExpenseValidationError(issues)

        return amount, description, category, day

    def validate_budget_amount(self, value: Any) -> Decimal:
        """
        Validate a budget amount.

        Raises:
            BudgetValidationError: if the amount is missing, not numeric,
                not finite or negative
        """
        amount, issue = parse_amount(value, field="budget")
        if issue:
            raise BudgetValidationError([issue])
        return amount
