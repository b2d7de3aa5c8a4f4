"""
Tests for Expense Tracker

Test strategy:
1. Unit tests for individual components (models, validators, view engine)
2. Integration tests for flows (with in-memory collaborators)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from src.models.expense import (
    Budget,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseView,
    SortDirection,
    SortKey,
    SortOption,
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
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            id="e1",
            amount=Decimal("12.50"),
            description="Lunch",
            category=ExpenseCategory.FOOD,
            date=date(2024, 3, 1),
            owner_id="u1",
        )
        assert expense.amount == Decimal("12.50")
        assert expense.period == "2024-03"

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        expense = Expense(
            id="e1",
            amount=Decimal("1"),
            description="  Bus  ",
            category=ExpenseCategory.TRANSPORTATION,
            date=date(2024, 3, 1),
            owner_id="u1",
        )
        assert expense.description == "Bus"

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(
                id="e1",
                amount=Decimal("-1"),
                description="Refund",
                category=ExpenseCategory.OTHER,
                date=date(2024, 3, 1),
                owner_id="u1",
            )

    def test_expense_document_shape(self):
        """Test conversion to the stored document."""
        expense = Expense(
            id="e1",
            amount=Decimal("50.00"),
            description="Groceries",
            category=ExpenseCategory.SHOPPING,
            date=date(2024, 3, 15),
            owner_id="u1",
        )
        assert expense.to_document() == {
            "amount": "50.00",
            "description": "Groceries",
            "category": "Shopping",
            "date": "2024-03-15",
            "userId": "u1",
        }

    def test_expense_from_document_truncates_timestamps(self):
        """Test that timestamps from other clients keep only their date."""
        expense = Expense.from_document("e1", {
            "amount": 7.5,
            "description": "Taxi",
            "category": "Transportation",
            "date": "2024-03-15T23:59:59.000Z",
            "userId": "u1",
        })
        assert expense.date == date(2024, 3, 15)
        assert expense.amount == Decimal("7.5")

    def test_expense_from_document_accepts_datetime(self):
        """Test that a native datetime is cut down to its date."""
        expense = Expense.from_document("e1", {
            "amount": "1",
            "description": "Coffee",
            "category": "Food",
            "date": datetime(2024, 1, 2, 8, 30),
            "userId": "u1",
        })
        assert expense.date == date(2024, 1, 2)

    def test_draft_accepts_anything(self):
        """Test that drafts defer every check to the validator."""
        draft = ExpenseDraft(amount="abc", description="  ", category="Nope", date="not a date")
        assert draft.amount == "abc"
        assert draft.description == ""

    def test_period_key(self):
        """Test calendar month bucketing."""
        assert period_key(date(2024, 1, 31)) == "2024-01"
        assert period_key(date(999, 12, 1)) == "0999-12"


class TestBudgetModel:
    """Tests for the Budget model."""

    def test_budget_key_includes_period(self):
        """Test that budgets are keyed per owner and month."""
        budget = Budget(owner_id="u1", period="2024-03", amount=Decimal("100"))
        assert budget.key == "u1_2024-03"
        assert Budget.document_key("u1", "2024-04") == "u1_2024-04"

    def test_budget_document(self):
        """Test conversion to the stored document."""
        budget = Budget(owner_id="u1", period="2024-03", amount=Decimal("100.00"))
        assert budget.to_document() == {"userId": "u1", "period": "2024-03", "amount": "100.00"}

    def test_budget_rejects_bad_period(self):
        """Test period format validation."""
        with pytest.raises(ValueError):
            Budget(owner_id="u1", period="March", amount=Decimal("1"))


class TestViewModels:
    """Tests for view state and derived view models."""

    def test_default_view_state(self):
        """Test that the default view is all categories, newest first."""
        state = ViewState()
        assert state.category is None
        assert state.sort_key == SortKey.DATE
        assert state.sort_direction == SortDirection.DESC

    def test_sort_options(self):
        """Test that each preset maps to a key and direction."""
        assert (SortOption.NEWEST.key, SortOption.NEWEST.direction) == (SortKey.DATE, SortDirection.DESC)
        assert (SortOption.OLDEST.key, SortOption.OLDEST.direction) == (SortKey.DATE, SortDirection.ASC)
        assert (SortOption.LOWEST_AMOUNT.key, SortOption.LOWEST_AMOUNT.direction) == (SortKey.AMOUNT, SortDirection.ASC)
        assert (SortOption.HIGHEST_AMOUNT.key, SortOption.HIGHEST_AMOUNT.direction) == (SortKey.AMOUNT, SortDirection.DESC)
        assert SortOption.NEWEST.label == "Newest First"

    def test_view_state_from_option(self):
        """Test building a view state from a preset."""
        state = ViewState.from_option(SortOption.HIGHEST_AMOUNT, ExpenseCategory.FOOD)
        assert state.category == ExpenseCategory.FOOD
        assert state.sort_key == SortKey.AMOUNT

    def test_budget_remaining(self):
        """Test remaining budget and over-budget flags."""
        view = ExpenseView(budget=Decimal("100"), budget_period="2024-03", period_total=Decimal("120"))
        assert view.budget_remaining == Decimal("-20")
        assert view.is_over_budget is True

    def test_no_budget(self):
        """Test that an absent budget is never exceeded."""
        view = ExpenseView(period_total=Decimal("1000"))
        assert view.budget_remaining is None
        assert view.is_over_budget is False


class TestSessionModels:
    """Tests for the session state machine."""

    def test_initial_state(self):
        """Test that a new session is signed out."""
        state = SessionState()
        assert state.status == SessionStatus.SIGNED_OUT
        assert state.identity is None
        assert state.is_verified is False

    def test_verified_transition(self):
        """Test a full sign-in path."""
        identity = Identity(id="u1", email="a@b.c", email_verified=True)
        state = transition(SessionState(), SessionStatus.AUTHENTICATING)
        state = transition(state, SessionStatus.SIGNED_IN_VERIFIED, identity=identity)
        assert state.is_verified
        assert state.identity_id == "u1"

    def test_rejects_undefined_transition(self):
        """Test that skipping AUTHENTICATING is refused."""
        identity = Identity(id="u1", email="a@b.c", email_verified=True)
        with pytest.raises(InvalidTransitionError):
            transition(SessionState(), SessionStatus.SIGNED_IN_VERIFIED, identity=identity)

    def test_verified_state_requires_verified_identity(self):
        """Test that an unverified identity cannot enter the verified state."""
        identity = Identity(id="u1", email="a@b.c", email_verified=False)
        state = transition(SessionState(), SessionStatus.AUTHENTICATING)
        with pytest.raises(ValueError):
            transition(state, SessionStatus.SIGNED_IN_VERIFIED, identity=identity)

    def test_signed_out_drops_identity(self):
        """Test that leaving a session forgets the identity."""
        identity = Identity(id="u1", email="a@b.c", email_verified=False)
        state = transition(SessionState(), SessionStatus.AUTHENTICATING)
        state = transition(state, SessionStatus.SIGNED_IN_UNVERIFIED, identity=identity)
        state = transition(state, SessionStatus.SIGNED_OUT, identity=identity, error_code="x")
        assert state.identity is None
        assert state.error_code == "x"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Test expense added",
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SAVED,
            description="Budget saved",
            details={"period": "2024-03", "amount": "100"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "budget_saved"
        assert log_dict["details"]["period"] == "2024-03"

    def test_audit_event_builder_expense_added(self):
        """Test AuditEventBuilder.expense_added."""
        correlation_id = uuid4()

        event = AuditEventBuilder.expense_added(
            expense_id="e1",
            owner_id="u1",
            amount="12.50",
            category="Food",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.entity_id == "e1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_sign_in_unverified(self):
        """Test that unverified sign-ins get their own event type."""
        event = AuditEventBuilder.sign_in_failed("not-verified", "Email not verified", uuid4())
        assert event.event_type == AuditEventType.SIGN_IN_UNVERIFIED
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_budget_exceeded(self):
        """Test AuditEventBuilder.budget_exceeded."""
        event = AuditEventBuilder.budget_exceeded("u1", "2024-03", "120", "100", uuid4())
        assert event.entity_id == "u1_2024-03"
        assert event.details["budget"] == "100"


class TestExpenseCategories:
    """Tests for ExpenseCategory enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "Food", "Transportation", "Entertainment", "Utilities",
            "Shopping", "Healthcare", "Other",
        ]
        assert [c.value for c in ExpenseCategory] == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
