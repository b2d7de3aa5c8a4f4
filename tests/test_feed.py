"""Tests for the Expense Feed and the Budget Store Adapter."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from src.budget import BudgetStore
from src.feed import ExpenseFeed
from src.models.expense import BUDGETS_COLLECTION, EXPENSES_COLLECTION, ExpenseCategory, ExpenseDraft
from src.services.storage import CascadeDeletionError, StorageError
from src.validation import BudgetValidationError, ExpenseValidationError


def run(coro):
    return asyncio.run(coro)


def draft(amount="10", description="Lunch", category="Food", day="2024-03-01"):
    return ExpenseDraft(amount=amount, description=description, category=category, date=day)


@pytest.fixture
def feed(store):
    return ExpenseFeed(store)


class TestExpenseFeed:
    """Tests for the live expense cache."""

    def test_start_loads_existing_records(self, store, feed):
        """Test that the initial snapshot fills the cache."""
        run(store.create(EXPENSES_COLLECTION, {
            "amount": "5", "description": "Tea", "category": "Food",
            "date": "2024-03-01", "userId": "u1",
        }))
        run(feed.start("u1"))
        assert feed.is_active
        assert [r.description for r in feed.records] == ["Tea"]

    def test_add_arrives_through_snapshot(self, feed):
        """Test that a confirmed write shows up as exactly one more record."""
        run(feed.start("u1"))
        expense = run(feed.add_expense("u1", draft()))
        assert [r.id for r in feed.records] == [expense.id]
        assert expense.amount == Decimal("10")
        assert expense.category == ExpenseCategory.FOOD

    def test_invalid_draft_never_reaches_store(self, store, feed):
        """Test that validation runs before any write."""
        run(feed.start("u1"))
        with pytest.raises(ExpenseValidationError):
            run(feed.add_expense("u1", draft(amount="-3")))
        assert store.calls == []

    def test_failed_write_leaves_cache_untouched(self, store, feed):
        """Test that nothing is added optimistically."""
        run(feed.start("u1"))
        store.fail_create = True
        with pytest.raises(StorageError):
            run(feed.add_expense("u1", draft()))
        assert feed.records == ()

    def test_delete_removes_through_snapshot(self, feed):
        """Test deleting a record."""
        run(feed.start("u1"))
        expense = run(feed.add_expense("u1", draft()))
        run(feed.delete_expense(expense.id))
        assert feed.records == ()

    def test_failed_delete_keeps_record(self, store, feed):
        """Test that a rejected delete leaves the record visible."""
        run(feed.start("u1"))
        expense = run(feed.add_expense("u1", draft()))
        store.fail_delete_ids.add(expense.id)
        with pytest.raises(StorageError):
            run(feed.delete_expense(expense.id))
        assert len(feed.records) == 1

    def test_switching_owner_never_leaks_records(self, store, feed):
        """Test that the previous owner's records are gone after a restart."""
        run(feed.start("u1"))
        run(feed.add_expense("u1", draft(description="Mine")))
        run(feed.start("u2"))
        assert feed.records == ()
        run(store.create(EXPENSES_COLLECTION, {
            "amount": "1", "description": "Late", "category": "Food",
            "date": "2024-03-01", "userId": "u1",
        }))
        assert feed.records == ()
        assert store.active_subscription_count == 1

    def test_stop_clears_and_notifies(self, feed):
        """Test that stop() empties the cache and tells listeners."""
        seen = []
        feed.add_listener(seen.append)
        run(feed.start("u1"))
        run(feed.add_expense("u1", draft()))
        feed.stop()
        assert feed.records == ()
        assert seen[-1] == ()
        assert not feed.is_active

    def test_subscribe_failure(self, store, feed):
        """Test that a refused subscription leaves the feed stopped."""
        store.fail_subscribe = True
        with pytest.raises(StorageError):
            run(feed.start("u1"))
        assert feed.owner_id is None
        assert not feed.is_active

    def test_malformed_documents_are_skipped(self, store, feed):
        """Test that one bad document does not hide the others."""
        run(store.create(EXPENSES_COLLECTION, {"userId": "u1", "amount": "x"}))
        run(store.create(EXPENSES_COLLECTION, {
            "amount": "2", "description": "Ok", "category": "Other",
            "date": "2024-03-01", "userId": "u1",
        }))
        run(feed.start("u1"))
        assert [r.description for r in feed.records] == ["Ok"]

    def test_delete_all_reports_failures(self, store, feed):
        """Test that every delete is attempted and failures are named."""
        run(feed.start("u1"))
        first = run(feed.add_expense("u1", draft()))
        run(feed.add_expense("u1", draft()))
        store.fail_delete_ids.add(first.id)
        with pytest.raises(CascadeDeletionError) as exc_info:
            run(feed.delete_all("u1"))
        assert exc_info.value.failed_ids == [first.id]
        assert [r.id for r in feed.records] == [first.id]


class TestBudgetStore:
    """Tests for the budget adapter."""

    def test_absent_budget(self, store):
        """Test that no document means no budget."""
        budgets = BudgetStore(store)
        assert run(budgets.fetch_budget("u1", "2024-03")) is None

    def test_save_and_fetch(self, store):
        """Test a budget round trip for one period."""
        budgets = BudgetStore(store)
        budget = run(budgets.save_budget("u1", "150.50", "2024-03"))
        assert budget.key == "u1_2024-03"
        assert run(budgets.fetch_budget("u1", "2024-03")) == Decimal("150.50")
        assert run(budgets.fetch_budget("u1", "2024-04")) is None

    def test_zero_budget_is_not_absent(self, store):
        """Test that a budget of zero is kept distinct from no budget."""
        budgets = BudgetStore(store)
        run(budgets.save_budget("u1", "0", "2024-03"))
        assert run(budgets.fetch_budget("u1", "2024-03")) == Decimal("0")

    def test_empty_document_is_absent(self, store):
        """Test that a document without an amount reads as no budget."""
        run(store.set(BUDGETS_COLLECTION, "u1_2024-03", {}))
        assert run(BudgetStore(store).fetch_budget("u1", "2024-03")) is None

    def test_invalid_amount_never_reaches_store(self, store):
        """Test that validation runs before any write."""
        with pytest.raises(BudgetValidationError):
            run(BudgetStore(store).save_budget("u1", "lots", "2024-03"))
        assert store.calls == []

    def test_fetch_failure(self, store):
        """Test that read failures surface as StorageError."""
        store.fail_get = True
        with pytest.raises(StorageError):
            run(BudgetStore(store).fetch_budget("u1", "2024-03"))

    def test_delete_and_delete_all(self, store):
        """Test removing one period and then every period."""
        budgets = BudgetStore(store)
        run(budgets.save_budget("u1", "10", "2024-03"))
        run(budgets.save_budget("u1", "20", "2024-04"))
        run(budgets.save_budget("u2", "30", "2024-04"))
        run(budgets.delete_budget("u1", "2024-03"))
        assert run(budgets.fetch_budget("u1", "2024-03")) is None
        assert run(budgets.delete_all("u1")) == 1
        assert run(budgets.fetch_budget("u1", "2024-04")) is None
        assert run(budgets.fetch_budget("u2", "2024-04")) == Decimal("30")

    def test_current_period(self):
        """Test the calendar month of a given day."""
        assert BudgetStore.current_period(date(2024, 12, 31)) == "2024-12"
