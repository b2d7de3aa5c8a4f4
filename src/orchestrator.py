"""
Main Orchestrator for Expense Tracker

This module ties together all the components and is the only surface the
presentation layer talks to:
1. Session changes → start/stop the expense feed, fetch/clear the budget
2. Feed snapshots and filter/sort changes → re-derive the view
3. User actions → validate → remote write → notifications and audit

DESIGN DECISION: The orchestrator enforces the boundaries:
- No expense data is visible outside a verified session
- Nothing is mutated optimistically; the view reflects confirmed snapshots
- A budget warning never blocks or undoes a write
- Every user action is audited

Errors from the collaborators are caught here, logged and turned into
user-facing notifications. Public methods report success through their
return value instead of raising.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.budget import BudgetStore
from src.config import Settings, get_settings
from src.feed import ExpenseFeed
from src.models.expense import (
    ExpenseCategory,
    ExpenseDraft,
    ExpenseView,
    SortDirection,
    SortKey,
    SortOption,
    ViewState,
    period_key,
)
from src.models.notification import (
    AddExpenseOutcome,
    Notification,
    NotificationLevel,
    Operation,
)
from src.models.session import SessionState
from src.services.identity import AuthError, IdentityProvider, InMemoryIdentityProvider
from src.services.storage import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    StorageError,
)
from src.session import AccountDeletionError, NoActiveSessionError, SessionManager
from src.validation import ExpenseValidationError, ExpenseValidator, ValidationError, parse_category
from src.views import EmptyExportError, derive_view, exceeds_budget, period_total, to_csv


BUDGET_EXCEEDED_MESSAGE = "You've exceeded your monthly budget!"
NOTHING_TO_EXPORT_MESSAGE = "Nothing to export."


class ExpenseTracker:
    """
    Reactive pipeline from session state to rendered view.

    Flow:
    1. SessionManager announces a transition
    2. Entering SIGNED_IN_VERIFIED → feed.start() + budget fetch
    3. Leaving it → feed.stop(), budget and view cleared
    4. Feed snapshot → derive_view()
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._validator = ExpenseValidator()
        self.session = SessionManager(identity_provider)
        self.feed = ExpenseFeed(store, self._validator)
        self.budgets = BudgetStore(store, self._validator)
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today
        self._logger = structlog.get_logger(__name__)

        self._view_state = ViewState()
        self._budget: Optional[Decimal] = None
        self._budget_period: Optional[str] = None
        self._view = ExpenseView()
        self._in_flight: set[Operation] = set()
        self.notifications: list[Notification] = []

        self.session.add_listener(self._on_session_change)
        self.feed.add_listener(self._on_feed_change)

    # ------------------------------------------------------------------
    # Exposed state
    # ------------------------------------------------------------------

    @property
    def session_state(self) -> SessionState:
        return self.session.state

    @property
    def view(self) -> ExpenseView:
        return self._view

    @property
    def view_state(self) -> ViewState:
        return self._view_state

    @property
    def budget(self) -> Optional[Decimal]:
        return self._budget

    @property
    def budget_period(self) -> Optional[str]:
        return self._budget_period

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def is_busy(self, operation: Operation) -> bool:
        return operation in self._in_flight

    def clear_notifications(self) -> list[Notification]:
        """Return and forget every pending notification."""
        pending, self.notifications = self.notifications, []
        return pending

    # ------------------------------------------------------------------
    # Internal plumbing
    # ------------------------------------------------------------------

    def _notify(
        self,
        level: NotificationLevel,
        message: str,
        code: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        self.notifications.append(
            Notification(level=level, message=message, code=code, field=field)
        )

    def _notify_validation(self, error: ValidationError) -> None:
        for issue in error.issues:
            self._notify(
                NotificationLevel.ERROR,
                issue.message,
                code=issue.issue_type,
                field=issue.field,
            )

    def _begin(self, operation: Operation) -> bool:
        """Mark an operation in flight. False if it already is."""
        if operation in self._in_flight:
            self._notify(
                NotificationLevel.WARNING,
                "Please wait, the previous request is still in progress.",
                code="in-progress",
            )
            return False
        self._in_flight.add(operation)
        return True

    def _end(self, operation: Operation) -> None:
        self._in_flight.discard(operation)

    def _rederive(self) -> None:
        self._view = derive_view(
            self.feed.records,
            self._view_state,
            budget=self._budget,
            budget_period=self._budget_period,
        )

    def _owner_id(self) -> Optional[str]:
        state = self.session.state
        return state.identity_id if state.is_verified else None

    async def _on_session_change(self, previous: SessionState, current: SessionState) -> None:
        if current.is_verified:
            if self.feed.is_active and self.feed.owner_id == current.identity_id:
                return
            # Tear down first so nothing of a previous identity survives
            self._clear_session_data()
            try:
                await self.feed.start(current.identity_id)
            except StorageError as e:
                self._logger.error("feed_start_failed", error=str(e))
                await self._audit_logger.log_external_service_error(
                    "document_store", str(e), create_correlation_id()
                )
                self._notify(NotificationLevel.ERROR, "Could not load your expenses. Please try again.")
            await self.refresh_budget()
        elif previous.is_verified or self.feed.owner_id is not None:
            self._clear_session_data()

    def _on_feed_change(self, records) -> None:
        self._rederive()

    def _clear_session_data(self) -> None:
        self.feed.stop()
        self._budget = None
        self._budget_period = None
        self._view_state = ViewState()
        self._rederive()

    # ------------------------------------------------------------------
    # View controls
    # ------------------------------------------------------------------

    def set_filter(self, category: Union[ExpenseCategory, str, None]) -> None:
        """Show one category; None, '' or 'all' shows everything."""
        if category is None or (isinstance(category, str) and category.strip().lower() in ("", "all")):
            selected = None
        else:
            selected, issue = parse_category(category)
            if issue:
                self._notify(NotificationLevel.ERROR, issue.message, code=issue.issue_type, field="filter")
                return
        self._view_state = self._view_state.model_copy(update={"category": selected})
        self._rederive()

    def set_sort(self, key: SortKey, direction: SortDirection) -> None:
        self._view_state = self._view_state.model_copy(
            update={"sort_key": SortKey(key), "sort_direction": SortDirection(direction)}
        )
        self._rederive()

    def set_sort_option(self, option: Union[SortOption, str]) -> None:
        option = SortOption(option)
        self.set_sort(option.key, option.direction)

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> bool:
        if not self._begin(Operation.SIGN_UP):
            return False
        correlation_id = create_correlation_id()
        try:
            identity = await self.session.sign_up(email, password)
        except AuthError as e:
            self._notify(NotificationLevel.ERROR, e.message, code=e.code.value)
            return False
        finally:
            self._end(Operation.SIGN_UP)

        await self._audit_logger.log_sign_up(identity.id, identity.email, correlation_id)
        if not identity.email_verified and self.session.state.error_code is None:
            await self._audit_logger.log_verification_email(identity.id, correlation_id)
            self._notify(
                NotificationLevel.SUCCESS,
                "Verification email sent! Please check your inbox.",
                code="verification-sent",
            )
        elif not identity.email_verified:
            self._notify(
                NotificationLevel.WARNING,
                "Account created, but the verification email could not be sent. Use resend.",
                code=self.session.state.error_code,
            )
        return True

    async def sign_in(self, email: str, password: str) -> bool:
        if not self._begin(Operation.SIGN_IN):
            return False
        correlation_id = create_correlation_id()
        try:
            identity = await self.session.sign_in(email, password)
        except AuthError as e:
            await self._audit_logger.log_sign_in_failed(e.code.value, e.message, correlation_id)
            self._notify(NotificationLevel.ERROR, e.message, code=e.code.value)
            return False
        finally:
            self._end(Operation.SIGN_IN)

        await self._audit_logger.log_sign_in(identity.id, correlation_id)
        return True

    async def sign_out(self) -> None:
        if not self._begin(Operation.SIGN_OUT):
            return
        owner_id = self.session.state.identity_id
        try:
            await self.session.sign_out()
        finally:
            self._end(Operation.SIGN_OUT)
        await self._audit_logger.log_sign_out(owner_id, create_correlation_id())

    async def reset_password(self, email: Optional[str]) -> bool:
        if not self._begin(Operation.RESET_PASSWORD):
            return False
        try:
            await self.session.reset_password(email)
        except AuthError as e:
            self._notify(NotificationLevel.ERROR, e.message, code=e.code.value, field="email")
            return False
        finally:
            self._end(Operation.RESET_PASSWORD)

        await self._audit_logger.log_password_reset(email.strip(), create_correlation_id())
        self._notify(NotificationLevel.SUCCESS, "Password reset email sent.")
        return True

    async def resend_verification(self) -> bool:
        if not self._begin(Operation.RESEND_VERIFICATION):
            return False
        try:
            await self.session.resend_verification()
        except (AuthError, NoActiveSessionError) as e:
            self._notify(NotificationLevel.ERROR, str(e))
            return False
        finally:
            self._end(Operation.RESEND_VERIFICATION)

        await self._audit_logger.log_verification_email(
            self.session.state.identity_id, create_correlation_id()
        )
        self._notify(NotificationLevel.SUCCESS, "Verification email sent! Please check your inbox.")
        return True

    async def refresh_verification(self) -> bool:
        """Re-check verification. True once the session is verified."""
        if not self._begin(Operation.REFRESH_VERIFICATION):
            return False
        try:
            state = await self.session.refresh_verification()
        except (AuthError, NoActiveSessionError) as e:
            self._notify(NotificationLevel.ERROR, str(e))
            return False
        finally:
            self._end(Operation.REFRESH_VERIFICATION)

        if not state.is_verified:
            self._notify(
                NotificationLevel.INFO,
                "Your email is not verified yet. Please check your inbox.",
                code="not-verified",
            )
        return state.is_verified

    async def delete_account(self, password: str) -> bool:
        """
        Delete the account, its expenses and its budgets.

        The identity is only deleted once every expense and budget
        document is gone.
        """
        if not self._begin(Operation.DELETE_ACCOUNT):
            return False
        correlation_id = create_correlation_id()
        owner_id = self.session.state.identity_id

        async def cascade(identity_id: str) -> None:
            await self.feed.delete_all(identity_id)
            await self.budgets.delete_all(identity_id)

        try:
            await self.session.delete_account(password, cascade)
        except AuthError as e:
            self._notify(NotificationLevel.ERROR, e.message, code=e.code.value, field="password")
            return False
        except NoActiveSessionError as e:
            self._notify(NotificationLevel.ERROR, str(e))
            return False
        except AccountDeletionError as e:
            await self._audit_logger.log_account_deletion_failed(owner_id, str(e), correlation_id)
            self._notify(
                NotificationLevel.ERROR,
                f"{e} Please try again.",
                code="cascade-failed",
            )
            return False
        finally:
            self._end(Operation.DELETE_ACCOUNT)

        await self._audit_logger.log_account_deleted(owner_id, correlation_id)
        self._notify(NotificationLevel.SUCCESS, "Your account has been deleted.")
        return True

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def add_expense(
        self,
        amount: Any,
        description: Optional[str],
        category: Any,
        date: Any,
    ) -> Optional[AddExpenseOutcome]:
        """
        Add an expense for the signed-in user.

        The budget check runs against the records already confirmed for the
        new expense's month and that month's budget. Exceeding it only
        produces a warning; the expense is saved regardless.

        Returns:
            AddExpenseOutcome, or None if nothing was saved (the caller keeps
            the form populated for a retry)
        """
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify(NotificationLevel.ERROR, "Sign in to add expenses.")
            return None
        if not self._begin(Operation.ADD_EXPENSE):
            return None

        correlation_id = create_correlation_id()
        draft = ExpenseDraft(amount=amount, description=description, category=category, date=date)
        try:
            try:
                new_amount, _, _, day = self._validator.validate(draft)
            except ExpenseValidationError as e:
                await self._audit_logger.log_expense_rejected(
                    owner_id,
                    [issue.model_dump() for issue in e.issues],
                    correlation_id,
                )
                self._notify_validation(e)
                return None

            period = period_key(day)
            budget = await self._budget_for(owner_id, period)
            current_total = period_total(self.feed.records, period)
            exceeded = exceeds_budget(current_total, new_amount, budget)

            try:
                expense = await self.feed.add_expense(owner_id, draft)
            except StorageError as e:
                self._logger.error("expense_save_failed", owner_id=owner_id, error=str(e))
                await self._audit_logger.log_save_failed("expense", "add", str(e), owner_id, correlation_id)
                self._notify(NotificationLevel.ERROR, "Could not save the expense. Please try again.")
                return None
        finally:
            self._end(Operation.ADD_EXPENSE)

        await self._audit_logger.log_expense_added(
            expense.id,
            owner_id,
            str(expense.amount),
            expense.category.value,
            correlation_id,
        )
        if exceeded:
            await self._audit_logger.log_budget_exceeded(
                owner_id,
                period,
                str(current_total + new_amount),
                str(budget),
                correlation_id,
            )
            self._notify(NotificationLevel.WARNING, BUDGET_EXCEEDED_MESSAGE, code="budget-exceeded")

        return AddExpenseOutcome(expense=expense, budget_exceeded=exceeded)

    async def _budget_for(self, owner_id: str, period: str) -> Optional[Decimal]:
        if period == self._budget_period:
            return self._budget
        try:
            return await self.budgets.fetch_budget(owner_id, period)
        except StorageError as e:
            self._logger.warning("budget_lookup_failed", owner_id=owner_id, period=period, error=str(e))
            return None

    async def delete_expense(self, expense_id: str) -> bool:
        """Delete one expense. On failure the record stays visible."""
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify(NotificationLevel.ERROR, "Sign in to delete expenses.")
            return False
        if not self._begin(Operation.DELETE_EXPENSE):
            return False

        correlation_id = create_correlation_id()
        try:
            await self.feed.delete_expense(expense_id)
        except StorageError as e:
            self._logger.error("expense_delete_failed", expense_id=expense_id, error=str(e))
            await self._audit_logger.log_save_failed("expense", "delete", str(e), owner_id, correlation_id)
            self._notify(NotificationLevel.ERROR, "Could not delete the expense. Please try again.")
            return False
        finally:
            self._end(Operation.DELETE_EXPENSE)

        await self._audit_logger.log_expense_deleted(expense_id, owner_id, correlation_id)
        return True

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    async def refresh_budget(self) -> None:
        """Fetch the budget of the current month."""
        owner_id = self._owner_id()
        if owner_id is None:
            return
        period = self.budgets.current_period(self._today())
        try:
            budget = await self.budgets.fetch_budget(owner_id, period)
        except StorageError as e:
            self._logger.error("budget_fetch_failed", owner_id=owner_id, error=str(e))
            await self._audit_logger.log_error(
                "budget_fetch_failed", str(e), details={"owner_id": owner_id, "period": period}
            )
            self._notify(NotificationLevel.ERROR, "Could not load your budget.")
            budget = None
        if self._owner_id() != owner_id:
            # Session changed while we were fetching
            return
        self._budget = budget
        self._budget_period = period
        self._rederive()

    async def save_budget(self, amount: Any) -> bool:
        """Set this month's budget."""
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify(NotificationLevel.ERROR, "Sign in to set a budget.")
            return False
        if not self._begin(Operation.SAVE_BUDGET):
            return False

        period = self.budgets.current_period(self._today())
        correlation_id = create_correlation_id()
        try:
            budget = await self.budgets.save_budget(owner_id, amount, period)
        except ValidationError as e:
            self._notify_validation(e)
            return False
        except StorageError as e:
            await self._audit_logger.log_save_failed("budget", "save", str(e), owner_id, correlation_id)
            self._notify(NotificationLevel.ERROR, "Could not save the budget. Please try again.")
            return False
        finally:
            self._end(Operation.SAVE_BUDGET)

        self._budget = budget.amount
        self._budget_period = period
        self._rederive()
        await self._audit_logger.log_budget_saved(owner_id, period, str(budget.amount), correlation_id)
        self._notify(NotificationLevel.SUCCESS, "Budget saved.")
        return True

    async def delete_budget(self) -> bool:
        """Remove this month's budget."""
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify(NotificationLevel.ERROR, "Sign in to delete the budget.")
            return False
        if not self._begin(Operation.DELETE_BUDGET):
            return False

        period = self.budgets.current_period(self._today())
        correlation_id = create_correlation_id()
        try:
            await self.budgets.delete_budget(owner_id, period)
        except StorageError as e:
            await self._audit_logger.log_save_failed("budget", "delete", str(e), owner_id, correlation_id)
            self._notify(NotificationLevel.ERROR, "Could not delete the budget. Please try again.")
            return False
        finally:
            self._end(Operation.DELETE_BUDGET)

        self._budget = None
        self._budget_period = period
        self._rederive()
        await self._audit_logger.log_budget_deleted(owner_id, period, correlation_id)
        self._notify(NotificationLevel.SUCCESS, "Budget deleted.")
        return True

    # ------------------------------------------------------------------
    # Export and remote refresh
    # ------------------------------------------------------------------

    async def export_csv(self) -> Optional[str]:
        """
        CSV of the records as currently displayed (filtered and sorted).

        Returns None, with a notification, when there is nothing to export.
        """
        records = self._view.records
        try:
            text = to_csv(records)
        except EmptyExportError:
            self._notify(NotificationLevel.WARNING, NOTHING_TO_EXPORT_MESSAGE, code="nothing-to-export")
            return None

        await self._audit_logger.log_export(self._owner_id(), len(records), create_correlation_id())
        return text

    async def poll_remote(self) -> None:
        """Pick up changes made outside this process, for stores without push."""
        poll = getattr(self._store, "poll", None)
        if poll is not None:
            await poll()


def create_store(settings: Optional[Settings] = None) -> DocumentStore:
    """
    Build the configured document store.

    Falls back to the in-memory store when Google Sheets is selected but
    not configured.
    """
    settings = settings or get_settings()
    if settings.app.store_backend == "google_sheets":
        try:
            return GoogleSheetsDocumentStore(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            structlog.get_logger(__name__).warning("storage_not_configured", error=str(e))
    return InMemoryDocumentStore()


def create_app_components(settings: Optional[Settings] = None) -> ExpenseTracker:
    """
    Factory function to create the tracker with its collaborators.

    Returns:
        A ready ExpenseTracker (signed out)
    """
    settings = settings or get_settings()
    provider = InMemoryIdentityProvider(auto_verify=settings.app.auto_verify_signups)
    return ExpenseTracker(
        identity_provider=provider,
        store=create_store(settings),
        audit_logger=AuditLogger(),
    )
