"""
Expense Feed

Keeps the live, locally cached set of the current owner's expenses.

GUARANTEES:
- At most one subscription is open at a time
- start() cancels the previous subscription and clears the cache BEFORE
  subscribing for the new owner, so a late snapshot of the old owner can
  never reach the new session
- Each snapshot replaces the cache wholesale; snapshots are never merged
- Writes do not touch the cache. The cache only ever reflects what the
  store confirmed through the subscription.
"""

from typing import Callable, Optional

import structlog

from src.models.expense import EXPENSES_COLLECTION, Expense, ExpenseDraft
from src.services.storage import (
    CascadeDeletionError,
    DocumentStore,
    Snapshot,
    StorageError,
    Subscription,
)
from src.validation import ExpenseValidator


FeedListener = Callable[[tuple[Expense, ...]], None]

OWNER_FIELD = "userId"


class ExpenseFeed:
    """Subscription-backed cache of expense records plus expense writes."""

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[ExpenseValidator] = None,
    ):
        self._store = store
        self._validator = validator or ExpenseValidator()
        self._subscription: Optional[Subscription] = None
        self._owner_id: Optional[str] = None
        self._records: tuple[Expense, ...] = ()
        self._listeners: list[FeedListener] = []
        self._logger = structlog.get_logger(__name__)

    @property
    def records(self) -> tuple[Expense, ...]:
        return self._records

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def is_active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def add_listener(self, listener: FeedListener) -> None:
        self._listeners.append(listener)

    def _replace(self, records: tuple[Expense, ...]) -> None:
        self._records = records
        for listener in self._listeners:
            listener(records)

    def _parse(self, snapshot: Snapshot) -> tuple[Expense, ...]:
        records = []
        for document_id, data in snapshot:
            try:
                records.append(Expense.from_document(document_id, data))
            except Exception as e:
                self._logger.warning(
                    "malformed_expense_skipped",
                    expense_id=document_id,
                    error=str(e),
                )
        return tuple(records)

    async def start(self, owner_id: str) -> None:
        """
        Subscribe to `owner_id`'s expenses.

        Raises:
            StorageError: if the subscription cannot be opened (the feed is
                left stopped and empty)
        """
        self.stop()
        self._owner_id = owner_id

        holder: dict[str, Subscription] = {}

        def on_snapshot(snapshot: Snapshot) -> None:
            # The initial snapshot arrives before subscribe() returns
            current = holder.get("subscription")
            if current is not None and current is not self._subscription:
                return
            if self._owner_id != owner_id:
                return
            self._replace(self._parse(snapshot))
            self._logger.debug("expense_snapshot", owner_id=owner_id, count=len(self._records))

        def on_error(error: Exception) -> None:
            # Transient: keep the stream and the last confirmed snapshot
            self._logger.warning("expense_subscription_error", owner_id=owner_id, error=str(error))

        try:
            subscription = await self._store.subscribe(
                EXPENSES_COLLECTION,
                OWNER_FIELD,
                owner_id,
                on_snapshot,
                on_error,
            )
        except Exception as e:
            self._owner_id = None
            self._replace(())
            self._logger.error("expense_subscription_failed", owner_id=owner_id, error=str(e))
            if isinstance(e, StorageError):
                raise
            raise StorageError(f"Failed to subscribe to expenses: {e}") from e

        if self._owner_id != owner_id:
            # stop() or another start() ran while we were subscribing
            subscription.cancel()
            return

        holder["subscription"] = subscription
        self._subscription = subscription
        self._logger.info("expense_feed_started", owner_id=owner_id)

    def stop(self) -> None:
        """Cancel the subscription and drop every cached record."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._logger.info("expense_feed_stopped", owner_id=self._owner_id)
        self._subscription = None
        self._owner_id = None
        if self._records:
            self._replace(())

    async def add_expense(self, owner_id: str, draft: ExpenseDraft) -> Expense:
        """
        Validate and write a new expense.

        Raises:
            ExpenseValidationError: before any store call
            StorageError: if the write fails
        """
        amount, description, category, day = self._validator.validate(draft)

        document = {
            "amount": str(amount),
            "description": description,
            "category": category.value,
            "date": day.isoformat(),
            OWNER_FIELD: owner_id,
        }
        try:
            expense_id = await self._store.create(EXPENSES_COLLECTION, document)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}") from e

        self._logger.info("expense_created", expense_id=expense_id, owner_id=owner_id)
        return Expense.from_document(expense_id, document)

    async def delete_expense(self, expense_id: str) -> None:
        """
        Delete an expense by id. No confirmation, no rollback.

        Raises:
            StorageError: if the delete fails
        """
        try:
            await self._store.delete(EXPENSES_COLLECTION, expense_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}") from e
        self._logger.info("expense_deleted", expense_id=expense_id)

    async def delete_all(self, owner_id: str) -> int:
        """
        Delete every expense of an owner.

        Reads the owner's documents from the store (not the cache) and
        attempts all deletes.

        Returns:
            Number of deleted documents

        Raises:
            CascadeDeletionError: naming every id that could not be deleted
        """
        documents = await self._store.query(EXPENSES_COLLECTION, OWNER_FIELD, owner_id)

        failed = []
        for document_id, _ in documents:
            try:
                await self._store.delete(EXPENSES_COLLECTION, document_id)
            except Exception as e:
                self._logger.error("expense_cascade_delete_failed", expense_id=document_id, error=str(e))
                failed.append(document_id)

        if failed:
            raise CascadeDeletionError(EXPENSES_COLLECTION, failed)
        return len(documents)
