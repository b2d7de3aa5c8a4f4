"""
Budget Store Adapter

Reads and writes the monthly budget of an owner.

DESIGN DECISION: Budgets are keyed by owner AND calendar month
("<owner_id>_<YYYY-MM>"). A "monthly budget" that is keyed by owner
alone would silently carry one month's ceiling into the next.

Absence matters: fetch_budget() returns None when no budget is set, which
is not the same as a budget of 0.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog

from src.models.expense import BUDGETS_COLLECTION, Budget, period_key
from src.services.storage import CascadeDeletionError, DocumentStore, StorageError
from src.validation import ExpenseValidator


OWNER_FIELD = "userId"


class BudgetStore:
    """Single-read, single-write access to budget documents."""

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[ExpenseValidator] = None,
    ):
        self._store = store
        self._validator = validator or ExpenseValidator()
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def current_period(today: Optional[date] = None) -> str:
        return period_key(today or date.today())

    async def fetch_budget(self, owner_id: str, period: str) -> Optional[Decimal]:
        """
        Read the budget for one period.

        Returns None when there is no document, or when the document carries
        no amount (older clients "deleted" a budget by writing an empty one).
        """
        try:
            document = await self._store.get(BUDGETS_COLLECTION, Budget.document_key(owner_id, period))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read budget: {e}") from e

        if not document or document.get("amount") in (None, ""):
            return None

        try:
            return Decimal(str(document["amount"]))
        except Exception as e:
            self._logger.warning("malformed_budget_document", owner_id=owner_id, period=period, error=str(e))
            return None

    async def save_budget(self, owner_id: str, amount: Any, period: str) -> Budget:
        """
        Overwrite the budget for one period.

        Raises:
            BudgetValidationError: before any store call
            StorageError: if the write fails
        """
        value = self._validator.validate_budget_amount(amount)
        budget = Budget(owner_id=owner_id, period=period, amount=value)

        try:
            await self._store.set(BUDGETS_COLLECTION, budget.key, budget.to_document())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}") from e

        self._logger.info("budget_saved", owner_id=owner_id, period=period)
        return budget

    async def delete_budget(self, owner_id: str, period: str) -> None:
        """Remove the budget document for one period."""
        try:
            await self._store.delete(BUDGETS_COLLECTION, Budget.document_key(owner_id, period))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}") from e
        self._logger.info("budget_deleted", owner_id=owner_id, period=period)

    async def delete_all(self, owner_id: str) -> int:
        """
        Delete every budget document of an owner, across all periods.

        Raises:
            CascadeDeletionError: naming every key that could not be deleted
        """
        documents = await self._store.query(BUDGETS_COLLECTION, OWNER_FIELD, owner_id)

        failed = []
        for key, _ in documents:
            try:
                await self._store.delete(BUDGETS_COLLECTION, key)
            except Exception as e:
                self._logger.error("budget_cascade_delete_failed", key=key, error=str(e))
                failed.append(key)

        if failed:
            raise CascadeDeletionError(BUDGETS_COLLECTION, failed)
        return len(documents)
