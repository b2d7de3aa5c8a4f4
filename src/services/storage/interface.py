"""
Abstract Document Store Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Swap Google Sheets for another hosted document store later
2. Use in-memory storage for testing
3. Keep the feed and budget logic decoupled from storage implementation

The interface mirrors a hosted document database: schemaless documents in
named collections, addressed by an opaque id, plus a subscription that
pushes the COMPLETE matching set (never a delta) whenever it changes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional


Document = dict[str, Any]
Snapshot = list[tuple[str, Document]]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """
    Handle for a live subscription.

    cancel() is synchronous and final: once it returns, the store will not
    deliver another snapshot through this handle. Stores check `active`
    immediately before every delivery.
    """

    def __init__(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.collection = collection
        self.field = field
        self.value = value
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._active = True
        self._last_snapshot: Optional[Snapshot] = None

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False

    def matches(self, document: Document) -> bool:
        return document.get(self.field) == self.value

    def deliver(self, snapshot: Snapshot, force: bool = True) -> bool:
        """
        Push a snapshot to the subscriber.

        With force=False the snapshot is skipped when it equals the last one
        delivered (used by polling backends). Returns True if delivered.
        """
        if not self._active:
            return False
        if not force and snapshot == self._last_snapshot:
            return False
        self._last_snapshot = snapshot
        self._on_snapshot(snapshot)
        return True

    def fail(self, error: Exception) -> None:
        """Report a transient error; the subscription stays open."""
        if self._active and self._on_error is not None:
            self._on_error(error)


class DocumentStore(ABC):
    """
    Abstract interface for remote document storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Subscribe to documents where `field == value`.

        The current matching set is delivered before this returns, and again
        every time it changes.

        Raises:
            StorageError: If the subscription cannot be established
        """
        pass

    @abstractmethod
    async def create(self, collection: str, data: Document) -> str:
        """
        Create a document with a store-assigned id.

        Returns:
            The new document id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> None:
        """
        Delete a document by id. Deleting a missing document is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Document]:
        """
        Read a single document.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, collection: str, key: str, data: Document) -> None:
        """
        Create or overwrite the document at `key` wholesale.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def query(self, collection: str, field: str, value: Any) -> Snapshot:
        """
        One-shot read of every document where `field == value`.

        Returns:
            List of (document_id, document) pairs
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CascadeDeletionError(StorageError):
    """Some documents could not be deleted during a bulk delete."""

    def __init__(self, collection: str, failed_ids: list[str]):
        self.collection = collection
        self.failed_ids = failed_ids
        super().__init__(
            f"Failed to delete {len(failed_ids)} document(s) from {collection}"
        )
