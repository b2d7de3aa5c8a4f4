"""
Storage Services Package

Provides the abstract document store interface and its implementations.
Google Sheets is the hosted backend; the in-memory store is used for tests
and local runs.
"""

from src.services.storage.interface import (
    CascadeDeletionError,
    ConnectionError,
    Document,
    DocumentStore,
    NotFoundError,
    Snapshot,
    StorageError,
    Subscription,
)
from src.services.storage.memory import InMemoryDocumentStore
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "Document",
    "DocumentStore",
    "Snapshot",
    "Subscription",
    # Exceptions
    "CascadeDeletionError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
