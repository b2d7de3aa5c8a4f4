"""Services package."""

from src.services.identity import (
    AuthError,
    AuthErrorCode,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from src.services.storage import (
    ConnectionError,
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
    Subscription,
)

__all__ = [
    # Identity
    "AuthError",
    "AuthErrorCode",
    "IdentityProvider",
    "InMemoryIdentityProvider",
    # Storage
    "ConnectionError",
    "DocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
    "Subscription",
]
