"""
In-Memory Document Store

Process-local implementation of DocumentStore for tests and local runs.

Writes are applied first, then every active subscription on the touched
collection receives its full matching set synchronously, in subscription
order. That mirrors how a hosted store confirms a write before the listener
fires, without needing an event loop of its own.
"""

import copy
from typing import Any, Optional
from uuid import uuid4

import structlog

from src.services.storage.interface import (
    Document,
    DocumentStore,
    ErrorCallback,
    Snapshot,
    SnapshotCallback,
    Subscription,
)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store."""

    def __init__(self):
        self._collections: dict[str, dict[str, Document]] = {}
        self._subscriptions: list[Subscription] = []
        self._logger = structlog.get_logger(__name__)

    def _collection(self, name: str) -> dict[str, Document]:
        return self._collections.setdefault(name, {})

    def _matching(self, collection: str, field: str, value: Any) -> Snapshot:
        return [
            (doc_id, copy.deepcopy(doc))
            for doc_id, doc in self._collection(collection).items()
            if doc.get(field) == value
        ]

    def _notify(self, collection: str) -> None:
        # Drop cancelled handles so they cannot be revisited
        self._subscriptions = [s for s in self._subscriptions if s.active]
        for subscription in list(self._subscriptions):
            if subscription.collection != collection:
                continue
            snapshot = self._matching(collection, subscription.field, subscription.value)
            subscription.deliver(snapshot)

    @property
    def active_subscription_count(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    async def subscribe(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        subscription = Subscription(collection, field, value, on_snapshot, on_error)
        self._subscriptions.append(subscription)
        self._logger.debug("subscription_opened", collection=collection, field=field)
        subscription.deliver(self._matching(collection, field, value))
        return subscription

    async def create(self, collection: str, data: Document) -> str:
        document_id = uuid4().hex
        self._collection(collection)[document_id] = copy.deepcopy(data)
        self._notify(collection)
        return document_id

    async def delete(self, collection: str, document_id: str) -> None:
        if self._collection(collection).pop(document_id, None) is not None:
            self._notify(collection)

    async def get(self, collection: str, key: str) -> Optional[Document]:
        document = self._collection(collection).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, collection: str, key: str, data: Document) -> None:
        self._collection(collection)[key] = copy.deepcopy(data)
        self._notify(collection)

    async def query(self, collection: str, field: str, value: Any) -> Snapshot:
        return self._matching(collection, field, value)
