"""Shared fixtures: in-memory collaborators with switchable failures."""

import pytest

from src.services.identity import InMemoryIdentityProvider
from src.services.storage import InMemoryDocumentStore, StorageError


class FlakyStore(InMemoryDocumentStore):
    """In-memory store whose calls can be made to fail or to wait."""

    def __init__(self):
        super().__init__()
        self.fail_create = False
        self.fail_delete_ids = set()
        self.fail_subscribe = False
        self.fail_get = False
        self.fail_set = False
        self.create_gate = None
        self.calls = []

    async def subscribe(self, *args, **kwargs):
        if self.fail_subscribe:
            raise RuntimeError("permission denied")
        return await super().subscribe(*args, **kwargs)

    async def create(self, collection, data):
        self.calls.append(("create", collection))
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_create:
            raise StorageError("write rejected")
        return await super().create(collection, data)

    async def delete(self, collection, document_id):
        self.calls.append(("delete", collection))
        if document_id in self.fail_delete_ids:
            raise StorageError("delete rejected")
        await super().delete(collection, document_id)

    async def get(self, collection, key):
        if self.fail_get:
            raise RuntimeError("timeout")
        return await super().get(collection, key)

    async def set(self, collection, key, data):
        self.calls.append(("set", collection))
        if self.fail_set:
            raise StorageError("write rejected")
        await super().set(collection, key, data)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def provider():
    return InMemoryIdentityProvider()
