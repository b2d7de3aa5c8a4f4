"""
Tests for document stores.

The Google Sheets store is exercised against an in-process fake worksheet;
no real API calls are made.
"""

import asyncio
import json

import pytest

from src.services.storage import (
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    StorageError,
)
from src.services.storage.google_sheets import DOCUMENT_COLUMNS


def run(coro):
    return asyncio.run(coro)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the document store."""

    def __init__(self):
        self.rows = [list(DOCUMENT_COLUMNS)]
        self.fail_reads = False

    def get_all_values(self):
        if self.fail_reads:
            raise RuntimeError("quota exceeded")
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def delete_rows(self, index):
        del self.rows[index - 1]

    def update(self, range_name=None, values=None):
        index = int(range_name.split(":")[0][1:])
        self.rows[index - 1] = list(values[0])


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {}

    def get_collection_sheet(self, collection):
        return self.sheets.setdefault(collection, FakeWorksheet())


class TestInMemoryDocumentStore:
    """Tests for the in-memory store."""

    def test_subscribe_delivers_initial_snapshot(self):
        """Test that the current set arrives before subscribe returns."""
        store = InMemoryDocumentStore()
        run(store.create("expenses", {"userId": "u1", "amount": "1"}))
        received = []
        run(store.subscribe("expenses", "userId", "u1", received.append))
        assert len(received) == 1
        assert len(received[0]) == 1

    def test_writes_push_full_snapshots(self):
        """Test that each write delivers the complete matching set."""
        store = InMemoryDocumentStore()
        received = []
        run(store.subscribe("expenses", "userId", "u1", received.append))
        first = run(store.create("expenses", {"userId": "u1"}))
        run(store.create("expenses", {"userId": "u1"}))
        run(store.delete("expenses", first))
        assert [len(snapshot) for snapshot in received] == [0, 1, 2, 1]

    def test_subscription_only_sees_its_owner(self):
        """Test that snapshots are filtered by field value."""
        store = InMemoryDocumentStore()
        received = []
        run(store.subscribe("expenses", "userId", "u1", received.append))
        run(store.create("expenses", {"userId": "u2"}))
        assert all(snapshot == [] for snapshot in received)

    def test_cancel_stops_delivery(self):
        """Test that nothing arrives after cancel()."""
        store = InMemoryDocumentStore()
        received = []
        subscription = run(store.subscribe("expenses", "userId", "u1", received.append))
        subscription.cancel()
        run(store.create("expenses", {"userId": "u1"}))
        assert len(received) == 1
        assert store.active_subscription_count == 0

    def test_get_set_and_missing(self):
        """Test keyed reads and writes."""
        store = InMemoryDocumentStore()
        assert run(store.get("budgets", "u1_2024-03")) is None
        run(store.set("budgets", "u1_2024-03", {"amount": "5"}))
        assert run(store.get("budgets", "u1_2024-03")) == {"amount": "5"}

    def test_documents_are_copied(self):
        """Test that callers cannot mutate stored documents."""
        store = InMemoryDocumentStore()
        data = {"userId": "u1", "amount": "1"}
        run(store.set("budgets", "k", data))
        data["amount"] = "999"
        fetched = run(store.get("budgets", "k"))
        fetched["amount"] = "0"
        assert run(store.get("budgets", "k"))["amount"] == "1"

    def test_delete_missing_is_not_an_error(self):
        """Test deleting a document that does not exist."""
        store = InMemoryDocumentStore()
        run(store.delete("expenses", "nope"))

    def test_query(self):
        """Test one-shot queries."""
        store = InMemoryDocumentStore()
        run(store.create("expenses", {"userId": "u1"}))
        run(store.create("expenses", {"userId": "u2"}))
        assert len(run(store.query("expenses", "userId", "u1"))) == 1


class TestGoogleSheetsDocumentStore:
    """Tests for the Google Sheets store against a fake worksheet."""

    @pytest.fixture
    def client(self):
        return FakeSheetsClient()

    @pytest.fixture
    def store(self, client):
        return GoogleSheetsDocumentStore(client=client)

    def test_create_appends_row(self, store, client):
        """Test that a document becomes one row."""
        document_id = run(store.create("expenses", {"userId": "u1", "amount": "12.50"}))
        row = client.sheets["expenses"].rows[1]
        assert row[0] == document_id
        assert row[1] == "u1"
        assert json.loads(row[2]) == {"userId": "u1", "amount": "12.50"}

    def test_set_overwrites_in_place(self, store, client):
        """Test that set() replaces the existing row."""
        run(store.set("budgets", "u1_2024-03", {"userId": "u1", "amount": "100"}))
        run(store.set("budgets", "u1_2024-03", {"userId": "u1", "amount": "200"}))
        assert len(client.sheets["budgets"].rows) == 2
        assert run(store.get("budgets", "u1_2024-03"))["amount"] == "200"

    def test_delete_removes_row(self, store, client):
        """Test that delete() removes the row."""
        document_id = run(store.create("expenses", {"userId": "u1"}))
        run(store.delete("expenses", document_id))
        assert run(store.get("expenses", document_id)) is None
        assert len(client.sheets["expenses"].rows) == 1

    def test_local_writes_redeliver(self, store):
        """Test that subscribers see writes made through the store."""
        received = []
        run(store.subscribe("expenses", "userId", "u1", received.append))
        run(store.create("expenses", {"userId": "u1"}))
        run(store.create("expenses", {"userId": "u2"}))
        assert [len(snapshot) for snapshot in received] == [0, 1]

    def test_poll_picks_up_remote_edits(self, store, client):
        """Test that poll() delivers rows written by someone else."""
        received = []
        run(store.subscribe("expenses", "userId", "u1", received.append))
        client.sheets["expenses"].rows.append(
            ["remote", "u1", json.dumps({"userId": "u1"}), "2024-03-01T00:00:00"]
        )
        assert run(store.poll()) == 1
        assert run(store.poll()) == 0
        assert received[-1][0][0] == "remote"

    def test_poll_reports_errors_to_subscriber(self, store, client):
        """Test that read failures go to on_error and keep the subscription."""
        errors = []
        subscription = run(store.subscribe("expenses", "userId", "u1", lambda s: None, errors.append))
        client.sheets["expenses"].fail_reads = True
        assert run(store.poll()) == 0
        assert len(errors) == 1
        assert isinstance(errors[0], StorageError)
        assert subscription.active

    def test_malformed_rows_are_skipped(self, store, client):
        """Test that rows with broken JSON do not break queries."""
        sheet = client.get_collection_sheet("expenses")
        sheet.rows.append(["bad", "u1", "{not json", ""])
        run(store.create("expenses", {"userId": "u1"}))
        assert len(run(store.query("expenses", "userId", "u1"))) == 1

    def test_read_failure_raises_storage_error(self, store, client):
        """Test that read failures surface as StorageError."""
        client.get_collection_sheet("budgets").fail_reads = True
        with pytest.raises(StorageError):
            run(store.get("budgets", "u1_2024-03"))
