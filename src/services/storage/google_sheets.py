"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is used as the hosted backend because:
1. Users can look at their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each collection is one worksheet. Each document is one row:
[id, user_id, data_json, updated_at]. The user id is duplicated out of the
JSON so the sheet stays readable and filterable by hand.

TRADEOFFS:
- Sheets has no push notifications. Subscriptions are re-delivered after
  every write made through this store, and poll() picks up edits made
  elsewhere. poll() is cooperative: the caller decides when to run it.
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.config.settings import GoogleSheetsSettings
from src.services.storage.interface import (
    ConnectionError,
    Document,
    DocumentStore,
    ErrorCallback,
    Snapshot,
    SnapshotCallback,
    StorageError,
    Subscription,
)


DOCUMENT_COLUMNS = [
    "id",
    "user_id",
    "data_json",
    "updated_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        title = self._settings.sheet_name_for(collection)
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Documents are stored as rows in one worksheet per collection.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._subscriptions: list[Subscription] = []
        self._logger = structlog.get_logger(__name__)

    def _document_to_row(self, document_id: str, data: Document) -> list:
        """Convert a document to a spreadsheet row."""
        return [
            document_id,
            str(data.get("userId", "")),
            json.dumps(data, default=str),
            datetime.utcnow().isoformat(),
        ]

    def _read_rows(self, collection: str) -> list[tuple[int, str, Document]]:
        """
        Read every document row of a collection.

        Returns (sheet_row_number, document_id, document). Malformed rows
        are logged and skipped.
        """
        try:
            sheet = self._client.get_collection_sheet(collection)
            all_rows = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}")

        documents = []
        # Row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                data = json.loads(row[2]) if len(row) > 2 and row[2] else {}
            except json.JSONDecodeError:
                self._logger.warning(
                    "malformed_document_row",
                    collection=collection,
                    row=idx,
                )
                continue
            documents.append((idx, row[0], data))
        return documents

    def _find_row(self, collection: str, document_id: str) -> Optional[tuple[int, Document]]:
        for idx, doc_id, data in self._read_rows(collection):
            if doc_id == document_id:
                return idx, data
        return None

    def _matching(self, collection: str, field: str, value: Any) -> Snapshot:
        return [
            (doc_id, data)
            for _, doc_id, data in self._read_rows(collection)
            if data.get(field) == value
        ]

    def _refresh(self, collection: str) -> None:
        """Re-deliver snapshots for a collection after a local write."""
        self._subscriptions = [s for s in self._subscriptions if s.active]
        for subscription in list(self._subscriptions):
            if subscription.collection != collection:
                continue
            try:
                snapshot = self._matching(collection, subscription.field, subscription.value)
            except StorageError as e:
                subscription.fail(e)
                continue
            subscription.deliver(snapshot, force=False)

    async def poll(self) -> int:
        """
        Check every active subscription for remote changes.

        Returns the number of subscriptions that received a new snapshot.
        Read errors are reported to the subscription, never raised.
        """
        delivered = 0
        self._subscriptions = [s for s in self._subscriptions if s.active]
        for subscription in list(self._subscriptions):
            try:
                snapshot = self._matching(
                    subscription.collection,
                    subscription.field,
                    subscription.value,
                )
            except StorageError as e:
                self._logger.warning(
                    "subscription_poll_failed",
                    collection=subscription.collection,
                    error=str(e),
                )
                subscription.fail(e)
                continue
            if subscription.deliver(snapshot, force=False):
                delivered += 1
        return delivered

    async def subscribe(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Subscribe and deliver the initial snapshot."""
        snapshot = self._matching(collection, field, value)
        subscription = Subscription(collection, field, value, on_snapshot, on_error)
        self._subscriptions.append(subscription)
        subscription.deliver(snapshot)
        return subscription

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create(self, collection: str, data: Document) -> str:
        """Append a new document row."""
        document_id = uuid4().hex
        try:
            sheet = self._client.get_collection_sheet(collection)
            sheet.append_row(self._document_to_row(document_id, data), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to create document in {collection}: {e}")
        self._refresh(collection)
        return document_id

    async def delete(self, collection: str, document_id: str) -> None:
        """Delete a document row if it exists."""
        found = self._find_row(collection, document_id)
        if found is None:
            return
        try:
            sheet = self._client.get_collection_sheet(collection)
            sheet.delete_rows(found[0])
        except Exception as e:
            raise StorageError(f"Failed to delete {collection}/{document_id}: {e}")
        self._refresh(collection)

    async def get(self, collection: str, key: str) -> Optional[Document]:
        found = self._find_row(collection, key)
        return found[1] if found else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def set(self, collection: str, key: str, data: Document) -> None:
        """Overwrite the document row at `key`, or append it."""
        found = self._find_row(collection, key)
        row = self._document_to_row(key, data)
        try:
            sheet = self._client.get_collection_sheet(collection)
            if found is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                idx = found[0]
                sheet.update(range_name=f"A{idx}:D{idx}", values=[row])
        except Exception as e:
            raise StorageError(f"Failed to write {collection}/{key}: {e}")
        self._refresh(collection)

    async def query(self, collection: str, field: str, value: Any) -> Snapshot:
        return self._matching(collection, field, value)
