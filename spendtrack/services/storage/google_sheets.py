"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is offered as a backend because:
1. Users can view their expenses and installments directly in Sheets
2. No database setup required
3. Easy to export/migrate later

Every document of every collection lives in ONE worksheet with the columns
collection | id | created_at | data_json. A batch commit rewrites the whole
worksheet with a single values update, which is the only write Sheets
applies atomically.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- Every read loads the whole sheet (we filter in Python)
- Concurrent writers can overwrite each other (single user per sheet)
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from pydantic_core import to_jsonable_python
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spendtrack.config import get_settings
from spendtrack.services.storage.interface import (
    ConnectionError,
    DocRef,
    Document,
    DocumentStore,
    Filter,
    NotFoundError,
    OrderBy,
    StorageError,
    WriteBatch,
    sort_documents,
)
from spendtrack.services.storage.memory import Collections, apply_ops


DOCUMENT_COLUMNS = [
    "collection",
    "id",
    "created_at",
    "data_json",
]

# Transient API failures are retried; anything else surfaces immediately
api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

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

    def get_documents_sheet(self) -> gspread.Worksheet:
        """Get or create the Documents worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.documents_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.documents_sheet_name,
                rows=2000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class GoogleSheetsWriteBatch(WriteBatch):

    def __init__(self, store: 'GoogleSheetsDocumentStore'):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        self._store._commit(self._ops)
        self._ops = []


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    One document per row; the document body is JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._last_now: Optional[datetime] = None

    @api_retry
    def _read_rows(self) -> list[list[str]]:
        """All document rows, header excluded, blank rows kept so indexes match the sheet."""
        return self._client.get_documents_sheet().get_all_values()[1:]

    @api_retry
    def _append_row(self, row: list[str]) -> None:
        self._client.get_documents_sheet().append_row(row, value_input_option="RAW")

    @api_retry
    def _write_all(self, rows: list[list[str]]) -> None:
        """Overwrite the sheet from A1, growing the grid first; update() never adds rows."""
        sheet = self._client.get_documents_sheet()
        if sheet.row_count < len(rows):
            sheet.add_rows(len(rows) - sheet.row_count)
        sheet.update(
            range_name="A1",
            values=rows,
            value_input_option="RAW",
        )

    @staticmethod
    def _row_to_document(row: list[str]) -> tuple[str, Document]:
        collection, doc_id = row[0], row[1]
        data_json = row[3] if len(row) > 3 and row[3] else "{}"
        return collection, Document(id=doc_id, data=json.loads(data_json))

    @staticmethod
    def _document_row(collection: str, doc_id: str, data: dict[str, Any]) -> list[str]:
        return [
            collection,
            doc_id,
            str(data.get("created_at") or ""),
            json.dumps(data),
        ]

    def _find_row(self, rows: list[list[str]], ref: DocRef) -> Optional[int]:
        """1-based sheet row index of a document (row 1 is the header)."""
        for idx, row in enumerate(rows, start=2):
            if len(row) > 1 and row[0] == ref.collection and row[1] == ref.id:
                return idx
        return None

    def _load(self) -> Collections:
        collections: Collections = {}
        for row in self._read_rows():
            if len(row) < 2 or not row[0] or not row[1]:
                continue
            collection, doc = self._row_to_document(row)
            collections.setdefault(collection, {})[doc.id] = doc.data
        return collections

    async def create(self, collection: str, data: dict[str, Any]) -> str:
        ref = self.new_ref(collection)
        try:
            self._append_row(self._document_row(collection, ref.id, to_jsonable_python(data)))
        except Exception as e:
            raise StorageError(f"Failed to create document in {collection}: {e}")
        return ref.id

    async def get(self, ref: DocRef) -> Optional[dict[str, Any]]:
        try:
            return self._load().get(ref.collection, {}).get(ref.id)
        except Exception as e:
            raise StorageError(f"Failed to get document {ref.collection}/{ref.id}: {e}")

    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[OrderBy] = None,
    ) -> list[Document]:
        filters = filters or []
        try:
            docs = [
                Document(id=doc_id, data=data)
                for doc_id, data in self._load().get(collection, {}).items()
                if all(f.matches(data) for f in filters)
            ]
        except Exception as e:
            raise StorageError(f"Failed to query {collection}: {e}")
        return sort_documents(docs, order_by)

    async def update(self, ref: DocRef, fields: dict[str, Any]) -> None:
        try:
            rows = self._read_rows()
            idx = self._find_row(rows, ref)
            if idx is None:
                raise NotFoundError(f"Document not found: {ref.collection}/{ref.id}")

            _, doc = self._row_to_document(rows[idx - 2])
            doc.data.update(to_jsonable_python(fields))
            self._client.get_documents_sheet().update_cell(idx, 4, json.dumps(doc.data))
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update document {ref.collection}/{ref.id}: {e}")

    async def delete(self, ref: DocRef) -> bool:
        try:
            idx = self._find_row(self._read_rows(), ref)
            if idx is None:
                return False
            self._client.get_documents_sheet().delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete document {ref.collection}/{ref.id}: {e}")

    def batch(self) -> GoogleSheetsWriteBatch:
        return GoogleSheetsWriteBatch(self)

    def now(self) -> datetime:
        ts = datetime.now(timezone.utc)
        if self._last_now is not None and ts <= self._last_now:
            ts = self._last_now + timedelta(microseconds=1)
        self._last_now = ts
        return ts

    def _commit(self, ops: list[tuple[str, DocRef, Optional[dict[str, Any]]]]) -> None:
        try:
            previous_rows = self._read_rows()
            collections = self._load()
            apply_ops(collections, ops)

            rows = [DOCUMENT_COLUMNS]
            for collection, docs in collections.items():
                for doc_id, data in docs.items():
                    rows.append(self._document_row(collection, doc_id, data))

            # Blank out rows left over from a longer previous sheet
            blank = [""] * len(DOCUMENT_COLUMNS)
            while len(rows) < len(previous_rows) + 1:
                rows.append(blank)

            self._write_all(rows)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to commit batch: {e}")
