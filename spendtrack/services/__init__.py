"""Services package."""

from spendtrack.services.storage import (
    ConnectionError,
    DocRef,
    Document,
    DocumentStore,
    Filter,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    OrderBy,
    StorageError,
    WriteBatch,
)

__all__ = [
    "ConnectionError",
    "DocRef",
    "Document",
    "DocumentStore",
    "Filter",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "OrderBy",
    "StorageError",
    "WriteBatch",
]
