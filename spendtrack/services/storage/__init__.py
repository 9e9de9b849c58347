"""
Storage Services Package

Provides the abstract document store contract and its implementations:
an in-memory store and a Google Sheets store.
"""

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
)
from spendtrack.services.storage.memory import InMemoryDocumentStore
from spendtrack.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "DocRef",
    "Document",
    "DocumentStore",
    "Filter",
    "OrderBy",
    "WriteBatch",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryDocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
