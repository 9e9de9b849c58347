"""
Abstract Document Store Interface

DESIGN DECISION: The ledgers talk to a generic document store, not to a
specific database. This allows us to:
1. Run everything against in-memory storage in tests
2. Keep Google Sheets (or anything else) as a swappable adapter
3. Keep business logic decoupled from storage implementation

The contract is intentionally small: create/get/update/delete, a filtered
query over one collection, and an all-or-nothing write batch.
Documents are plain JSON-compatible dicts; dates are ISO strings so
range filters on them compare correctly. Timestamps are parsed back to
datetimes before comparing, since their serialized width varies
(the fraction is omitted when microsecond is 0).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import to_jsonable_python


FilterOp = Literal["==", ">=", "<=", ">", "<"]

_MISSING = object()


class DocRef(BaseModel):
    """Address of one document: collection path plus document id."""
    model_config = ConfigDict(frozen=True)

    collection: str
    id: str


class Document(BaseModel):
    """A stored document as returned by queries."""

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class Filter(BaseModel):
    """
    A single query condition.

    `field` may be a dotted path (e.g. "credit_data.card_id") to reach
    into nested objects. Documents missing the field never match.
    """
    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOp = "=="
    value: Any = None

    @field_validator("value", mode="before")
    @classmethod
    def normalize_value(cls, v: Any) -> Any:
        """Compare against the stored (JSON) form: dates as ISO strings, enums as values."""
        if isinstance(v, Enum):
            return v.value
        return to_jsonable_python(v)

    def matches(self, data: dict[str, Any]) -> bool:
        actual = resolve_path(data, self.field)
        if actual is _MISSING:
            return False
        actual = comparable(actual)
        expected = comparable(self.value)
        if self.op == "==":
            return actual == expected
        try:
            if self.op == ">=":
                return actual >= expected
            if self.op == "<=":
                return actual <= expected
            if self.op == ">":
                return actual > expected
            return actual < expected
        except TypeError:
            return False


class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    descending: bool = False


def resolve_path(data: dict[str, Any], path: str) -> Any:
    """Walk a dotted path through nested dicts."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def comparable(value: Any) -> Any:
    """Stored value in comparison form; ISO timestamps become datetimes."""
    if isinstance(value, str) and "T" in value:
        try:
            return isoparse(value)
        except ValueError:
            return value
    return value


def sort_documents(docs: list[Document], order_by: Optional[OrderBy]) -> list[Document]:
    """Sort by one field; documents missing it (or holding None) go last."""
    if order_by is None:
        return docs

    present = []
    absent = []
    for doc in docs:
        value = resolve_path(doc.data, order_by.field)
        if value is _MISSING or value is None:
            absent.append(doc)
        else:
            present.append(doc)

    present.sort(
        key=lambda d: comparable(resolve_path(d.data, order_by.field)),
        reverse=order_by.descending,
    )
    return present + absent


class WriteBatch(ABC):
    """
    A group of writes committed all-or-nothing.

    set/update/delete only stage operations; nothing is written
    until commit() succeeds.
    """

    def __init__(self):
        self._ops: list[tuple[str, DocRef, Optional[dict[str, Any]]]] = []

    def set(self, ref: DocRef, data: dict[str, Any]) -> 'WriteBatch':
        self._ops.append(("set", ref, to_jsonable_python(data)))
        return self

    def update(self, ref: DocRef, fields: dict[str, Any]) -> 'WriteBatch':
        self._ops.append(("update", ref, to_jsonable_python(fields)))
        return self

    def delete(self, ref: DocRef) -> 'WriteBatch':
        self._ops.append(("delete", ref, None))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    @abstractmethod
    async def commit(self) -> None:
        """
        Apply every staged operation atomically.

        Raises:
            NotFoundError: If an update targets a missing document
            StorageError: If the backend write fails
        """
        pass


class DocumentStore(ABC):
    """
    Abstract interface for the per-user document space.

    Any storage implementation (in-memory, Google Sheets, Firestore, etc.)
    must implement these methods.
    """

    def new_ref(self, collection: str) -> DocRef:
        """Allocate a reference for a document that does not exist yet."""
        return DocRef(collection=collection, id=uuid4().hex)

    @abstractmethod
    async def create(self, collection: str, data: dict[str, Any]) -> str:
        """
        Store a new document.

        Returns:
            The store-assigned document id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, ref: DocRef) -> Optional[dict[str, Any]]:
        """
        Fetch one document.

        Returns:
            The document fields, or None if it doesn't exist
        """
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[OrderBy] = None,
    ) -> list[Document]:
        """
        List documents in a collection matching every filter.

        Args:
            collection: Collection path, e.g. "users/u1/expenses"
            filters: Conditions that must all hold
            order_by: Optional sort; documents missing the field go last

        Returns:
            Matching documents
        """
        pass

    @abstractmethod
    async def update(self, ref: DocRef, fields: dict[str, Any]) -> None:
        """
        Merge top-level fields into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, ref: DocRef) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        pass

    @abstractmethod
    def now(self) -> datetime:
        """Store timestamp; strictly increasing across calls."""
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
