"""
In-Memory Document Store

Used by the test-suite and for local runs without a backend.
Batches are applied to a copy of the data and swapped in only
when every operation succeeded, so a failed batch leaves no trace.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic_core import to_jsonable_python

from spendtrack.services.storage.interface import (
    DocRef,
    Document,
    DocumentStore,
    Filter,
    NotFoundError,
    OrderBy,
    WriteBatch,
    sort_documents,
)


Collections = dict[str, dict[str, dict[str, Any]]]


class InMemoryWriteBatch(WriteBatch):

    def __init__(self, store: 'InMemoryDocumentStore'):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        self._store._apply(self._ops)
        self._ops = []


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed implementation of the document store contract."""

    def __init__(self):
        self._collections: Collections = {}
        self._last_now: Optional[datetime] = None

    async def create(self, collection: str, data: dict[str, Any]) -> str:
        ref = self.new_ref(collection)
        self._collections.setdefault(collection, {})[ref.id] = to_jsonable_python(data)
        return ref.id

    async def get(self, ref: DocRef) -> Optional[dict[str, Any]]:
        data = self._collections.get(ref.collection, {}).get(ref.id)
        return copy.deepcopy(data) if data is not None else None

    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[OrderBy] = None,
    ) -> list[Document]:
        filters = filters or []
        docs = [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if all(f.matches(data) for f in filters)
        ]
        return sort_documents(docs, order_by)

    async def update(self, ref: DocRef, fields: dict[str, Any]) -> None:
        docs = self._collections.get(ref.collection, {})
        if ref.id not in docs:
            raise NotFoundError(f"Document not found: {ref.collection}/{ref.id}")
        docs[ref.id].update(to_jsonable_python(fields))

    async def delete(self, ref: DocRef) -> bool:
        docs = self._collections.get(ref.collection, {})
        return docs.pop(ref.id, None) is not None

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    def now(self) -> datetime:
        ts = datetime.now(timezone.utc)
        if self._last_now is not None and ts <= self._last_now:
            ts = self._last_now + timedelta(microseconds=1)
        self._last_now = ts
        return ts

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        return len(self._collections.get(collection, {}))

    def _apply(self, ops: list[tuple[str, DocRef, Optional[dict[str, Any]]]]) -> None:
        staged = copy.deepcopy(self._collections)
        apply_ops(staged, ops)
        self._collections = staged


def apply_ops(
    collections: Collections,
    ops: list[tuple[str, DocRef, Optional[dict[str, Any]]]],
) -> None:
    """
    Apply staged batch operations to a collections mapping in place.

    Raises NotFoundError on an update of a missing document; callers
    pass a copy so a failure leaves the original untouched.
    """
    for action, ref, data in ops:
        docs = collections.setdefault(ref.collection, {})
        if action == "set":
            docs[ref.id] = copy.deepcopy(data)
        elif action == "update":
            if ref.id not in docs:
                raise NotFoundError(f"Document not found: {ref.collection}/{ref.id}")
            docs[ref.id].update(copy.deepcopy(data))
        else:
            docs.pop(ref.id, None)
