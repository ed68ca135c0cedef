import asyncio
import copy
from collections.abc import Sequence
from typing import Any
from uuid import uuid4

from recurring_ledger.domain.paths import join_path, parent_path
from recurring_ledger.integration.store import Document, DocumentNotFoundError, Filter


def _matches(data: dict[str, Any], flt: Filter) -> bool:
    if flt.field not in data:
        return False
    value = data[flt.field]
    try:
        if flt.op == "==":
            return value == flt.value
        if flt.op == ">=":
            return value >= flt.value
        if flt.op == "<=":
            return value <= flt.value
        if flt.op == "array_contains":
            return isinstance(value, list) and flt.value in value
    except TypeError:
        # Firestore never matches across value types
        return False
    raise ValueError(f"Unsupported filter operator: {flt.op}")


class InMemoryDocumentStore:
    """Process-local document tree keyed by full document path."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def _snapshot(self, path: str) -> Document:
        return Document(
            id=path.rsplit("/", 1)[-1],
            path=path,
            data=copy.deepcopy(self._documents[path]),
        )

    def _children(self, collection: str) -> list[str]:
        collection = join_path(collection)
        return sorted(path for path in self._documents if parent_path(path) == collection)

    # Helpers for seeding and inspecting state outside the async API.

    def put(self, path: str, data: dict[str, Any]) -> None:
        self._documents[join_path(path)] = copy.deepcopy(data)

    def get(self, path: str) -> dict[str, Any] | None:
        data = self._documents.get(join_path(path))
        return copy.deepcopy(data) if data is not None else None

    def documents(self, collection: str) -> list[Document]:
        return [self._snapshot(path) for path in self._children(collection)]

    # DocumentStore API

    async def list_ids(self, collection: str) -> list[str]:
        collection = join_path(collection)
        depth = collection.count("/") + 2
        ids: set[str] = set()
        for path in self._documents:
            segments = path.split("/")
            # Parents that only exist through their sub-collections count too
            if len(segments) >= depth and "/".join(segments[: depth - 1]) == collection:
                ids.add(segments[depth - 1])
        return sorted(ids)

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter],
        limit: int | None = None,
    ) -> list[Document]:
        results = [
            self._snapshot(path)
            for path in self._children(collection)
            if all(_matches(self._documents[path], flt) for flt in filters)
        ]
        return results[:limit] if limit is not None else results

    async def query_group(self, name: str, filters: Sequence[Filter]) -> list[Document]:
        results = []
        for path in sorted(self._documents):
            segments = path.split("/")
            if len(segments) < 2 or segments[-2] != name:
                continue
            if all(_matches(self._documents[path], flt) for flt in filters):
                results.append(self._snapshot(path))
        return results

    async def page(self, collection: str, limit: int) -> list[Document]:
        return [self._snapshot(path) for path in self._children(collection)[:limit]]

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        path = join_path(collection, doc_id)
        async with self._lock:
            if path in self._documents:
                return False
            self._documents[path] = copy.deepcopy(data)
            return True

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid4().hex[:20]
        async with self._lock:
            self._documents[join_path(collection, doc_id)] = copy.deepcopy(data)
        return doc_id

    async def delete(self, path: str) -> None:
        async with self._lock:
            self._documents.pop(join_path(path), None)

    async def delete_batch(self, paths: Sequence[str]) -> None:
        async with self._lock:
            for path in paths:
                self._documents.pop(join_path(path), None)

    async def array_remove(self, path: str, field_name: str, value: Any) -> None:
        path = join_path(path)
        async with self._lock:
            if path not in self._documents:
                raise DocumentNotFoundError(path)
            current = self._documents[path].get(field_name)
            if isinstance(current, list):
                self._documents[path][field_name] = [item for item in current if item != value]
