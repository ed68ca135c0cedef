from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from recurring_ledger.core.configuration import JobSettings, load_job_settings
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)

FilterOp = Literal["==", ">=", "<=", "array_contains"]

# Firestore rejects batches above 500 writes.
MAX_BATCH_WRITES = 500


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class Document:
    id: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)


class DocumentNotFoundError(LookupError):
    pass


class DocumentStore(Protocol):
    async def list_ids(self, collection: str) -> list[str]: ...

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter],
        limit: int | None = None,
    ) -> list[Document]: ...

    async def query_group(self, name: str, filters: Sequence[Filter]) -> list[Document]: ...

    async def page(self, collection: str, limit: int) -> list[Document]: ...

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool: ...

    async def add(self, collection: str, data: dict[str, Any]) -> str: ...

    async def delete(self, path: str) -> None: ...

    async def delete_batch(self, paths: Sequence[str]) -> None: ...

    async def array_remove(self, path: str, field_name: str, value: Any) -> None: ...


_STORE: DocumentStore | None = None


def init_store(job_settings: JobSettings | None = None) -> DocumentStore:
    """Create the process-wide store on first call; later calls return it."""
    global _STORE
    if _STORE is not None:
        return _STORE

    job_settings = job_settings or load_job_settings()
    if job_settings.store_backend == "memory":
        from recurring_ledger.integration.memory import InMemoryDocumentStore

        logger.warning("[STORE] Using in-memory store; data is lost on restart.")
        _STORE = InMemoryDocumentStore()
    else:
        from recurring_ledger.integration.firestore import FirestoreDocumentStore

        _STORE = FirestoreDocumentStore(
            project=job_settings.firestore_project,
            database=job_settings.firestore_database,
        )
        logger.info(
            "[STORE] Firestore store initialized (project=%s, database=%s).",
            job_settings.firestore_project or "default",
            job_settings.firestore_database or "(default)",
        )
    return _STORE


def reset_store() -> None:
    global _STORE
    _STORE = None
