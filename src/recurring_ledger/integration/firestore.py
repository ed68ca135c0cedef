import asyncio
from collections.abc import Sequence
from typing import Any

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from recurring_ledger.integration.store import (
    MAX_BATCH_WRITES,
    Document,
    DocumentNotFoundError,
    Filter,
)
from recurring_ledger.logger import get_logger

logger = get_logger(__name__)


def _to_document(snapshot: Any) -> Document:
    return Document(
        id=snapshot.id,
        path=snapshot.reference.path,
        data=snapshot.to_dict() or {},
    )


class FirestoreDocumentStore:
    def __init__(
        self,
        project: str | None = None,
        database: str | None = None,
        client: firestore.AsyncClient | None = None,
    ):
        self.project = project
        self.database = database
        self._client = client
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> firestore.AsyncClient:
        client = self._client
        if client is not None:
            return client

        async with self._client_lock:
            if self._client is None:
                kwargs: dict[str, Any] = {}
                if self.project:
                    kwargs["project"] = self.project
                if self.database:
                    kwargs["database"] = self.database
                self._client = firestore.AsyncClient(**kwargs)
            return self._client

    @staticmethod
    def _apply_filters(query: Any, filters: Sequence[Filter]) -> Any:
        for flt in filters:
            query = query.where(filter=FieldFilter(flt.field, flt.op, flt.value))
        return query

    async def list_ids(self, collection: str) -> list[str]:
        client = await self._get_client()
        # list_documents also yields "missing" parents that only hold sub-collections
        return [ref.id async for ref in client.collection(collection).list_documents()]

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter],
        limit: int | None = None,
    ) -> list[Document]:
        client = await self._get_client()
        query = self._apply_filters(client.collection(collection), filters)
        if limit is not None:
            query = query.limit(limit)
        return [_to_document(snapshot) async for snapshot in query.stream()]

    async def query_group(self, name: str, filters: Sequence[Filter]) -> list[Document]:
        client = await self._get_client()
        query = self._apply_filters(client.collection_group(name), filters)
        return [_to_document(snapshot) async for snapshot in query.stream()]

    async def page(self, collection: str, limit: int) -> list[Document]:
        client = await self._get_client()
        query = client.collection(collection).order_by("__name__").limit(limit)
        return [_to_document(snapshot) async for snapshot in query.stream()]

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        client = await self._get_client()
        try:
            await client.collection(collection).document(doc_id).create(data)
        except AlreadyExists:
            logger.debug("[STORE] %s/%s already exists; create skipped.", collection, doc_id)
            return False
        return True

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        client = await self._get_client()
        _, ref = await client.collection(collection).add(data)
        return ref.id

    async def delete(self, path: str) -> None:
        client = await self._get_client()
        await client.document(path).delete()

    async def delete_batch(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        if len(paths) > MAX_BATCH_WRITES:
            raise ValueError(
                f"Batch of {len(paths)} deletes exceeds the {MAX_BATCH_WRITES} write limit."
            )
        client = await self._get_client()
        batch = client.batch()
        for path in paths:
            batch.delete(client.document(path))
        await batch.commit()

    async def array_remove(self, path: str, field_name: str, value: Any) -> None:
        client = await self._get_client()
        try:
            await client.document(path).update({field_name: firestore.ArrayRemove([value])})
        except NotFound as exc:
            raise DocumentNotFoundError(path) from exc
