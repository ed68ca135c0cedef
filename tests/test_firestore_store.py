from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound

from recurring_ledger.integration.firestore import MAX_BATCH_WRITES, FirestoreDocumentStore
from recurring_ledger.integration.store import DocumentNotFoundError, Filter


def _snapshot(doc_id: str, path: str, data: dict[str, Any]) -> MagicMock:
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.reference.path = path
    snapshot.to_dict.return_value = data
    return snapshot


async def _stream(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


@pytest.fixture
def mock_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(mock_client: MagicMock) -> FirestoreDocumentStore:
    return FirestoreDocumentStore(client=mock_client)


@pytest.mark.anyio
async def test_create_returns_false_when_document_exists(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    doc_ref = mock_client.collection.return_value.document.return_value
    doc_ref.create = AsyncMock(side_effect=[None, AlreadyExists("exists")])

    assert await store.create("users/u1/transactions", "abc", {"amount": 1}) is True
    assert await store.create("users/u1/transactions", "abc", {"amount": 1}) is False

    mock_client.collection.assert_called_with("users/u1/transactions")
    mock_client.collection.return_value.document.assert_called_with("abc")


@pytest.mark.anyio
async def test_page_orders_by_document_id(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    limited = mock_client.collection.return_value.order_by.return_value.limit.return_value
    limited.stream = MagicMock(
        return_value=_stream([_snapshot("a", "items/a", {"n": 1}), _snapshot("b", "items/b", {})])
    )

    page = await store.page("items", 2)

    mock_client.collection.return_value.order_by.assert_called_once_with("__name__")
    mock_client.collection.return_value.order_by.return_value.limit.assert_called_once_with(2)
    assert [(doc.id, doc.path, doc.data) for doc in page] == [
        ("a", "items/a", {"n": 1}),
        ("b", "items/b", {}),
    ]


@pytest.mark.anyio
async def test_query_applies_each_filter(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    collection = mock_client.collection.return_value
    collection.where.return_value = collection
    collection.limit.return_value = collection
    collection.stream = MagicMock(return_value=_stream([]))

    await store.query(
        "users/u1/transactions",
        [Filter("isRecurring", "==", True), Filter("recurringDay", "==", 5)],
        limit=1,
    )

    assert collection.where.call_count == 2
    first_filter = collection.where.call_args_list[0].kwargs["filter"]
    assert first_filter.field_path == "isRecurring"
    assert first_filter.op_string == "=="
    assert first_filter.value is True
    collection.limit.assert_called_once_with(1)


@pytest.mark.anyio
async def test_delete_batch_commits_once(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    batch = MagicMock()
    batch.commit = AsyncMock()
    mock_client.batch.return_value = batch

    await store.delete_batch(["items/a", "items/b"])

    assert batch.delete.call_count == 2
    mock_client.document.assert_any_call("items/a")
    batch.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_delete_batch_empty_and_oversized(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    await store.delete_batch([])
    mock_client.batch.assert_not_called()

    with pytest.raises(ValueError):
        await store.delete_batch([f"items/{i}" for i in range(MAX_BATCH_WRITES + 1)])


@pytest.mark.anyio
async def test_array_remove_missing_document(
    store: FirestoreDocumentStore, mock_client: MagicMock
) -> None:
    mock_client.document.return_value.update = AsyncMock(side_effect=NotFound("gone"))

    with pytest.raises(DocumentNotFoundError):
        await store.array_remove("partnerships/p1", "members", "u1")
