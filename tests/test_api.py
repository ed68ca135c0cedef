from collections.abc import Generator
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from recurring_ledger.app import app
from recurring_ledger.integration.memory import InMemoryDocumentStore
from recurring_ledger.integration.users import UserDirectory
from recurring_ledger.services.account_cleanup import AccountCleanup
from recurring_ledger.services.eraser import BatchEraser
from recurring_ledger.services.recurrence import RecurrenceMaterializer

client = TestClient(app)

_STATE_KEYS = ("store", "users", "materializer", "account_cleanup", "scheduler")


@pytest.fixture
def store() -> Generator[InMemoryDocumentStore, None, None]:
    originals = {key: getattr(app.state, key, None) for key in _STATE_KEYS}
    present = {key for key in _STATE_KEYS if hasattr(app.state, key)}

    store = InMemoryDocumentStore()
    users = UserDirectory(store)
    app.state.store = store
    app.state.users = users
    app.state.materializer = RecurrenceMaterializer(store, users, timezone=timezone.utc)
    app.state.account_cleanup = AccountCleanup(store, BatchEraser(store))
    app.state.scheduler = None
    yield store

    for key in _STATE_KEYS:
        if key in present:
            setattr(app.state, key, originals[key])
        else:
            delattr(app.state, key)


def test_check_email_exists(store: InMemoryDocumentStore) -> None:
    store.put("users/u1", {"email": "ana@example.com"})

    response = client.post("/accounts/check-email-exists", json={"email": "ana@example.com"})
    assert response.status_code == 200
    assert response.json() == {"exists": True}

    response = client.post("/accounts/check-email-exists", json={"email": "bob@example.com"})
    assert response.status_code == 200
    assert response.json() == {"exists": False}


def test_check_email_accepts_callable_envelope(store: InMemoryDocumentStore) -> None:
    store.put("users/u1", {"email": "ana@example.com"})

    response = client.post(
        "/accounts/check-email-exists",
        json={"data": {"email": "ana@example.com"}},
    )
    assert response.json() == {"exists": True}


@pytest.mark.parametrize("email", ["", "   "])
def test_check_email_blank_string_is_a_lookup(store: InMemoryDocumentStore, email: str) -> None:
    store.put("users/u1", {"email": "ana@example.com"})

    response = client.post("/accounts/check-email-exists", json={"email": email})
    assert response.status_code == 200
    assert response.json() == {"exists": False}


@pytest.mark.parametrize("payload", [{}, {"email": 42}, {"email": None}, ["ana@example.com"]])
def test_check_email_invalid_argument(store: InMemoryDocumentStore, payload: object) -> None:
    response = client.post("/accounts/check-email-exists", json=payload)
    assert response.status_code == 400
    assert response.json()["error"]["status"] == "INVALID_ARGUMENT"


def test_check_email_rejects_non_json(store: InMemoryDocumentStore) -> None:
    response = client.post(
        "/accounts/check-email-exists",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_check_email_lookup_failure_is_internal(store: InMemoryDocumentStore) -> None:
    users = MagicMock()
    users.find_user_id_by_email = AsyncMock(side_effect=RuntimeError("backend down"))
    app.state.users = users

    response = client.post("/accounts/check-email-exists", json={"email": "ana@example.com"})
    assert response.status_code == 500
    assert response.json()["error"]["status"] == "INTERNAL"


def test_user_deleted_webhook(store: InMemoryDocumentStore) -> None:
    store.put("users/u1", {"email": "ana@example.com"})
    store.put("users/u1/transactions/t1", {"amount": 10})
    store.put("partnerships/p1", {"members": ["u1", "u2"]})

    response = client.post("/webhook/user-deleted", json={"uid": "u1"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "deleted"
    assert body["report"]["partnerships_affected"] == 1
    assert store.get("users/u1") is None
    assert store.get("users/u1/transactions/t1") is None
    assert store.get("partnerships/p1") is None


@pytest.mark.parametrize("payload", [{}, {"uid": ""}, [1, 2]])
def test_user_deleted_webhook_ignores_bad_events(
    store: InMemoryDocumentStore, payload: object
) -> None:
    response = client.post("/webhook/user-deleted", json=payload)
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_user_deleted_webhook_invalid_json(store: InMemoryDocumentStore) -> None:
    response = client.post(
        "/webhook/user-deleted",
        content=b"{",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ignored", "reason": "invalid payload"}


def test_run_recurring_for_date(store: InMemoryDocumentStore) -> None:
    store.put(
        "users/u1/transactions/rent",
        {
            "description": "Rent",
            "amount": 1200,
            "isRecurring": True,
            "recurringDay": 5,
            "date": datetime(2026, 1, 5, tzinfo=timezone.utc),
        },
    )

    first = client.post("/jobs/recurring", json={"date": "2026-03-05"})
    second = client.post("/jobs/recurring", json={"date": "2026-03-05"})

    assert first.status_code == 200
    assert first.json()["created"] == 1
    assert second.json()["created"] == 0
    assert second.json()["skipped_existing"] == 1


def test_run_recurring_without_body(store: InMemoryDocumentStore) -> None:
    response = client.post("/jobs/recurring")
    assert response.status_code == 200
    assert response.json()["users_scanned"] == 0


def test_job_status_without_scheduler(store: InMemoryDocumentStore) -> None:
    response = client.get("/jobs/status")
    assert response.status_code == 200
    assert response.json() == {"enabled": False}


def test_services_not_initialized() -> None:
    had_users = hasattr(app.state, "users")
    original = getattr(app.state, "users", None)
    app.state.users = None
    try:
        response = client.post("/accounts/check-email-exists", json={"email": "a@b.c"})
    finally:
        if had_users:
            app.state.users = original
        else:
            delattr(app.state, "users")
    assert response.status_code == 500
