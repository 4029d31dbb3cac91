try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
import threading
from datetime import datetime, timezone

import httpx
import pytest

from account_portal.clients.firestore import FirestoreDocumentStore, decode_value, encode_value
from account_portal.clients.local_storage import SQLiteLocalStorage
from account_portal.clients.sqlite_store import SQLiteDocumentStore
from account_portal.core.config import IdentitySettings
from account_portal.core.errors import DocumentStoreError

SETTINGS = IdentitySettings(IDENTITY_PROJECT_ID="demo-project")


class StaticCredentials:
    async def authorization_header(self) -> dict[str, str]:
        return {"Authorization": "Bearer service-token"}


@pytest.mark.asyncio
async def test_sqlite_store_crud(tmp_path) -> None:
    store = SQLiteDocumentStore(str(tmp_path / "nested" / "docs.db"))

    assert await store.get_document("users", "u-1") is None
    await store.set_document("users", "u-1", {"username": "ada", "disabled": False})
    await store.update_document("users", "u-1", {"disabled": True})

    assert await store.get_document("users", "u-1") == {"username": "ada", "disabled": True}
    assert await store.list_documents("users") == [{"username": "ada", "disabled": True}]
    assert await store.list_documents("other") == []

    await store.delete_document("users", "u-1")
    assert await store.get_document("users", "u-1") is None


@pytest.mark.asyncio
async def test_sqlite_store_update_requires_existing_document(tmp_path) -> None:
    store = SQLiteDocumentStore(str(tmp_path / "docs.db"))

    with pytest.raises(DocumentStoreError):
        await store.update_document("users", "missing", {"disabled": True})


@pytest.mark.asyncio
async def test_sqlite_store_queries_run_off_the_event_loop(tmp_path, monkeypatch) -> None:
    store = SQLiteDocumentStore(str(tmp_path / "docs.db"))
    connect = store._connect
    threads: list[int] = []

    def tracking_connect():
        threads.append(threading.get_ident())
        return connect()

    monkeypatch.setattr(store, "_connect", tracking_connect)
    await store.set_document("users", "u-1", {"username": "ada"})
    await store.list_documents("users")

    assert len(threads) == 2
    assert threading.get_ident() not in threads


def test_sqlite_local_storage_persists_across_instances(tmp_path) -> None:
    path = str(tmp_path / "local.db")
    SQLiteLocalStorage(path).set_item("auth_tokens", "sealed")

    storage = SQLiteLocalStorage(path)
    assert storage.get_item("auth_tokens") == "sealed"
    storage.remove_item("auth_tokens")
    assert storage.get_item("auth_tokens") is None


def test_firestore_value_codec() -> None:
    stamp = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    document = {
        "username": "ada",
        "disabled": False,
        "logins": 3,
        "createdAt": stamp,
        "photoURL": None,
        "tags": ["a", "b"],
    }

    encoded = {key: encode_value(value) for key, value in document.items()}

    assert encoded["logins"] == {"integerValue": "3"}
    assert encoded["disabled"] == {"booleanValue": False}
    assert encoded["createdAt"] == {"timestampValue": "2024-03-01T12:00:00Z"}
    assert {key: decode_value(value) for key, value in encoded.items()} == document


def test_firestore_decodes_nanosecond_timestamps() -> None:
    value = decode_value({"timestampValue": "2024-03-01T12:00:00.123456789Z"})

    assert value == datetime(2024, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_firestore_update_uses_mask_and_precondition() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    store = FirestoreDocumentStore(
        SETTINGS, StaticCredentials(), transport=httpx.MockTransport(handler)
    )
    await store.update_document("users", "u-1", {"disabled": True})

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path.endswith("/databases/(default)/documents/users/u-1")
    assert request.url.params.get_list("updateMask.fieldPaths") == ["disabled"]
    assert request.url.params["currentDocument.exists"] == "true"
    assert json.loads(request.content) == {"fields": {"disabled": {"booleanValue": True}}}


@pytest.mark.asyncio
async def test_firestore_missing_documents() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            return httpx.Response(404, json={"error": {"message": "No document to update"}})
        return httpx.Response(404, json={"error": {"message": "not found"}})

    store = FirestoreDocumentStore(
        SETTINGS, StaticCredentials(), transport=httpx.MockTransport(handler)
    )

    assert await store.get_document("users", "nope") is None
    await store.delete_document("users", "nope")
    with pytest.raises(DocumentStoreError, match="No document to update"):
        await store.update_document("users", "nope", {"disabled": True})


@pytest.mark.asyncio
async def test_firestore_list_follows_pages() -> None:
    pages = {
        None: {
            "documents": [{"fields": {"username": {"stringValue": "ada"}}}],
            "nextPageToken": "p2",
        },
        "p2": {"documents": [{"fields": {"username": {"stringValue": "bob"}}}]},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.params.get("pageToken")])

    store = FirestoreDocumentStore(
        SETTINGS, StaticCredentials(), transport=httpx.MockTransport(handler)
    )

    assert await store.list_documents("users") == [{"username": "ada"}, {"username": "bob"}]
