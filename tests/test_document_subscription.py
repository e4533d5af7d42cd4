from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from portalsync.store.memory import InMemoryDocumentStore
from portalsync.store.types import DocumentSnapshot
from portalsync.subscriptions import DocumentSubscription


async def _settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class _CountingStore:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def listen_collection(self, *args: Any, **kwargs: Any) -> Callable[[], None]:
        self.calls.append("listen_collection")
        return lambda: None

    def listen_document(self, *args: Any, **kwargs: Any) -> Callable[[], None]:
        self.calls.append("listen_document")
        return lambda: None

    async def get_document(self, *args: Any) -> DocumentSnapshot:  # pragma: no cover
        self.calls.append("get_document")
        raise AssertionError("unexpected read")

    async def query(self, *args: Any) -> Any:  # pragma: no cover
        self.calls.append("query")
        raise AssertionError("unexpected read")


@pytest.mark.parametrize("document_id", ["", None])
def test_empty_document_id_settles_without_store_calls(document_id: str | None) -> None:
    store = _CountingStore()
    sub = DocumentSubscription(store, "users", document_id)  # type: ignore[arg-type]

    state = sub.open()

    assert (state.data, state.loading, state.error) == (None, False, None)
    assert store.calls == []
    sub.close()
    assert store.calls == []


def test_listen_without_document_id_raises_instead_of_calling_store() -> None:
    store = _CountingStore()
    sub = DocumentSubscription(store, "users", None)  # type: ignore[arg-type]

    with pytest.raises(ValueError):
        sub._listen(lambda snapshot: None, lambda err: None)
    assert store.calls == []


@pytest.mark.asyncio
async def test_missing_document_is_not_an_error() -> None:
    store = InMemoryDocumentStore()
    sub = DocumentSubscription(store, "contracts", "nope")
    state = sub.open()
    assert state.loading is True

    await _settle()
    assert (state.data, state.loading, state.error) == (None, False, None)
    sub.close()


@pytest.mark.asyncio
async def test_user_document_is_materialized_with_uid() -> None:
    store = InMemoryDocumentStore()
    store.put("users", "abc123", {"name": "Jane", "lastLogin": datetime(2024, 1, 5, 10, tzinfo=UTC)})

    sub = DocumentSubscription(store, "users", "abc123")
    sub.open()
    await _settle()

    assert sub.state.data == {
        "uid": "abc123",
        "name": "Jane",
        "lastLogin": datetime(2024, 1, 5, 10, tzinfo=UTC),
    }
    sub.close()


@pytest.mark.asyncio
async def test_document_updates_and_deletion_flow_through() -> None:
    store = InMemoryDocumentStore()
    store.put("users", "u1", {"status": "pending"})
    sub = DocumentSubscription(store, "users", "u1")
    sub.open()
    await _settle()

    await store.update("users", "u1", {"status": "active"})
    await _settle()
    assert sub.state.data is not None
    assert sub.state.data["status"] == "active"

    # Writes to other documents do not reach this subscription.
    store.put("users", "u2", {"status": "active"})
    await _settle()
    assert sub.state.data["uid"] == "u1"

    await store.delete("users", "u1")
    await _settle()
    assert (sub.state.data, sub.state.loading, sub.state.error) == (None, False, None)
    sub.close()


@pytest.mark.asyncio
async def test_changing_document_id_resubscribes() -> None:
    store = InMemoryDocumentStore()
    store.put("users", "u1", {"name": "One"})
    store.put("users", "u2", {"name": "Two"})

    sub = DocumentSubscription(store, "users", "u1")
    sub.open()
    await _settle()
    assert sub.state.data is not None and sub.state.data["name"] == "One"

    sub.update("users", "u2")
    assert sub.state.loading is True
    assert sub.state.data is None
    await _settle()
    assert sub.state.data is not None and sub.state.data["name"] == "Two"
    assert store.listener_count == 1

    sub.update("users", "")
    assert (sub.state.data, sub.state.loading, sub.state.error) == (None, False, None)
    assert store.listener_count == 0


@pytest.mark.asyncio
async def test_listener_error_sets_error_state() -> None:
    store = InMemoryDocumentStore()
    store.put("contracts", "c1", {"status": "signed"})
    sub = DocumentSubscription(store, "contracts", "c1")
    sub.open()
    await _settle()

    err = PermissionError("denied")
    store.fail_listeners("contracts", err, document_id="c1")
    await _settle()

    assert sub.state.error is err
    assert sub.state.loading is False
    assert sub.state.data == {"id": "c1", "status": "signed"}
    sub.close()
