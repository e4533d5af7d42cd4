"""In-memory document store with live listeners.

Used by the test-suite, by local tooling, and as the local mirror behind the
MQTT change-feed adapter. Query evaluation follows Firestore semantics closely
enough for portal workloads:

* documents missing a filtered or ordered field are excluded
* results default to document-id order
* listeners receive an initial snapshot, then one snapshot per write that
  touches their collection (or document)
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
import string
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from portalsync.exceptions import DocumentNotFoundError, StoreError
from portalsync.store.types import (
    DocumentSnapshot,
    ErrorCallback,
    Limit,
    OrderBy,
    QueryConstraint,
    QuerySnapshot,
    StoreTimestamp,
    Unsubscribe,
    Where,
    tag_timestamps,
)

_logger = logging.getLogger(__name__)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20


def auto_id() -> str:
    """Firestore-style random document id."""
    return "".join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))


# ---------------------------------------------------------------------------
# Query evaluation
# ---------------------------------------------------------------------------


def _type_rank(value: Any) -> int:
    """Cross-type ordering: null < bool < number < timestamp < string < bytes < array < map."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, StoreTimestamp):
        return 3
    if isinstance(value, str):
        return 4
    if isinstance(value, (bytes, bytearray)):
        return 5
    if isinstance(value, (list, tuple)):
        return 6
    return 7


def _sort_key(value: Any) -> tuple[int, Any]:
    rank = _type_rank(value)
    if rank in (6, 7):
        return rank, repr(value)
    return rank, value


def _comparable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_comparable(v) for v in value)
    return value


def _matches(data: dict[str, Any], clause: Where) -> bool:
    if clause.field not in data:
        return False
    value = _comparable(data[clause.field])
    target = clause.value
    op = clause.op

    if op == "==":
        return bool(value == target)
    if op == "!=":
        return value is not None and bool(value != target)
    if op in ("<", "<=", ">", ">="):
        if _type_rank(value) != _type_rank(target):
            return False
        try:
            if op == "<":
                return bool(value < target)
            if op == "<=":
                return bool(value <= target)
            if op == ">":
                return bool(value > target)
            return bool(value >= target)
        except TypeError:
            return False
    if op == "in":
        return value in target
    if op == "not-in":
        return value is not None and value not in target
    if op == "array-contains":
        return isinstance(value, tuple) and target in value
    if op == "array-contains-any":
        return isinstance(value, tuple) and any(item in value for item in target)
    return False


def run_query(
    documents: dict[str, dict[str, Any]],
    constraints: Sequence[QueryConstraint],
) -> list[tuple[str, dict[str, Any]]]:
    """Evaluate *constraints* against an ``{id: data}`` mapping."""
    filters: list[Where] = []
    orders: list[OrderBy] = []
    max_count: int | None = None
    for constraint in constraints:
        if isinstance(constraint, Where):
            filters.append(constraint)
        elif isinstance(constraint, OrderBy):
            orders.append(constraint)
        elif isinstance(constraint, Limit):
            max_count = constraint.count
        else:
            raise StoreError(f"Unsupported query constraint: {constraint!r}")

    rows = sorted(documents.items(), key=lambda item: item[0])
    rows = [(doc_id, data) for doc_id, data in rows if all(_matches(data, f) for f in filters)]

    if orders:
        rows = [(doc_id, data) for doc_id, data in rows if all(o.field in data for o in orders)]
        # Stable sorts applied from the least significant key outwards.
        for order in reversed(orders):
            rows.sort(key=lambda item, f=order.field: _sort_key(item[1][f]), reverse=order.direction == "desc")

    if max_count is not None:
        rows = rows[:max_count]
    return rows


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class _Listener:
    collection: str
    document_id: str | None
    constraints: tuple[QueryConstraint, ...]
    on_snapshot: Callable[[Any], None]
    on_error: ErrorCallback
    loop: asyncio.AbstractEventLoop
    active: bool = True


class InMemoryDocumentStore:
    """A writable document store held entirely in process memory."""

    def __init__(self, *, id_factory: Callable[[], str] = auto_id) -> None:
        self._id_factory = id_factory
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: list[_Listener] = []

    @property
    def listener_count(self) -> int:
        return sum(1 for listener in self._listeners if listener.active)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def listen_collection(
        self,
        collection: str,
        constraints: Sequence[QueryConstraint],
        on_snapshot: Callable[[QuerySnapshot], None],
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        constraints = tuple(constraints)
        # Validate eagerly so bad constraints fail at setup, not on delivery.
        run_query({}, constraints)
        listener = _Listener(
            collection=collection,
            document_id=None,
            constraints=constraints,
            on_snapshot=on_snapshot,
            on_error=on_error,
            loop=asyncio.get_running_loop(),
        )
        return self._register(listener)

    def listen_document(
        self,
        collection: str,
        document_id: str,
        on_snapshot: Callable[[DocumentSnapshot], None],
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        if not document_id:
            raise StoreError("document id must be non-empty", collection=collection)
        listener = _Listener(
            collection=collection,
            document_id=document_id,
            constraints=(),
            on_snapshot=on_snapshot,
            on_error=on_error,
            loop=asyncio.get_running_loop(),
        )
        return self._register(listener)

    def _register(self, listener: _Listener) -> Unsubscribe:
        self._listeners.append(listener)
        _logger.debug(
            "Listener registered collection=%s document=%s constraints=%s",
            listener.collection,
            listener.document_id,
            listener.constraints,
        )
        self._notify(listener)

        def unsubscribe() -> None:
            listener.active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _snapshot_for(self, listener: _Listener) -> QuerySnapshot | DocumentSnapshot:
        if listener.document_id is not None:
            return self._document_snapshot(listener.collection, listener.document_id)
        return self._query_snapshot(listener.collection, listener.constraints)

    def _notify(self, listener: _Listener) -> None:
        snapshot = self._snapshot_for(listener)
        listener.loop.call_soon(self._deliver, listener, listener.on_snapshot, snapshot)

    def _deliver(self, listener: _Listener, callback: Callable[[Any], None], payload: Any) -> None:
        if not listener.active:
            return
        try:
            callback(payload)
        except Exception:
            _logger.warning("Listener callback failed collection=%s", listener.collection, exc_info=True)

    def _broadcast(self, collection: str, document_id: str) -> None:
        for listener in list(self._listeners):
            if not listener.active or listener.collection != collection:
                continue
            if listener.document_id is not None and listener.document_id != document_id:
                continue
            self._notify(listener)

    def fail_listeners(
        self,
        collection: str,
        error: BaseException,
        *,
        document_id: str | None = None,
        include_collection: bool = False,
    ) -> int:
        """Deliver *error* to matching listeners, as a backend would on a permission or network failure.

        With *document_id* only that document's listeners match, plus the
        collection's query listeners when *include_collection* is set.
        """
        count = 0
        for listener in list(self._listeners):
            if not listener.active or listener.collection != collection:
                continue
            if document_id is not None and listener.document_id != document_id:
                if not (include_collection and listener.document_id is None):
                    continue
            self._fail(listener, error)
            count += 1
        return count

    def fail_all(self, error: BaseException) -> int:
        """Deliver *error* to every active listener."""
        listeners = [listener for listener in self._listeners if listener.active]
        for listener in listeners:
            self._fail(listener, error)
        return len(listeners)

    def _fail(self, listener: _Listener, error: BaseException) -> None:
        listener.loop.call_soon(self._deliver, listener, listener.on_error, error)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _document_snapshot(self, collection: str, document_id: str) -> DocumentSnapshot:
        data = self._collections.get(collection, {}).get(document_id)
        return DocumentSnapshot(id=document_id, data=copy.deepcopy(data) if data is not None else None)

    def _query_snapshot(self, collection: str, constraints: Sequence[QueryConstraint]) -> QuerySnapshot:
        rows = run_query(self._collections.get(collection, {}), constraints)
        return QuerySnapshot(
            documents=tuple(DocumentSnapshot(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in rows)
        )

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        return self._document_snapshot(collection, document_id)

    async def query(self, collection: str, constraints: Sequence[QueryConstraint] = ()) -> QuerySnapshot:
        return self._query_snapshot(collection, constraints)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _prepare(self, data: dict[str, Any]) -> dict[str, Any]:
        return tag_timestamps(copy.deepcopy(data))

    def put(self, collection: str, document_id: str, data: dict[str, Any] | None) -> None:
        """Synchronously replace (or with ``None`` remove) a document."""
        documents = self._collections.setdefault(collection, {})
        if data is None:
            if documents.pop(document_id, None) is None:
                return
        else:
            documents[document_id] = self._prepare(data)
        self._broadcast(collection, document_id)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        document_id = self._id_factory()
        self.put(collection, document_id, data)
        return document_id

    async def set(self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        documents = self._collections.setdefault(collection, {})
        existing = documents.get(document_id)
        if merge and existing is not None:
            existing.update(self._prepare(data))
            self._broadcast(collection, document_id)
            return
        self.put(collection, document_id, data)

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        existing = self._collections.get(collection, {}).get(document_id)
        if existing is None:
            raise DocumentNotFoundError(
                f"No document to update: {collection}/{document_id}",
                collection=collection,
                document_id=document_id,
            )
        existing.update(self._prepare(data))
        self._broadcast(collection, document_id)

    async def delete(self, collection: str, document_id: str) -> None:
        self.put(collection, document_id, None)
