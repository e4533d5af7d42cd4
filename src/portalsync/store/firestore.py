"""Firestore-backed document store built on ``firebase-admin``.

The SDK delivers ``on_snapshot`` callbacks on its own watch threads; they are
converted (timestamps tagged) on that thread and then handed to the asyncio
loop that registered the listener with ``call_soon_threadsafe``. Blocking
CRUD calls run in the loop's default executor.

The Python SDK has no per-listener error callback: an unrecoverable watch
stream failure closes the watch without notifying the caller. Setup failures
and conversion failures are reported through ``on_error``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from portalsync.config import PortalConfig
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

T = TypeVar("T")


def _to_wire(value: Any) -> Any:
    if isinstance(value, StoreTimestamp):
        return value.to_datetime()
    if isinstance(value, tuple):
        return [_to_wire(v) for v in value]
    return value


def _to_wire_data(data: dict[str, Any]) -> dict[str, Any]:
    return {key: _to_wire(value) for key, value in data.items()}


def _from_sdk(document: Any, document_id: str | None = None) -> DocumentSnapshot:
    doc_id = document_id or document.id
    if not document.exists:
        return DocumentSnapshot(id=doc_id, data=None)
    return DocumentSnapshot(id=doc_id, data=tag_timestamps(document.to_dict() or {}))


class FirestoreDocumentStore:
    """Writable document store over a ``firebase_admin.firestore`` client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: PortalConfig) -> FirestoreDocumentStore:
        """Initialize (or reuse) the named firebase app described by *config*."""
        try:
            app = firebase_admin.get_app(config.firebase_app_name)
        except ValueError:
            if config.firebase_credentials:
                credential = credentials.Certificate(config.firebase_credentials)
            else:
                credential = credentials.ApplicationDefault()
            options = {"projectId": config.firebase_project_id} if config.firebase_project_id else None
            app = firebase_admin.initialize_app(credential, options, name=config.firebase_app_name)
            _logger.debug("Initialized firebase app name=%s", config.firebase_app_name)
        return cls(firestore.client(app))

    # ------------------------------------------------------------------
    # Query construction
    # ------------------------------------------------------------------

    def _build_query(self, collection: str, constraints: Sequence[QueryConstraint]) -> Any:
        query = self._client.collection(collection)
        for constraint in constraints:
            if isinstance(constraint, Where):
                query = query.where(
                    filter=FieldFilter(constraint.field, constraint.op, _to_wire(constraint.value))
                )
            elif isinstance(constraint, OrderBy):
                direction = firestore.Query.DESCENDING if constraint.direction == "desc" else firestore.Query.ASCENDING
                query = query.order_by(constraint.field, direction=direction)
            elif isinstance(constraint, Limit):
                query = query.limit(constraint.count)
            else:
                raise StoreError(f"Unsupported query constraint: {constraint!r}", collection=collection)
        return query

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
        loop = asyncio.get_running_loop()
        query = self._build_query(collection, constraints)

        def callback(documents: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                snapshot = QuerySnapshot(documents=tuple(_from_sdk(document) for document in documents))
            except Exception as err:
                _logger.debug("Firestore snapshot conversion failed collection=%s", collection, exc_info=True)
                loop.call_soon_threadsafe(on_error, err)
                return
            loop.call_soon_threadsafe(on_snapshot, snapshot)

        watch = query.on_snapshot(callback)
        _logger.debug("Firestore watch started collection=%s", collection)
        return watch.unsubscribe

    def listen_document(
        self,
        collection: str,
        document_id: str,
        on_snapshot: Callable[[DocumentSnapshot], None],
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        reference = self._client.collection(collection).document(document_id)

        def callback(documents: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                if documents:
                    snapshot = _from_sdk(documents[0], document_id)
                else:
                    snapshot = DocumentSnapshot(id=document_id, data=None)
            except Exception as err:
                _logger.debug(
                    "Firestore snapshot conversion failed document=%s/%s", collection, document_id, exc_info=True
                )
                loop.call_soon_threadsafe(on_error, err)
                return
            loop.call_soon_threadsafe(on_snapshot, snapshot)

        watch = reference.on_snapshot(callback)
        _logger.debug("Firestore watch started document=%s/%s", collection, document_id)
        return watch.unsubscribe

    # ------------------------------------------------------------------
    # Blocking SDK calls
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[[], T], *, collection: str, document_id: str = "") -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except google_exceptions.NotFound as err:
            raise DocumentNotFoundError(str(err), collection=collection, document_id=document_id) from err
        except google_exceptions.GoogleAPICallError as err:
            raise StoreError(str(err), collection=collection, document_id=document_id) from err

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        reference = self._client.collection(collection).document(document_id)
        document = await self._run(reference.get, collection=collection, document_id=document_id)
        return _from_sdk(document, document_id)

    async def query(self, collection: str, constraints: Sequence[QueryConstraint] = ()) -> QuerySnapshot:
        query = self._build_query(collection, constraints)
        documents = await self._run(query.get, collection=collection)
        return QuerySnapshot(documents=tuple(_from_sdk(document) for document in documents))

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        reference = self._client.collection(collection)
        _update_time, document = await self._run(
            functools.partial(reference.add, _to_wire_data(data)),
            collection=collection,
        )
        return str(document.id)

    async def set(self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        reference = self._client.collection(collection).document(document_id)
        await self._run(
            functools.partial(reference.set, _to_wire_data(data), merge=merge),
            collection=collection,
            document_id=document_id,
        )

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        reference = self._client.collection(collection).document(document_id)
        await self._run(
            functools.partial(reference.update, _to_wire_data(data)),
            collection=collection,
            document_id=document_id,
        )

    async def delete(self, collection: str, document_id: str) -> None:
        reference = self._client.collection(collection).document(document_id)
        await self._run(reference.delete, collection=collection, document_id=document_id)
