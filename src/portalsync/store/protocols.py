"""Protocols describing the document-store boundary.

The subscription layer and the service functions only talk to these
interfaces, so any backend (in-memory, Firestore, an MQTT change feed) can be
injected without touching the normalization code.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from portalsync.store.types import (
    DocumentCallback,
    DocumentSnapshot,
    ErrorCallback,
    QueryConstraint,
    QuerySnapshot,
    SnapshotCallback,
    Unsubscribe,
)


@runtime_checkable
class DocumentStore(Protocol):
    """Read side: live listeners plus one-shot reads.

    Listener callbacks are delivered on the asyncio loop that registered the
    listener, serially and in the order the store produced them. Timestamp
    fields in delivered data are already tagged as ``StoreTimestamp``.
    """

    def listen_collection(
        self,
        collection: str,
        constraints: Sequence[QueryConstraint],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    def listen_document(
        self,
        collection: str,
        document_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot: ...

    async def query(self, collection: str, constraints: Sequence[QueryConstraint] = ()) -> QuerySnapshot: ...


@runtime_checkable
class WritableDocumentStore(DocumentStore, Protocol):
    """Write side used by the CRUD service functions."""

    async def add(self, collection: str, data: dict[str, Any]) -> str: ...

    async def set(self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False) -> None: ...

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None: ...

    async def delete(self, collection: str, document_id: str) -> None: ...
