"""Wiki document services (collection ``wiki_docs``)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portalsync._api._common import Clock, create_record, delete_record, list_entities, update_record, utc_now
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import order_by

WIKI_COLLECTION = "wiki_docs"


async def create_wiki_doc(store: WritableDocumentStore, data: Mapping[str, Any], *, now: Clock = utc_now) -> str:
    """Create a wiki document; ``createdAt`` and ``updatedAt`` start equal."""
    return await create_record(store, WIKI_COLLECTION, data, now=now, stamp=("createdAt", "updatedAt"))


async def list_wiki_docs(store: DocumentStore) -> list[MaterializedEntity]:
    """All wiki documents, most recently edited first."""
    return await list_entities(store, WIKI_COLLECTION, [order_by("updatedAt", "desc")])


async def update_wiki_doc(
    store: WritableDocumentStore,
    doc_id: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> None:
    await update_record(store, WIKI_COLLECTION, doc_id, changes, now=now)


async def delete_wiki_doc(store: WritableDocumentStore, doc_id: str) -> None:
    await delete_record(store, WIKI_COLLECTION, doc_id)
