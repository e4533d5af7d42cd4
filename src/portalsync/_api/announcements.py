"""Announcement services (collection ``announcements``)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portalsync._api._common import Clock, create_record, delete_record, list_entities, update_record, utc_now
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import order_by

ANNOUNCEMENTS_COLLECTION = "announcements"


async def create_announcement(store: WritableDocumentStore, data: Mapping[str, Any], *, now: Clock = utc_now) -> str:
    return await create_record(store, ANNOUNCEMENTS_COLLECTION, data, now=now)


async def list_announcements(store: DocumentStore) -> list[MaterializedEntity]:
    return await list_entities(store, ANNOUNCEMENTS_COLLECTION, [order_by("createdAt", "desc")])


async def update_announcement(
    store: WritableDocumentStore,
    announcement_id: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> None:
    await update_record(store, ANNOUNCEMENTS_COLLECTION, announcement_id, changes, now=now)


async def delete_announcement(store: WritableDocumentStore, announcement_id: str) -> None:
    await delete_record(store, ANNOUNCEMENTS_COLLECTION, announcement_id)
