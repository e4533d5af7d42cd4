"""Shared helpers for the portal service modules.

This module centralizes the most repeated patterns:
- stamping write times from an injectable clock
- dropping ``None`` values before a write
- reading documents and queries back as materialized entities

It is internal to portalsync and may change at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from portalsync.ingestion.materialize import MaterializedEntity, materialize_document, materialize_snapshot
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import QueryConstraint

_logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def without_none(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of *data* with ``None`` values removed."""
    return {key: value for key, value in data.items() if value is not None}


async def list_entities(
    store: DocumentStore,
    collection: str,
    constraints: Sequence[QueryConstraint] = (),
) -> list[MaterializedEntity]:
    snapshot = await store.query(collection, constraints)
    return materialize_snapshot(snapshot, collection)


async def get_entity(store: DocumentStore, collection: str, document_id: str) -> MaterializedEntity | None:
    snapshot = await store.get_document(collection, document_id)
    return materialize_document(snapshot, collection)


async def create_record(
    store: WritableDocumentStore,
    collection: str,
    data: Mapping[str, Any],
    *,
    now: Clock = utc_now,
    stamp: Sequence[str] = ("createdAt",),
) -> str:
    """Add *data* to *collection*, stamping each field in *stamp* with the current time."""
    record = dict(data)
    timestamp = now()
    for field_name in stamp:
        record[field_name] = timestamp
    document_id = await store.add(collection, record)
    _logger.debug("Created %s/%s", collection, document_id)
    return document_id


async def update_record(
    store: WritableDocumentStore,
    collection: str,
    document_id: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
    stamp: str = "updatedAt",
) -> None:
    """Apply a partial update and stamp *stamp* with the current time."""
    await store.update(collection, document_id, {**changes, stamp: now()})
    _logger.debug("Updated %s/%s fields=%s", collection, document_id, sorted(changes))


async def delete_record(store: WritableDocumentStore, collection: str, document_id: str) -> None:
    await store.delete(collection, document_id)
    _logger.debug("Deleted %s/%s", collection, document_id)
