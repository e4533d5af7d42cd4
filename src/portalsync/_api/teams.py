"""Team services (collection ``teams``)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portalsync._api._common import Clock, create_record, delete_record, list_entities, update_record, utc_now
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import order_by

TEAMS_COLLECTION = "teams"


async def create_team(store: WritableDocumentStore, data: Mapping[str, Any], *, now: Clock = utc_now) -> str:
    return await create_record(store, TEAMS_COLLECTION, data, now=now)


async def list_teams(store: DocumentStore) -> list[MaterializedEntity]:
    return await list_entities(store, TEAMS_COLLECTION, [order_by("createdAt", "desc")])


async def update_team(
    store: WritableDocumentStore,
    team_id: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> None:
    await update_record(store, TEAMS_COLLECTION, team_id, changes, now=now)


async def delete_team(store: WritableDocumentStore, team_id: str) -> None:
    await delete_record(store, TEAMS_COLLECTION, team_id)
