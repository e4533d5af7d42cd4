"""Project services (collection ``projects``)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portalsync._api._common import (
    Clock,
    create_record,
    delete_record,
    list_entities,
    update_record,
    utc_now,
    without_none,
)
from portalsync.exceptions import PortalValidationError
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.ingestion.normalize import to_datetime
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import order_by

PROJECTS_COLLECTION = "projects"


def prepare_project(data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and clean a new project record.

    * ``title``, ``description`` and ``deadline`` are required
    * ``assignedTo`` keeps only non-empty string uids
    * at least one assigned uid or an ``assignedTeam`` is required
    * ``None`` values are dropped
    """
    if not data.get("title") or not data.get("description") or not data.get("deadline"):
        raise PortalValidationError("Missing required project fields")

    deadline = to_datetime(data["deadline"])
    if deadline is None:
        raise PortalValidationError(f"Invalid project deadline: {data['deadline']!r}")

    assigned_to = [uid for uid in data.get("assignedTo") or [] if isinstance(uid, str) and uid]
    if not assigned_to and not data.get("assignedTeam"):
        raise PortalValidationError("Project must be assigned to at least one team member or team")

    return without_none({**data, "assignedTo": assigned_to, "deadline": deadline})


async def create_project(store: WritableDocumentStore, data: Mapping[str, Any], *, now: Clock = utc_now) -> str:
    return await create_record(store, PROJECTS_COLLECTION, prepare_project(data), now=now)


async def list_projects(store: DocumentStore) -> list[MaterializedEntity]:
    """All projects, newest first."""
    return await list_entities(store, PROJECTS_COLLECTION, [order_by("createdAt", "desc")])


async def update_project(
    store: WritableDocumentStore,
    project_id: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> None:
    await update_record(store, PROJECTS_COLLECTION, project_id, changes, now=now)


async def delete_project(store: WritableDocumentStore, project_id: str) -> None:
    await delete_record(store, PROJECTS_COLLECTION, project_id)
