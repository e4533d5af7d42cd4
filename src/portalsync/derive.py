"""Per-member views derived from materialized collections.

These are pure functions over entity lists, typically applied to the
``data`` of a :class:`~portalsync.subscriptions.CollectionSubscription`
whenever its state changes. *member* is a materialized ``users`` entity
(``uid``, ``team``, ``isAdmin``); ``None`` stands for a signed-out viewer.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from portalsync.ingestion.materialize import MaterializedEntity

Member = Mapping[str, Any]


def _uid(member: Member | None) -> str:
    return str(member.get("uid") or "") if member else ""


def _team(member: Member | None) -> str:
    return str(member.get("team") or "") if member else ""


def _is_admin(member: Member | None) -> bool:
    return bool(member and member.get("isAdmin"))


def is_project_visible(project: Mapping[str, Any], member: Member | None) -> bool:
    """Assigned directly, or the project's team is the member's team."""
    uid = _uid(member)
    if uid and uid in (project.get("assignedTo") or ()):
        return True
    team = project.get("team")
    return bool(team) and team == _team(member)


def is_announcement_visible(announcement: Mapping[str, Any], member: Member | None) -> bool:
    """Announcements without a ``targetType`` are shown to everyone."""
    target_type = announcement.get("targetType")
    if not target_type or target_type == "all":
        return True
    if target_type == "team":
        team = announcement.get("targetTeam")
        return bool(team) and team == _team(member)
    if target_type == "individual":
        uid = _uid(member)
        return bool(uid) and uid in (announcement.get("targetMembers") or ())
    return False


def is_wiki_doc_visible(doc: Mapping[str, Any], member: Member | None) -> bool:
    if _is_admin(member):
        return True
    visibility = doc.get("visibility")
    if visibility == "public":
        return True
    if visibility == "team":
        team = doc.get("team")
        return bool(team) and team == _team(member)
    return False


def projects_for_member(projects: Iterable[MaterializedEntity], member: Member | None) -> list[MaterializedEntity]:
    return [project for project in projects if is_project_visible(project, member)]


def announcements_for_member(
    announcements: Iterable[MaterializedEntity],
    member: Member | None,
) -> list[MaterializedEntity]:
    return [item for item in announcements if is_announcement_visible(item, member)]


def wiki_docs_for_member(docs: Iterable[MaterializedEntity], member: Member | None) -> list[MaterializedEntity]:
    return [doc for doc in docs if is_wiki_doc_visible(doc, member)]


def matches_search(
    entity: Mapping[str, Any],
    term: str,
    fields: Sequence[str] = ("title", "description"),
) -> bool:
    """Case-insensitive substring match over *fields*.

    String fields match directly; list fields match when any string element
    does. An empty or blank *term* matches everything.
    """
    needle = term.strip().lower()
    if not needle:
        return True
    for field_name in fields:
        value = entity.get(field_name)
        if isinstance(value, str):
            if needle in value.lower():
                return True
        elif isinstance(value, (list, tuple)):
            if any(isinstance(item, str) and needle in item.lower() for item in value):
                return True
    return False
