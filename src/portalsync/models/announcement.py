"""Announcement model."""

from __future__ import annotations

from pydantic import Field

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp


class Priority(PortalEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class TargetType(PortalEnum):
    ALL = "all"
    TEAM = "team"
    INDIVIDUAL = "individual"
    UNKNOWN = "unknown"


class Announcement(PortalBaseModel):
    id: str
    title: str = ""
    content: str = ""
    priority: Priority = Priority.UNKNOWN
    target_type: TargetType | None = None
    """``None`` means the announcement predates targeting and is shown to everyone."""
    target_team: str | None = None
    target_members: list[str] = Field(default_factory=list)
    created_at: PortalTimestamp = None
    updated_at: PortalTimestamp = None
    company_id: str = ""
    created_by: str = ""
