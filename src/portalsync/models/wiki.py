"""Wiki document model."""

from __future__ import annotations

from pydantic import Field

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp


class Visibility(PortalEnum):
    PUBLIC = "public"
    TEAM = "team"
    ADMIN = "admin"
    UNKNOWN = "unknown"


class WikiDoc(PortalBaseModel):
    id: str
    title: str = ""
    markdown_content: str = ""
    tags: list[str] = Field(default_factory=list)
    team: str | None = None
    visibility: Visibility = Visibility.UNKNOWN
    author: str = ""
    created_at: PortalTimestamp = None
    updated_at: PortalTimestamp = None
    company_id: str = ""
