"""Team model."""

from __future__ import annotations

from portalsync.models._base import PortalBaseModel, PortalTimestamp


class Team(PortalBaseModel):
    id: str
    name: str = ""
    description: str | None = None
    color: str | None = None
    is_active: bool = True
    created_at: PortalTimestamp = None
    updated_at: PortalTimestamp = None
    created_by: str = ""
    company_id: str = ""
