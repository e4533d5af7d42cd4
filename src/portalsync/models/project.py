"""Project model."""

from __future__ import annotations

from pydantic import Field

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp


class ProjectStatus(PortalEnum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class AssignmentType(PortalEnum):
    INDIVIDUAL = "individual"
    TEAM = "team"
    HYBRID = "hybrid"
    UNKNOWN = "unknown"


class Project(PortalBaseModel):
    """A project assigned to members, a team, or both."""

    id: str
    title: str = ""
    description: str = ""
    assigned_to: list[str] = Field(default_factory=list)
    """UIDs of assigned members."""
    assigned_team: str | None = None
    assigned_type: AssignmentType | None = None
    team: str | None = None
    status: ProjectStatus = ProjectStatus.UNKNOWN
    deadline: PortalTimestamp = None
    created_at: PortalTimestamp = None
    updated_at: PortalTimestamp = None
    completed_at: PortalTimestamp = None
    completed_by: str | None = None
    company_id: str = ""
    created_by: str = ""
