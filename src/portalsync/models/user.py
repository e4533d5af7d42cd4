"""Portal member model."""

from __future__ import annotations

from pydantic import Field

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp


class MemberRole(PortalEnum):
    ADMIN = "admin"
    DEV = "dev"
    DESIGN = "design"
    CYBER = "cyber"
    ANALYST = "analyst"
    SALES = "sales"
    MARKETING = "marketing"
    CAMPAIGN = "campaign"
    UNKNOWN = "unknown"


class MemberStatus(PortalEnum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"
    PENDING = "pending"
    UNKNOWN = "unknown"


class User(PortalBaseModel):
    """A portal member, keyed by ``uid``."""

    uid: str
    name: str = ""
    email: str = ""
    photo_url: str | None = Field(default=None, alias="photoURL")
    role: MemberRole = MemberRole.UNKNOWN
    team: str = ""
    github: str | None = None
    linkedin: str | None = None
    phone: str | None = None
    id_code: str = ""
    is_admin: bool = False
    status: MemberStatus = MemberStatus.UNKNOWN
    created_at: PortalTimestamp = None
    last_updated: PortalTimestamp = None
    onboarding_completed: bool = False
    contract_signed: bool = False
    contract_id: str | None = None
    company_id: str = ""
    pending_approval: bool = False
    approved_by: str | None = None
    approved_at: PortalTimestamp = None
    rejected_by: str | None = None
    rejected_at: PortalTimestamp = None

    @property
    def is_active(self) -> bool:
        return self.status is MemberStatus.ACTIVE

    @property
    def has_admin_access(self) -> bool:
        """Admin flag or admin role."""
        return self.is_admin or self.role is MemberRole.ADMIN
