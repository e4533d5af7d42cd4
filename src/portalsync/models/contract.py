"""Contract models."""

from __future__ import annotations

from pydantic import Field

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp


class ContractState(PortalEnum):
    PENDING = "pending"
    SIGNED = "signed"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class Contract(PortalBaseModel):
    """A member's signed (or pending) onboarding contract."""

    id: str
    uid: str = ""
    id_code: str = ""
    contract_url: str = Field(default="", alias="contractURL")
    signed_at: PortalTimestamp = None
    signature_data: str = ""
    member_signature_url: str | None = None
    selfie_image_url: str | None = None
    terms_accepted: bool = False
    terms_accepted_at: PortalTimestamp = None
    status: ContractState = ContractState.UNKNOWN
    member_name: str = ""
    member_role: str = ""
    member_email: str = ""
    contract_version: str = ""
    created_at: PortalTimestamp = None
    updated_at: PortalTimestamp = None
    company_id: str = ""


class ContractStatus(PortalBaseModel):
    """Result of a contract lookup for one member."""

    has_contract: bool = False
    contract_id: str | None = None
