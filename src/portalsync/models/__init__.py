"""Typed views over materialized portal records."""

from portalsync.models._base import PortalBaseModel, PortalEnum, PortalTimestamp, parse_entities, parse_entity
from portalsync.models.announcement import Announcement, Priority, TargetType
from portalsync.models.contract import Contract, ContractState, ContractStatus
from portalsync.models.project import AssignmentType, Project, ProjectStatus
from portalsync.models.team import Team
from portalsync.models.user import MemberRole, MemberStatus, User
from portalsync.models.wiki import Visibility, WikiDoc

__all__ = [
    "Announcement",
    "AssignmentType",
    "Contract",
    "ContractState",
    "ContractStatus",
    "MemberRole",
    "MemberStatus",
    "PortalBaseModel",
    "PortalEnum",
    "PortalTimestamp",
    "Priority",
    "Project",
    "ProjectStatus",
    "TargetType",
    "Team",
    "User",
    "Visibility",
    "WikiDoc",
    "parse_entities",
    "parse_entity",
]
