"""Tests for typed record views built on PortalBaseModel + PortalEnum."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from portalsync.exceptions import PortalValidationError
from portalsync.ingestion.materialize import materialize
from portalsync.models import (
    Announcement,
    Contract,
    ContractState,
    MemberRole,
    MemberStatus,
    Priority,
    Project,
    ProjectStatus,
    TargetType,
    Team,
    User,
    Visibility,
    WikiDoc,
    parse_entities,
    parse_entity,
)
from portalsync.store.types import StoreTimestamp

# ------------------------------------------------------------------
# PortalEnum
# ------------------------------------------------------------------


class TestPortalEnum:
    def test_unknown_value_falls_back(self) -> None:
        assert MemberRole("astronaut") is MemberRole.UNKNOWN

    def test_known_value(self) -> None:
        assert ProjectStatus("in-progress") is ProjectStatus.IN_PROGRESS

    def test_all_enums_have_unknown(self) -> None:
        for cls in (MemberRole, MemberStatus, ProjectStatus, Priority, TargetType, ContractState, Visibility):
            assert cls.UNKNOWN.value == "unknown", f"{cls.__name__} missing UNKNOWN"


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class TestUser:
    def test_from_materialized_entity(self) -> None:
        entity = materialize(
            "u1",
            {
                "name": "Jane",
                "email": "jane@example.com",
                "photoURL": "https://cdn.example/jane.png",
                "role": "dev",
                "team": "web",
                "isAdmin": None,
                "status": "active",
                "lastLogin": StoreTimestamp.from_datetime(datetime(2024, 1, 5, tzinfo=UTC)),
                "createdAt": StoreTimestamp.from_datetime(datetime(2023, 12, 1, tzinfo=UTC)),
            },
            "users",
        )
        user = parse_entity(User, entity)

        assert user.uid == "u1"
        assert user.photo_url == "https://cdn.example/jane.png"
        assert user.role is MemberRole.DEV
        assert user.is_admin is False
        assert user.is_active
        assert not user.has_admin_access
        assert user.created_at == datetime(2023, 12, 1, tzinfo=UTC)
        assert user.raw["lastLogin"] == datetime(2024, 1, 5, tzinfo=UTC)

    def test_admin_role_grants_admin_access(self) -> None:
        assert User(uid="u2", role=MemberRole.ADMIN).has_admin_access

    def test_missing_uid_is_a_validation_error(self) -> None:
        with pytest.raises(PortalValidationError):
            parse_entity(User, {"name": "nobody"})


class TestProject:
    def test_epoch_and_iso_timestamps_are_accepted(self) -> None:
        project = parse_entity(
            Project,
            {
                "id": "p1",
                "title": "X",
                "assignedTo": ["u1", "u2"],
                "status": "in-progress",
                "deadline": "2025-01-01T00:00:00Z",
                "createdAt": 1704448800000,
            },
        )
        assert project.assigned_to == ["u1", "u2"]
        assert project.status is ProjectStatus.IN_PROGRESS
        assert project.deadline == datetime(2025, 1, 1, tzinfo=UTC)
        assert project.created_at == datetime(2024, 1, 5, 10, tzinfo=UTC)

    def test_models_are_frozen(self) -> None:
        project = Project(id="p1")
        with pytest.raises(Exception):  # noqa: B017
            project.title = "changed"  # type: ignore[misc]


def test_parse_entities_for_each_collection() -> None:
    announcements = parse_entities(Announcement, [{"id": "a1", "priority": "high", "targetType": "team"}])
    assert announcements[0].priority is Priority.HIGH
    assert announcements[0].target_type is TargetType.TEAM

    [doc] = parse_entities(WikiDoc, [{"id": "w1", "markdownContent": "# Hi", "visibility": "secret"}])
    assert doc.markdown_content == "# Hi"
    assert doc.visibility is Visibility.UNKNOWN

    [contract] = parse_entities(Contract, [{"id": "c1", "contractURL": "https://x/c.pdf", "status": "signed"}])
    assert contract.contract_url == "https://x/c.pdf"
    assert contract.status is ContractState.SIGNED

    [team] = parse_entities(Team, [{"id": "t1", "name": "web"}])
    assert team.is_active is True
