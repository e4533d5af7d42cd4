from __future__ import annotations

from datetime import UTC, datetime

import pytest

from portalsync.exceptions import MaterializationError
from portalsync.ingestion.materialize import (
    identity_key,
    materialize,
    materialize_document,
    materialize_snapshot,
)
from portalsync.store.types import DocumentSnapshot, QuerySnapshot, StoreTimestamp


def _ts(*args: int) -> StoreTimestamp:
    return StoreTimestamp.from_datetime(datetime(*args, tzinfo=UTC))


def test_users_document_gets_uid_and_native_timestamps() -> None:
    entity = materialize("abc123", {"name": "Jane", "lastLogin": _ts(2024, 1, 5, 10)}, "users")

    assert entity == {
        "uid": "abc123",
        "name": "Jane",
        "lastLogin": datetime(2024, 1, 5, 10, tzinfo=UTC),
    }
    assert "id" not in entity


def test_project_document_keeps_arrays_untouched() -> None:
    assigned = ["u1", "u2"]
    raw = {"title": "X", "assignedTo": assigned, "deadline": _ts(2025, 1, 1)}

    entity = materialize("p1", raw, "projects")

    assert entity == {
        "id": "p1",
        "title": "X",
        "assignedTo": ["u1", "u2"],
        "deadline": datetime(2025, 1, 1, tzinfo=UTC),
    }
    # Shallow conversion: non-timestamp values are passed through by reference.
    assert entity["assignedTo"] is assigned


@pytest.mark.parametrize("collection", ["users", "projects", "wiki_docs", "usersArchive"])
def test_store_id_wins_over_conflicting_raw_identity(collection: str) -> None:
    key = identity_key(collection)
    entity = materialize("real-id", {key: "spoofed", "name": "n"}, collection)
    assert entity[key] == "real-id"


def test_identity_key_only_special_cases_users() -> None:
    assert identity_key("users") == "uid"
    assert identity_key("Users") == "id"
    assert identity_key("teams") == "id"


def test_nested_timestamps_are_not_converted() -> None:
    nested = {"when": _ts(2024, 1, 1)}
    entity = materialize("a1", {"meta": nested}, "announcements")
    assert entity["meta"] is nested
    assert isinstance(entity["meta"]["when"], StoreTimestamp)


def test_raw_datetime_is_not_treated_as_timestamp_wrapper() -> None:
    value = datetime(2024, 1, 1, tzinfo=UTC)
    entity = materialize("a1", {"createdAt": value}, "announcements")
    assert entity["createdAt"] is value


def test_unconvertible_timestamp_raises_materialization_error() -> None:
    with pytest.raises(MaterializationError) as excinfo:
        materialize("p9", {"deadline": StoreTimestamp(seconds=10**15)}, "projects")

    err = excinfo.value
    assert err.collection == "projects"
    assert err.document_id == "p9"
    assert err.field == "deadline"
    assert err.__cause__ is not None


def test_materialize_document_missing_returns_none() -> None:
    assert materialize_document(DocumentSnapshot(id="u1", data=None), "users") is None


def test_materialize_snapshot_preserves_store_order() -> None:
    snapshot = QuerySnapshot(
        documents=(
            DocumentSnapshot(id="b", data={"n": 2}),
            DocumentSnapshot(id="a", data={"n": 1}),
        )
    )
    assert [e["id"] for e in materialize_snapshot(snapshot, "projects")] == ["b", "a"]


def test_materialize_snapshot_is_all_or_nothing() -> None:
    snapshot = QuerySnapshot(
        documents=(
            DocumentSnapshot(id="ok", data={"createdAt": _ts(2024, 1, 1)}),
            DocumentSnapshot(id="bad", data={"createdAt": StoreTimestamp(seconds=10**15)}),
        )
    )
    with pytest.raises(MaterializationError):
        materialize_snapshot(snapshot, "projects")
