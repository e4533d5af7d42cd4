from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest

from portalsync.config import MqttSettings
from portalsync.exceptions import MaterializationError, StoreError, StoreReadOnlyError
from portalsync.store import mqtt as mqtt_store
from portalsync.store.mqtt import (
    ChangeEvent,
    MqttChangeFeedRuntime,
    MqttDocumentStore,
    decode_change_payload,
    parse_change_message,
    parse_change_topic,
)
from portalsync.store.types import StoreTimestamp
from portalsync.subscriptions import CollectionSubscription, DocumentSubscription


async def _settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


def _payload(data: dict[str, Any]) -> bytes:
    return json.dumps(data).encode("utf-8")


class _FakePahoClient:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.on_connect: Any = None
        self.on_message: Any = None
        self.on_disconnect: Any = None

    def __getattr__(self, name: str) -> Any:
        def record(*args: Any, **kwargs: Any) -> None:
            self.calls.append((name, args))

        return record


@pytest.fixture
def paho_clients(monkeypatch: pytest.MonkeyPatch) -> list[_FakePahoClient]:
    created: list[_FakePahoClient] = []

    def factory(**kwargs: Any) -> _FakePahoClient:
        client = _FakePahoClient(**kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(mqtt_store.mqtt, "Client", factory)
    return created


class TestParsing:
    def test_topic_split(self) -> None:
        assert parse_change_topic("portal/docs/projects/p1", "portal/docs") == ("projects", "p1")
        assert parse_change_topic("portal/docs/users/u1", "/portal/docs/") == ("users", "u1")

    @pytest.mark.parametrize(
        "topic",
        ["other/projects/p1", "portal/docs/projects", "portal/docs/projects/p1/extra", "portal/docs//p1"],
    )
    def test_topic_rejects_other_shapes(self, topic: str) -> None:
        with pytest.raises(ValueError):
            parse_change_topic(topic, "portal/docs")

    def test_empty_payload_is_delete(self) -> None:
        assert decode_change_payload(b"", ["createdAt"]) is None
        assert decode_change_payload(b"  ", ["createdAt"]) is None

    def test_non_object_payload_rejected(self) -> None:
        with pytest.raises(StoreError):
            decode_change_payload(b"[1, 2]", ["createdAt"])

    def test_allow_listed_fields_are_tagged(self) -> None:
        event = parse_change_message(
            "portal/docs/projects/p1",
            _payload({"title": "X", "createdAt": 1704448800000, "deadline": "2025-01-01T00:00:00Z", "count": 5}),
            prefix="portal/docs",
            timestamp_fields=("createdAt", "deadline"),
        )
        assert event.collection == "projects"
        assert event.document_id == "p1"
        assert event.data is not None
        assert event.data["createdAt"] == StoreTimestamp.from_datetime(datetime(2024, 1, 5, 10, tzinfo=UTC))
        assert event.data["deadline"] == StoreTimestamp.from_datetime(datetime(2025, 1, 1, tzinfo=UTC))
        assert event.data["count"] == 5
        assert not event.is_delete


class TestRuntime:
    @pytest.mark.asyncio
    async def test_handle_message_schedules_events_and_skips_garbage(self) -> None:
        received: list[ChangeEvent] = []
        runtime = MqttChangeFeedRuntime(
            loop=asyncio.get_running_loop(),
            settings=MqttSettings(topic_prefix="portal/docs"),
            on_event=received.append,
        )

        runtime.handle_message("portal/docs/teams/t1", _payload({"name": "web"}))
        runtime.handle_message("portal/docs/teams/t1", b"{not json")
        runtime.handle_message("elsewhere/teams/t1", _payload({"name": "web"}))
        runtime.handle_message("portal/docs/teams/t2", b"")
        await _settle()

        assert [(e.document_id, e.data) for e in received] == [("t1", {"name": "web"}), ("t2", None)]

    def test_start_subscribes_on_connect_and_stop_disconnects(self, paho_clients: list[_FakePahoClient]) -> None:
        loop = asyncio.new_event_loop()
        try:
            runtime = MqttChangeFeedRuntime(
                loop=loop,
                settings=MqttSettings(host="broker", port=1884, topic_prefix="portal/docs", username="svc"),
                on_event=lambda event: None,
            )
            runtime.start()
            client = paho_clients[0]
            names = [name for name, _ in client.calls]
            assert names[:2] == ["enable_logger", "username_pw_set"]
            assert "tls_set" not in names
            assert ("connect", ("broker", 1884)) in client.calls
            assert runtime.is_running

            client.on_connect(client, None, None, SimpleNamespace(value=0), None)
            assert ("subscribe", ("portal/docs/#",)) in client.calls

            runtime.stop()
            names = [name for name, _ in client.calls]
            assert names[-2:] == ["disconnect", "loop_stop"]
            assert not runtime.is_running
        finally:
            loop.close()


class TestMqttDocumentStore:
    @pytest.mark.asyncio
    async def test_change_events_drive_subscriptions(self) -> None:
        store = MqttDocumentStore(MqttSettings())
        collection = CollectionSubscription(store, "projects")
        document = DocumentSubscription(store, "projects", "p1")
        collection.open()
        document.open()
        await _settle()
        assert collection.state.data == []
        assert document.state.data is None

        store.apply(
            ChangeEvent(
                collection="projects",
                document_id="p1",
                topic="portal/docs/projects/p1",
                data={"title": "X", "createdAt": StoreTimestamp(seconds=1704448800)},
            )
        )
        await _settle()
        assert collection.state.data == [
            {"id": "p1", "title": "X", "createdAt": datetime(2024, 1, 5, 10, tzinfo=UTC)},
        ]
        assert document.state.data == collection.state.data[0]

        store.apply(ChangeEvent(collection="projects", document_id="p1", topic="", data=None))
        await _settle()
        assert collection.state.data == []
        assert (document.state.data, document.state.error) == (None, None)

        collection.close()
        document.close()

    @pytest.mark.asyncio
    async def test_reads_come_from_mirror(self) -> None:
        store = MqttDocumentStore(MqttSettings())
        store.mirror.put("teams", "t1", {"name": "web"})
        snapshot = await store.get_document("teams", "t1")
        assert snapshot.data == {"name": "web"}
        assert len(await store.query("teams")) == 1

    @pytest.mark.asyncio
    async def test_writes_are_rejected(self) -> None:
        store = MqttDocumentStore(MqttSettings())
        with pytest.raises(StoreReadOnlyError):
            await store.add("teams", {"name": "web"})
        with pytest.raises(StoreReadOnlyError):
            await store.update("teams", "t1", {"name": "web"})
        with pytest.raises(StoreReadOnlyError):
            await store.set("teams", "t1", {"name": "web"}, merge=True)
        with pytest.raises(StoreReadOnlyError):
            await store.delete("teams", "t1")

    @pytest.mark.asyncio
    async def test_stop_without_start_is_a_no_op(self) -> None:
        store = MqttDocumentStore(MqttSettings())
        await store.stop()
        assert store.runtime is None

    @pytest.mark.asyncio
    async def test_undecodable_change_is_reported_to_its_subscribers(self) -> None:
        store = MqttDocumentStore(MqttSettings(topic_prefix="portal/docs"))
        runtime = store.build_runtime(asyncio.get_running_loop())
        collection = CollectionSubscription(store, "projects")
        document = DocumentSubscription(store, "projects", "p1")
        sibling = DocumentSubscription(store, "projects", "p2")
        for sub in (collection, document, sibling):
            sub.open()

        runtime.handle_message("portal/docs/projects/p1", _payload({"title": "v1"}))
        await _settle()
        assert collection.state.data == [{"id": "p1", "title": "v1"}]

        runtime.handle_message("portal/docs/projects/p1", _payload({"title": "v2", "deadline": "next friday"}))
        await _settle()

        assert isinstance(collection.state.error, MaterializationError)
        assert collection.state.error.document_id == "p1"
        assert collection.state.data == [{"id": "p1", "title": "v1"}]
        assert collection.state.loading is False
        assert not collection.state.ready
        assert isinstance(document.state.error, MaterializationError)
        assert sibling.state.error is None

        runtime.handle_message("portal/docs/projects/p1", _payload({"title": "v2", "deadline": "2025-01-01T00:00:00Z"}))
        await _settle()
        assert collection.state.error is None
        assert collection.state.data == [
            {"id": "p1", "title": "v2", "deadline": datetime(2025, 1, 1, tzinfo=UTC)},
        ]

        for sub in (collection, document, sibling):
            sub.close()

    @pytest.mark.asyncio
    async def test_refused_connection_fails_every_subscription(self, paho_clients: list[_FakePahoClient]) -> None:
        store = MqttDocumentStore(MqttSettings(host="broker"))
        runtime = store.build_runtime(asyncio.get_running_loop())
        projects = CollectionSubscription(store, "projects")
        member = DocumentSubscription(store, "users", "u1")
        projects.open()
        member.open()
        await _settle()

        runtime.start()
        client = paho_clients[0]
        client.on_connect(client, None, None, SimpleNamespace(value=135), None)
        await _settle()

        for sub in (projects, member):
            assert isinstance(sub.state.error, StoreError)
            assert sub.state.loading is False
        assert ("subscribe", ("portal/docs/#",)) not in client.calls

        runtime.stop()
        projects.close()
        member.close()

    @pytest.mark.asyncio
    async def test_lost_connection_is_reported_until_the_feed_resumes(
        self, paho_clients: list[_FakePahoClient]
    ) -> None:
        store = MqttDocumentStore(MqttSettings())
        runtime = store.build_runtime(asyncio.get_running_loop())
        teams = CollectionSubscription(store, "teams")
        teams.open()
        runtime.start()
        client = paho_clients[0]
        client.on_connect(client, None, None, SimpleNamespace(value=0), None)
        await _settle()
        assert teams.state.ready

        client.on_disconnect(client, None, None, SimpleNamespace(value=7), None)
        await _settle()
        assert isinstance(teams.state.error, StoreError)

        runtime.handle_message("portal/docs/teams/t1", _payload({"name": "web"}))
        await _settle()
        assert teams.state.error is None
        assert teams.state.data == [{"id": "t1", "name": "web"}]

        runtime.stop()
        client.on_disconnect(client, None, None, SimpleNamespace(value=0), None)
        await _settle()
        assert teams.state.error is None
        teams.close()
