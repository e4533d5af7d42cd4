"""Read-only document store fed by an MQTT change feed.

A publisher mirrors portal documents to ``<topic_prefix>/<collection>/<id>``:
a JSON object payload upserts the document, an empty payload deletes it.
Publishers should set the retain flag so a fresh client receives the current
state on subscribe.

Messages arrive on the paho network thread, are parsed there and are handed to
the asyncio loop with ``call_soon_threadsafe``. The loop applies them to an
:class:`InMemoryDocumentStore` mirror, which serves every read and listener.
Undecodable payloads and broker connection failures are delivered to the
mirror's listeners as errors.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from portalsync.config import DEFAULT_TIMESTAMP_FIELDS, MqttSettings, PortalConfig
from portalsync.exceptions import MaterializationError, PortalError, StoreError, StoreReadOnlyError
from portalsync.store.memory import InMemoryDocumentStore
from portalsync.store.types import (
    DocumentSnapshot,
    ErrorCallback,
    QueryConstraint,
    QuerySnapshot,
    Unsubscribe,
    tag_timestamps,
)


@dataclass(frozen=True)
class ChangeEvent:
    """One parsed change-feed message. ``data`` is ``None`` for a delete."""

    collection: str
    document_id: str
    topic: str
    data: dict[str, Any] | None

    @property
    def is_delete(self) -> bool:
        return self.data is None


def parse_change_topic(topic: str, prefix: str) -> tuple[str, str]:
    """Split ``<prefix>/<collection>/<id>`` into ``(collection, id)``."""
    prefix = prefix.strip("/")
    head = f"{prefix}/" if prefix else ""
    if not topic.startswith(head):
        raise ValueError(f"Topic {topic!r} is outside prefix {prefix!r}")
    parts = topic[len(head) :].split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Topic {topic!r} is not <collection>/<id>")
    return parts[0], parts[1]


def decode_change_payload(
    payload: bytes,
    timestamp_fields: Iterable[str],
    *,
    collection: str = "",
    document_id: str = "",
) -> dict[str, Any] | None:
    """Decode a change payload. Returns ``None`` for a delete.

    Raises
    ------
    StoreError
        The payload is not a UTF-8 JSON object.
    MaterializationError
        An allow-listed timestamp field holds an unconvertible value.
    """
    try:
        text = payload.decode("utf-8").strip()
        if not text:
            return None
        parsed = json.loads(text)
    except ValueError as err:
        raise StoreError(
            f"Change payload is not valid JSON: {err}",
            collection=collection,
            document_id=document_id,
        ) from err
    if not isinstance(parsed, dict):
        raise StoreError("Change payload is not a JSON object", collection=collection, document_id=document_id)
    try:
        return tag_timestamps(parsed, timestamp_fields)
    except (TypeError, ValueError, OverflowError) as err:
        raise MaterializationError(
            f"Cannot convert timestamp fields of {collection}/{document_id}: {err}",
            collection=collection,
            document_id=document_id,
        ) from err


def parse_change_message(
    topic: str,
    payload: bytes,
    *,
    prefix: str,
    timestamp_fields: Iterable[str] = DEFAULT_TIMESTAMP_FIELDS,
) -> ChangeEvent:
    collection, document_id = parse_change_topic(topic, prefix)
    return ChangeEvent(
        collection=collection,
        document_id=document_id,
        topic=topic,
        data=decode_change_payload(payload, timestamp_fields, collection=collection, document_id=document_id),
    )


class MqttChangeFeedRuntime:
    """Threaded paho-mqtt runtime that emits parsed change events onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        on_event: Callable[[ChangeEvent], None],
        on_error: Callable[[PortalError], None] | None = None,
        timestamp_fields: Sequence[str] = DEFAULT_TIMESTAMP_FIELDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._on_event = on_event
        self._on_error = on_error
        self._timestamp_fields = tuple(timestamp_fields)
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def topic(self) -> str:
        prefix = self._settings.topic_prefix.strip("/")
        return f"{prefix}/#" if prefix else "#"

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Parse one message and schedule it on the loop.

        Topics outside the ``<collection>/<id>`` layout are skipped. A payload
        that cannot be decoded is reported through ``on_error`` for its
        document.
        """
        try:
            collection, document_id = parse_change_topic(topic, self._settings.topic_prefix)
        except ValueError:
            self._logger.debug("MQTT message on unexpected topic=%s skipped", topic)
            return
        try:
            data = decode_change_payload(
                payload,
                self._timestamp_fields,
                collection=collection,
                document_id=document_id,
            )
        except (StoreError, MaterializationError) as err:
            self._logger.warning("MQTT change rejected topic=%s: %s", topic, err)
            self._report(err)
            return
        event = ChangeEvent(collection=collection, document_id=document_id, topic=topic, data=data)
        self._logger.debug(
            "MQTT change collection=%s document=%s delete=%s",
            event.collection,
            event.document_id,
            event.is_delete,
        )
        self._loop.call_soon_threadsafe(self._on_event, event)

    def _report(self, err: PortalError) -> None:
        if self._on_error is not None:
            self._loop.call_soon_threadsafe(self._on_error, err)

    def start(self) -> None:
        """Connect and subscribe to the change-feed topic."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            self.topic,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        topic = self.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._report(
                    StoreError(f"MQTT broker {settings.host}:{settings.port} refused connection: {reason_code}")
                )
                return
            self._logger.debug("MQTT connected reason=%s, subscribing topic=%s", reason_code, topic)
            c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_message(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            # A stop() clears _running before disconnecting.
            if self._running:
                self._logger.warning("MQTT connection lost: %s", reason_code)
                self._report(StoreError(f"MQTT connection to {settings.host}:{settings.port} lost: {reason_code}"))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class MqttDocumentStore:
    """Document store that mirrors an MQTT change feed.

    Reads and listeners are served from the local mirror. Writes raise
    :class:`StoreReadOnlyError`; the feed publisher owns the data.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        timestamp_fields: Sequence[str] = DEFAULT_TIMESTAMP_FIELDS,
        mirror: InMemoryDocumentStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._timestamp_fields = tuple(timestamp_fields)
        self._mirror = mirror or InMemoryDocumentStore()
        self._logger = logger or logging.getLogger(__name__)
        self._runtime: MqttChangeFeedRuntime | None = None

    @classmethod
    def from_config(cls, config: PortalConfig) -> MqttDocumentStore:
        return cls(config.mqtt, timestamp_fields=config.timestamp_fields)

    @property
    def mirror(self) -> InMemoryDocumentStore:
        return self._mirror

    @property
    def runtime(self) -> MqttChangeFeedRuntime | None:
        return self._runtime

    def apply(self, event: ChangeEvent) -> None:
        """Apply one change event to the mirror. Must run on the event loop."""
        self._mirror.put(event.collection, event.document_id, event.data)

    def fail(self, error: PortalError) -> None:
        """Report a feed failure to listeners. Must run on the event loop.

        Errors naming a document reach that document's listeners and its
        collection's query listeners. Anything else reaches every listener.
        """
        collection = getattr(error, "collection", "")
        if collection:
            self._mirror.fail_listeners(
                collection,
                error,
                document_id=getattr(error, "document_id", "") or None,
                include_collection=True,
            )
        else:
            self._mirror.fail_all(error)

    def build_runtime(self, loop: asyncio.AbstractEventLoop) -> MqttChangeFeedRuntime:
        return MqttChangeFeedRuntime(
            loop=loop,
            settings=self._settings,
            on_event=self.apply,
            on_error=self.fail,
            timestamp_fields=self._timestamp_fields,
            logger=self._logger,
        )

    async def start(self) -> None:
        """Connect to the broker. Connection failures raise :class:`StoreError`."""
        if self._runtime is not None and self._runtime.is_running:
            return
        loop = asyncio.get_running_loop()
        runtime = self.build_runtime(loop)
        try:
            await loop.run_in_executor(None, runtime.start)
        except OSError as err:
            raise StoreError(f"MQTT connect to {self._settings.host}:{self._settings.port} failed: {err}") from err
        self._runtime = runtime

    async def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is None:
            return
        try:
            await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
        except Exception:
            self._logger.debug("MQTT runtime stop failed", exc_info=True)

    # ------------------------------------------------------------------
    # Reads (delegated to the mirror)
    # ------------------------------------------------------------------

    def listen_collection(
        self,
        collection: str,
        constraints: Sequence[QueryConstraint],
        on_snapshot: Callable[[QuerySnapshot], None],
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._mirror.listen_collection(collection, constraints, on_snapshot, on_error)

    def listen_document(
        self,
        collection: str,
        document_id: str,
        on_snapshot: Callable[[DocumentSnapshot], None],
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._mirror.listen_document(collection, document_id, on_snapshot, on_error)

    async def get_document(self, collection: str, document_id: str) -> DocumentSnapshot:
        return await self._mirror.get_document(collection, document_id)

    async def query(self, collection: str, constraints: Sequence[QueryConstraint] = ()) -> QuerySnapshot:
        return await self._mirror.query(collection, constraints)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _read_only(self, collection: str, document_id: str = "") -> StoreReadOnlyError:
        return StoreReadOnlyError(
            "MQTT change-feed store is read-only",
            collection=collection,
            document_id=document_id,
        )

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        raise self._read_only(collection)

    async def set(self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        raise self._read_only(collection, document_id)

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        raise self._read_only(collection, document_id)

    async def delete(self, collection: str, document_id: str) -> None:
        raise self._read_only(collection, document_id)
