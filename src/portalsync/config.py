"""Client configuration for portalsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any, Literal

from portalsync.exceptions import PortalConfigError

StoreBackend = Literal["memory", "firestore", "mqtt"]

#: Portal record fields that hold instants. The MQTT change feed carries plain
#: JSON, so these are the fields it tags as timestamps.
DEFAULT_TIMESTAMP_FIELDS: tuple[str, ...] = (
    "createdAt",
    "updatedAt",
    "lastUpdated",
    "lastLogin",
    "deadline",
    "completedAt",
    "approvedAt",
    "rejectedAt",
    "signedAt",
    "termsAcceptedAt",
    "effectiveDate",
    "dueDate",
    "readAt",
)


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Connection details for the MQTT change feed.

    Parameters
    ----------
    host : str
        Broker host name.
    port : int
        Broker port.
    topic_prefix : str
        Documents are published under ``<topic_prefix>/<collection>/<id>``.
    keepalive : int
        MQTT keepalive in seconds.
    tls : bool
        Use TLS for the broker connection.
    username, password : str or None
        Optional broker credentials.
    client_id : str
        MQTT client id; empty lets the broker assign one.
    """

    host: str = "localhost"
    port: int = 1883
    topic_prefix: str = "portal/docs"
    keepalive: int = 60
    tls: bool = False
    username: str | None = None
    password: str | None = None
    client_id: str = ""


@dataclasses.dataclass(frozen=True)
class PortalConfig:
    """Library configuration.

    Parameters
    ----------
    store_backend : str
        ``"memory"``, ``"firestore"`` or ``"mqtt"``.
    firebase_credentials : str or None
        Path to a service-account JSON file. ``None`` uses application
        default credentials.
    firebase_project_id : str or None
        Explicit Google Cloud project id.
    firebase_app_name : str
        Name of the firebase app instance created for this client.
    timestamp_fields : tuple of str
        Fields tagged as timestamps by adapters that carry untyped JSON.
    id_code_prefix : str
        Prefix for generated member ID codes.
    mqtt : MqttSettings
        Change-feed broker settings.
    """

    store_backend: StoreBackend = "memory"
    firebase_credentials: str | None = None
    firebase_project_id: str | None = None
    firebase_app_name: str = "portalsync"
    timestamp_fields: tuple[str, ...] = DEFAULT_TIMESTAMP_FIELDS
    id_code_prefix: str = "AST"
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.store_backend not in ("memory", "firestore", "mqtt"):
            raise PortalConfigError(f"Unknown store backend: {self.store_backend!r}")
        if not self.id_code_prefix:
            raise PortalConfigError("id_code_prefix must be non-empty")

    @classmethod
    def from_env(cls, **overrides: Any) -> PortalConfig:
        """Create configuration from ``PORTAL_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "PORTAL_MQTT_HOST": "host",
            "PORTAL_MQTT_TOPIC_PREFIX": "topic_prefix",
            "PORTAL_MQTT_USERNAME": "username",
            "PORTAL_MQTT_PASSWORD": "password",
            "PORTAL_MQTT_CLIENT_ID": "client_id",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        try:
            if (port := env.get("PORTAL_MQTT_PORT")) is not None:
                mqtt_kwargs["port"] = int(port)
            if (keepalive := env.get("PORTAL_MQTT_KEEPALIVE")) is not None:
                mqtt_kwargs["keepalive"] = int(keepalive)
        except ValueError as err:
            raise PortalConfigError(f"Invalid MQTT numeric setting: {err}") from err
        mqtt_kwargs["tls"] = _env_bool(env.get("PORTAL_MQTT_TLS"), False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        _ENV_CONFIG_MAP = {
            "PORTAL_STORE_BACKEND": "store_backend",
            "PORTAL_FIREBASE_CREDENTIALS": "firebase_credentials",
            "PORTAL_FIREBASE_PROJECT_ID": "firebase_project_id",
            "PORTAL_FIREBASE_APP_NAME": "firebase_app_name",
            "PORTAL_ID_CODE_PREFIX": "id_code_prefix",
        }
        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        fields = _env_list(env.get("PORTAL_TIMESTAMP_FIELDS"))
        if fields is not None and "timestamp_fields" not in overrides:
            config_kwargs["timestamp_fields"] = fields

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
