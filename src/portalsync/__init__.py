"""portalsync - live, normalized views over an intranet portal's document store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("portalsync")
except PackageNotFoundError:
    __version__ = "0+local"
from portalsync.client import PortalClient, build_store
from portalsync.config import MqttSettings, PortalConfig
from portalsync.exceptions import (
    DocumentNotFoundError,
    MaterializationError,
    PortalConfigError,
    PortalError,
    PortalValidationError,
    StoreError,
    StoreReadOnlyError,
    SubscriptionError,
    SubscriptionSetupError,
)
from portalsync.ingestion.materialize import materialize
from portalsync.state import SubscriptionState
from portalsync.store import (
    DocumentSnapshot,
    DocumentStore,
    InMemoryDocumentStore,
    QuerySnapshot,
    StoreTimestamp,
    WritableDocumentStore,
    limit,
    order_by,
    where,
)
from portalsync.subscriptions import CollectionSubscription, DocumentSubscription

__all__ = [
    "__version__",
    "CollectionSubscription",
    "DocumentNotFoundError",
    "DocumentSnapshot",
    "DocumentStore",
    "DocumentSubscription",
    "InMemoryDocumentStore",
    "MaterializationError",
    "MqttSettings",
    "PortalClient",
    "PortalConfig",
    "PortalConfigError",
    "PortalError",
    "PortalValidationError",
    "QuerySnapshot",
    "StoreError",
    "StoreReadOnlyError",
    "StoreTimestamp",
    "SubscriptionError",
    "SubscriptionSetupError",
    "SubscriptionState",
    "WritableDocumentStore",
    "build_store",
    "limit",
    "materialize",
    "order_by",
    "where",
]
