"""Live subscriptions over collections and single documents."""

from portalsync.subscriptions._base import LiveSubscription
from portalsync.subscriptions.collection import CollectionSubscription
from portalsync.subscriptions.document import DocumentSubscription

__all__ = ["CollectionSubscription", "DocumentSubscription", "LiveSubscription"]
