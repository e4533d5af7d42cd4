"""Document-store boundary: protocols, value types and adapters."""

from portalsync.store.memory import InMemoryDocumentStore, auto_id
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import (
    DocumentSnapshot,
    Limit,
    OrderBy,
    QueryConstraint,
    QuerySnapshot,
    StoreTimestamp,
    Where,
    limit,
    order_by,
    tag_timestamps,
    where,
)

__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "InMemoryDocumentStore",
    "Limit",
    "OrderBy",
    "QueryConstraint",
    "QuerySnapshot",
    "StoreTimestamp",
    "Where",
    "WritableDocumentStore",
    "auto_id",
    "limit",
    "order_by",
    "tag_timestamps",
    "where",
]
