"""Entity materialization.

Turns a raw store record into the entity shape every portal screen consumes:

* top-level :class:`StoreTimestamp` values become tz-aware ``datetime`` objects
* the store-assigned id is injected as ``uid`` for the ``users`` collection
  and ``id`` everywhere else, winning over any same-named raw field

Conversion is shallow by contract. Nested maps and lists are passed through
by reference, and no schema is enforced.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portalsync.exceptions import MaterializationError
from portalsync.store.types import DocumentSnapshot, QuerySnapshot, StoreTimestamp

USERS_COLLECTION = "users"

MaterializedEntity = dict[str, Any]


def identity_key(collection: str) -> str:
    """Name of the field carrying the document id for *collection*."""
    return "uid" if collection == USERS_COLLECTION else "id"


def _convert_fields(raw: Mapping[str, Any], *, collection: str, document_id: str) -> dict[str, Any]:
    converted: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, StoreTimestamp):
            try:
                converted[key] = value.to_datetime()
            except Exception as err:
                raise MaterializationError(
                    f"Cannot convert timestamp field {key!r} of {collection}/{document_id}: {err}",
                    collection=collection,
                    document_id=document_id,
                    field=key,
                ) from err
        else:
            converted[key] = value
    return converted


def materialize(document_id: str, raw: Mapping[str, Any], collection: str) -> MaterializedEntity:
    """Materialize one raw record.

    Raises
    ------
    MaterializationError
        A timestamp field could not be converted.
    """
    converted = _convert_fields(raw, collection=collection, document_id=document_id)
    key = identity_key(collection)
    # Identity first, then the record; the identity is re-applied so store
    # data can never shadow it.
    entity: MaterializedEntity = {key: document_id}
    entity.update(converted)
    entity[key] = document_id
    return entity


def materialize_document(snapshot: DocumentSnapshot, collection: str) -> MaterializedEntity | None:
    """Materialize a document snapshot, or return ``None`` when it does not exist."""
    if snapshot.data is None:
        return None
    return materialize(snapshot.id, snapshot.data, collection)


def materialize_snapshot(snapshot: QuerySnapshot, collection: str) -> list[MaterializedEntity]:
    """Materialize a whole batch in store order.

    All-or-nothing: the first failure propagates and no partial list is
    returned.
    """
    entities: list[MaterializedEntity] = []
    for document in snapshot.documents:
        if document.data is None:
            continue
        entities.append(materialize(document.id, document.data, collection))
    return entities
