"""Live subscription to a (optionally filtered/ordered) collection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from portalsync.ingestion.materialize import MaterializedEntity, materialize_snapshot
from portalsync.store.protocols import DocumentStore
from portalsync.store.types import ErrorCallback, QueryConstraint, QuerySnapshot, Unsubscribe
from portalsync.subscriptions._base import LiveSubscription


def _freeze_constraints(
    constraints: Sequence[QueryConstraint | None] | None,
) -> tuple[QueryConstraint | None, ...] | None:
    return tuple(constraints) if constraints is not None else None


class CollectionSubscription(LiveSubscription[list[MaterializedEntity]]):
    """Materialized, live-updating view of a collection query.

    Usage::

        with CollectionSubscription(store, "projects", [order_by("createdAt", "desc")]) as sub:
            ...
            if sub.state.ready:
                render(sub.state.data)

    Constraints are forwarded verbatim to the store. A constraint list that
    still contains ``None`` (a filter whose value is not known yet) opens no
    listener and settles immediately with ``loading=False`` and no data.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        constraints: Sequence[QueryConstraint | None] | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._collection = collection
        self._constraints = _freeze_constraints(constraints)
        super().__init__(store, logger=logger)

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def constraints(self) -> tuple[QueryConstraint | None, ...] | None:
        return self._constraints

    def describe(self) -> str:
        return f"collection={self._collection}"

    def _initial_data(self) -> list[MaterializedEntity]:
        return []

    def _skip_reason(self) -> str | None:
        if self._constraints is not None and any(c is None for c in self._constraints):
            return "incomplete query constraints"
        return None

    def _listen(self, on_snapshot: Callable[[Any], None], on_error: ErrorCallback) -> Unsubscribe:
        constraints: tuple[QueryConstraint, ...] = tuple(c for c in self._constraints or () if c is not None)
        return self._store.listen_collection(self._collection, constraints, on_snapshot, on_error)

    def _materialize(self, snapshot: QuerySnapshot) -> list[MaterializedEntity]:
        entities = materialize_snapshot(snapshot, self._collection)
        self._logger.debug("Snapshot for %s materialized %d entities", self.describe(), len(entities))
        return entities

    def update(
        self,
        collection: str,
        constraints: Sequence[QueryConstraint | None] | None = None,
    ) -> None:
        """Point the subscription at a new query.

        Re-subscribes from scratch when the collection name or the constraint
        list changed; does nothing otherwise.
        """
        frozen = _freeze_constraints(constraints)
        if collection == self._collection and frozen == self._constraints:
            return

        def apply() -> None:
            self._collection = collection
            self._constraints = frozen

        self._restart(apply)
