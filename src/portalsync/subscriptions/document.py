"""Live subscription to a single document."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from portalsync._redact import redact_for_log
from portalsync.ingestion.materialize import MaterializedEntity, materialize_document
from portalsync.store.protocols import DocumentStore
from portalsync.store.types import DocumentSnapshot, ErrorCallback, Unsubscribe
from portalsync.subscriptions._base import LiveSubscription


class DocumentSubscription(LiveSubscription[MaterializedEntity | None]):
    """Materialized, live-updating view of one document.

    An empty or missing *document_id* is a valid terminal state: the
    subscription settles immediately with ``data=None`` and opens nothing. A
    document that does not exist is reported as ``data=None`` without an
    error.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        document_id: str | None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._collection = collection
        self._document_id = document_id
        super().__init__(store, logger=logger)

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def document_id(self) -> str | None:
        return self._document_id

    def describe(self) -> str:
        return f"document={self._collection}/{self._document_id or ''}"

    def _initial_data(self) -> MaterializedEntity | None:
        return None

    def _skip_reason(self) -> str | None:
        if not self._document_id:
            return "no document id"
        return None

    def _listen(self, on_snapshot: Callable[[Any], None], on_error: ErrorCallback) -> Unsubscribe:
        if not self._document_id:
            raise ValueError(f"{self.describe()} has no document id to listen to")
        return self._store.listen_document(self._collection, self._document_id, on_snapshot, on_error)

    def _materialize(self, snapshot: DocumentSnapshot) -> MaterializedEntity | None:
        entity = materialize_document(snapshot, self._collection)
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug("Snapshot for %s: %s", self.describe(), redact_for_log(entity))
        return entity

    def update(self, collection: str, document_id: str | None) -> None:
        """Re-subscribe when the collection or document id changed."""
        if collection == self._collection and document_id == self._document_id:
            return

        def apply() -> None:
            self._collection = collection
            self._document_id = document_id

        self._restart(apply)
