"""High-level async client for the portal document store."""

from __future__ import annotations

import logging
import weakref
from collections.abc import Mapping, Sequence
from typing import Any

from portalsync._api import announcements as _announcements_api
from portalsync._api import contracts as _contracts_api
from portalsync._api import projects as _projects_api
from portalsync._api import teams as _teams_api
from portalsync._api import users as _users_api
from portalsync._api import wiki as _wiki_api
from portalsync._api._common import Clock, utc_now
from portalsync.config import PortalConfig
from portalsync.exceptions import PortalError, StoreReadOnlyError
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.models.contract import ContractStatus
from portalsync.store.firestore import FirestoreDocumentStore
from portalsync.store.memory import InMemoryDocumentStore
from portalsync.store.mqtt import MqttDocumentStore
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import QueryConstraint
from portalsync.subscriptions import CollectionSubscription, DocumentSubscription, LiveSubscription

_logger = logging.getLogger(__name__)


def build_store(config: PortalConfig) -> DocumentStore:
    """Create the store adapter selected by ``config.store_backend``."""
    if config.store_backend == "firestore":
        return FirestoreDocumentStore.from_config(config)
    if config.store_backend == "mqtt":
        return MqttDocumentStore.from_config(config)
    return InMemoryDocumentStore()


class PortalClient:
    """Async client for the portal's live collections and CRUD services.

    Usage::

        async with PortalClient(PortalConfig.from_env()) as client:
            projects = client.subscribe_collection("projects", [order_by("createdAt", "desc")])
            ...
            await client.create_announcement({"title": "Hello", "content": "..."})

    Subscriptions created through the client are closed when the client
    exits. A store passed in explicitly is used as-is and never started or
    stopped by the client.
    """

    def __init__(
        self,
        config: PortalConfig | None = None,
        *,
        store: DocumentStore | None = None,
        now: Clock = utc_now,
    ) -> None:
        self._config = config or PortalConfig()
        self._store = store
        self._owns_store = store is None
        self._now = now
        # Open subscriptions stay reachable through their store listener.
        self._subscriptions: weakref.WeakSet[LiveSubscription[Any]] = weakref.WeakSet()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PortalClient:
        if self._store is None:
            self._store = build_store(self._config)
            _logger.debug("Store created backend=%s", self._config.store_backend)
        if self._owns_store and isinstance(self._store, MqttDocumentStore):
            await self._store.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        subscriptions = list(self._subscriptions)
        self._subscriptions = weakref.WeakSet()
        for subscription in subscriptions:
            subscription.close()
        if self._owns_store and isinstance(self._store, MqttDocumentStore):
            await self._store.stop()

    @property
    def config(self) -> PortalConfig:
        return self._config

    @property
    def store(self) -> DocumentStore:
        if self._store is None:
            raise PortalError("PortalClient has no store; use 'async with PortalClient(...)'")
        return self._store

    def _writable(self) -> WritableDocumentStore:
        store = self.store
        if not isinstance(store, WritableDocumentStore):
            raise StoreReadOnlyError(f"{type(store).__name__} does not support writes")
        return store

    # ------------------------------------------------------------------
    # Live subscriptions
    # ------------------------------------------------------------------

    def subscribe_collection(
        self,
        collection: str,
        constraints: Sequence[QueryConstraint | None] | None = None,
    ) -> CollectionSubscription:
        """Open a live, materialized view of *collection*."""
        subscription = CollectionSubscription(self.store, collection, constraints)
        self._track(subscription)
        return subscription

    def subscribe_document(self, collection: str, document_id: str | None) -> DocumentSubscription:
        """Open a live, materialized view of one document."""
        subscription = DocumentSubscription(self.store, collection, document_id)
        self._track(subscription)
        return subscription

    def _track(self, subscription: LiveSubscription[Any]) -> None:
        subscription.open()
        self._subscriptions.add(subscription)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def generate_id_code(self) -> str:
        return _users_api.generate_id_code(self._config.id_code_prefix)

    async def create_invitation(self, member: Mapping[str, Any]) -> str:
        return await _users_api.create_invitation(self._writable(), member, now=self._now)

    async def list_users(self) -> list[MaterializedEntity]:
        return await _users_api.list_users(self.store)

    async def update_user(self, uid: str, changes: Mapping[str, Any]) -> None:
        await _users_api.update_user(self._writable(), uid, changes, now=self._now)

    async def set_user_status(self, uid: str, status: _users_api.MemberStatusValue) -> None:
        await _users_api.set_user_status(self._writable(), uid, status, now=self._now)

    async def delete_user(self, uid: str) -> None:
        await _users_api.delete_user(self._writable(), uid)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(self, data: Mapping[str, Any]) -> str:
        return await _projects_api.create_project(self._writable(), data, now=self._now)

    async def list_projects(self) -> list[MaterializedEntity]:
        return await _projects_api.list_projects(self.store)

    async def update_project(self, project_id: str, changes: Mapping[str, Any]) -> None:
        await _projects_api.update_project(self._writable(), project_id, changes, now=self._now)

    async def delete_project(self, project_id: str) -> None:
        await _projects_api.delete_project(self._writable(), project_id)

    # ------------------------------------------------------------------
    # Announcements
    # ------------------------------------------------------------------

    async def create_announcement(self, data: Mapping[str, Any]) -> str:
        return await _announcements_api.create_announcement(self._writable(), data, now=self._now)

    async def list_announcements(self) -> list[MaterializedEntity]:
        return await _announcements_api.list_announcements(self.store)

    async def update_announcement(self, announcement_id: str, changes: Mapping[str, Any]) -> None:
        await _announcements_api.update_announcement(self._writable(), announcement_id, changes, now=self._now)

    async def delete_announcement(self, announcement_id: str) -> None:
        await _announcements_api.delete_announcement(self._writable(), announcement_id)

    # ------------------------------------------------------------------
    # Wiki
    # ------------------------------------------------------------------

    async def create_wiki_doc(self, data: Mapping[str, Any]) -> str:
        return await _wiki_api.create_wiki_doc(self._writable(), data, now=self._now)

    async def list_wiki_docs(self) -> list[MaterializedEntity]:
        return await _wiki_api.list_wiki_docs(self.store)

    async def update_wiki_doc(self, doc_id: str, changes: Mapping[str, Any]) -> None:
        await _wiki_api.update_wiki_doc(self._writable(), doc_id, changes, now=self._now)

    async def delete_wiki_doc(self, doc_id: str) -> None:
        await _wiki_api.delete_wiki_doc(self._writable(), doc_id)

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def create_team(self, data: Mapping[str, Any]) -> str:
        return await _teams_api.create_team(self._writable(), data, now=self._now)

    async def list_teams(self) -> list[MaterializedEntity]:
        return await _teams_api.list_teams(self.store)

    async def update_team(self, team_id: str, changes: Mapping[str, Any]) -> None:
        await _teams_api.update_team(self._writable(), team_id, changes, now=self._now)

    async def delete_team(self, team_id: str) -> None:
        await _teams_api.delete_team(self._writable(), team_id)

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    async def get_contract_by_id(self, contract_id: str) -> MaterializedEntity | None:
        return await _contracts_api.get_contract_by_id(self.store, contract_id)

    async def get_contract_by_user(self, uid: str) -> MaterializedEntity | None:
        return await _contracts_api.get_contract_by_user(self.store, uid)

    async def check_user_contract_status(self, uid: str) -> ContractStatus:
        return await _contracts_api.check_user_contract_status(self.store, uid)

    async def force_complete_onboarding(self, uid: str) -> bool:
        return await _contracts_api.force_complete_onboarding(self._writable(), uid, now=self._now)
