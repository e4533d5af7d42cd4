"""Contract lookups and onboarding completion (collection ``contracts``).

A member can have several contracts (re-signing after a terms change); the
most recent by ``createdAt`` is the one that counts.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from portalsync._api._common import Clock, get_entity, list_entities, utc_now
from portalsync._api.users import update_user
from portalsync.ingestion.materialize import MaterializedEntity
from portalsync.ingestion.normalize import to_datetime
from portalsync.models.contract import ContractStatus
from portalsync.store.protocols import DocumentStore, WritableDocumentStore
from portalsync.store.types import where

_logger = logging.getLogger(__name__)

CONTRACTS_COLLECTION = "contracts"

_UNDATED = datetime.min.replace(tzinfo=UTC)


def _created_at(contract: MaterializedEntity) -> datetime:
    created = to_datetime(contract.get("createdAt"))
    if created is None:
        return _UNDATED
    if created.tzinfo is None:
        return created.replace(tzinfo=UTC)
    return created


async def get_contract_by_id(store: DocumentStore, contract_id: str) -> MaterializedEntity | None:
    return await get_entity(store, CONTRACTS_COLLECTION, contract_id)


async def get_contract_by_user(store: DocumentStore, uid: str) -> MaterializedEntity | None:
    """Most recent contract for *uid*, or ``None`` when there is none.

    Undated contracts sort as the oldest.
    """
    contracts = await list_entities(store, CONTRACTS_COLLECTION, [where("uid", "==", uid)])
    if not contracts:
        return None
    return max(contracts, key=_created_at)


async def check_user_contract_status(store: DocumentStore, uid: str) -> ContractStatus:
    latest = await get_contract_by_user(store, uid)
    if latest is None:
        return ContractStatus(has_contract=False)
    return ContractStatus(has_contract=True, contract_id=latest["id"])


async def force_complete_onboarding(
    store: WritableDocumentStore,
    uid: str,
    *,
    now: Clock = utc_now,
) -> bool:
    """Mark onboarding done for a member who already has a contract.

    Returns ``False`` (and writes nothing) when the member has no contract.
    """
    status = await check_user_contract_status(store, uid)
    if not status.has_contract:
        _logger.debug("No contract on file for uid=%s; onboarding left as is", uid)
        return False
    await update_user(
        store,
        uid,
        {
            "onboardingCompleted": True,
            "contractSigned": True,
            "contractId": status.contract_id,
        },
        now=now,
    )
    return True
