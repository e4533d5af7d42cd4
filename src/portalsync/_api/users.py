"""Member and invitation services.

Collections:
  - ``users`` (members, keyed by auth uid)
  - ``id_codes`` (invitations, keyed by ID code)

Invitations only create the ``id_codes`` entry; the member document is
created when the invitee signs in and claims the code.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from typing import Any, Literal

from portalsync._api._common import Clock, delete_record, list_entities, update_record, utc_now
from portalsync.exceptions import PortalValidationError
from portalsync.ingestion.materialize import USERS_COLLECTION, MaterializedEntity
from portalsync.store.protocols import DocumentStore, WritableDocumentStore

_logger = logging.getLogger(__name__)

ID_CODES_COLLECTION = "id_codes"

_ID_CODE_MIN = 10000
_ID_CODE_SPAN = 90000

MemberStatusValue = Literal["active", "deactivated"]


def generate_id_code(prefix: str = "AST") -> str:
    """Random member ID code: *prefix* followed by five digits (10000-99999)."""
    return f"{prefix}{_ID_CODE_MIN + secrets.randbelow(_ID_CODE_SPAN)}"


async def create_invitation(
    store: WritableDocumentStore,
    member: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> str:
    """Register an unused invitation for *member* and return its ID code.

    Raises
    ------
    PortalValidationError
        *member* carries no ``idCode``.
    """
    id_code = member.get("idCode")
    if not id_code:
        raise PortalValidationError("idCode is required to create an invitation")
    await store.set(
        ID_CODES_COLLECTION,
        str(id_code),
        {
            "used": False,
            "assignedName": member.get("name"),
            "assignedTeam": member.get("team"),
            "assignedRole": member.get("role"),
            "createdAt": now(),
        },
        merge=True,
    )
    _logger.debug("Invitation created id_code=%s", id_code)
    return str(id_code)


async def list_users(store: DocumentStore) -> list[MaterializedEntity]:
    return await list_entities(store, USERS_COLLECTION)


async def update_user(
    store: WritableDocumentStore,
    uid: str,
    changes: Mapping[str, Any],
    *,
    now: Clock = utc_now,
) -> None:
    await update_record(store, USERS_COLLECTION, uid, changes, now=now, stamp="lastUpdated")


async def set_user_status(
    store: WritableDocumentStore,
    uid: str,
    status: MemberStatusValue,
    *,
    now: Clock = utc_now,
) -> None:
    """Activate or deactivate a member."""
    if status not in ("active", "deactivated"):
        raise PortalValidationError(f"Unsupported member status: {status!r}")
    await update_user(store, uid, {"status": status}, now=now)


async def delete_user(store: WritableDocumentStore, uid: str) -> None:
    await delete_record(store, USERS_COLLECTION, uid)
