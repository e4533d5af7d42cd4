#!/usr/bin/env python3
"""Watch a portal collection (or one document) and print every state change.

Store selection follows ``PORTAL_*`` environment variables (see
``PortalConfig.from_env``). Examples::

    PORTAL_STORE_BACKEND=firestore scripts/watch_collection.py projects --order-by createdAt:desc
    PORTAL_STORE_BACKEND=mqtt scripts/watch_collection.py users --document abc123
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from portalsync import PortalClient, PortalConfig, SubscriptionState  # noqa: E402
from portalsync._redact import redact_for_log  # noqa: E402
from portalsync.store.types import QueryConstraint, limit, order_by, where  # noqa: E402

_LOG = logging.getLogger("watch_collection")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print live, materialized snapshots of a portal collection.")
    parser.add_argument("collection", help="Collection name, e.g. projects or users.")
    parser.add_argument("--document", help="Watch a single document id instead of the collection.")
    parser.add_argument(
        "--where",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Equality filter; may be repeated.",
    )
    parser.add_argument("--order-by", metavar="FIELD[:desc]", help="Sort field, optionally descending.")
    parser.add_argument("--limit", type=int, help="Maximum number of documents.")
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _constraints(args: argparse.Namespace) -> list[QueryConstraint]:
    constraints: list[QueryConstraint] = []
    for item in args.where:
        field_path, sep, value = item.partition("=")
        if not sep or not field_path:
            raise SystemExit(f"Invalid --where {item!r}; expected FIELD=VALUE")
        constraints.append(where(field_path, "==", value))
    if args.order_by:
        field_path, _, direction = args.order_by.partition(":")
        constraints.append(order_by(field_path, "desc" if direction.lower() == "desc" else "asc"))
    if args.limit is not None:
        constraints.append(limit(args.limit))
    return constraints


def _print_state(state: SubscriptionState[Any]) -> None:
    if state.error is not None:
        print(f"[watch] error: {state.error}")
        return
    print(json.dumps(redact_for_log(state.data), indent=2, ensure_ascii=False))


async def _watch(args: argparse.Namespace) -> None:
    async with PortalClient(PortalConfig.from_env()) as client:
        if args.document:
            subscription: Any = client.subscribe_document(args.collection, args.document)
        else:
            subscription = client.subscribe_collection(args.collection, _constraints(args))
        subscription.add_listener(_print_state)
        if not subscription.state.loading:
            _print_state(subscription.state)

        if args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_watch(args))
    except KeyboardInterrupt:
        _LOG.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
