"""Helpers for safe debug logging.

Portal records carry drawn signatures, selfie links and credentials. Entities
and payloads pass through :func:`redact_for_log` before they reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from portalsync.store.types import StoreTimestamp

REDACTED = "<redacted>"

# Compared case-insensitively against the whole key.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "authorization",
        "privatekey",
        "private_key",
        "signaturedata",
        "membersignatureurl",
        "selfieimageurl",
    }
)
# Compared case-insensitively against the end of the key (idToken, refreshToken...).
_SENSITIVE_SUFFIXES: tuple[str, ...] = ("token", "secret")

_MAX_DEPTH = 20


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return lowered in _SENSITIVE_KEYS or lowered.endswith(_SENSITIVE_SUFFIXES)


def _redact_string(value: str, max_string: int) -> str:
    if value.startswith("data:"):
        # Inline uploads (signature pads, avatars) are base64 blobs.
        media_type = value[5:].split(";", 1)[0].split(",", 1)[0] or "unknown"
        return f"<data-url:{media_type}:{len(value)} chars>"
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a JSON-friendly, redacted copy of *value* suitable for debug logs."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _redact_string(value, max_string)
    if isinstance(value, StoreTimestamp):
        try:
            return value.to_datetime().isoformat()
        except (OverflowError, ValueError):
            return repr(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): REDACTED
            if is_sensitive_key(str(k))
            else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
