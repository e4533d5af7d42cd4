"""Value types exchanged across the document-store boundary.

Store adapters hand the subscription layer plain field maps in which every
timestamp field has already been tagged as a :class:`StoreTimestamp`. The
normalization layer only ever checks for that type; it never probes values
for conversion methods.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

# Threshold to distinguish epoch seconds from epoch milliseconds.
_MS_THRESHOLD = 1_000_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, order=True)
class StoreTimestamp:
    """An instant as held by the document store (seconds + nanoseconds, UTC)."""

    seconds: int
    nanos: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanos < 1_000_000_000:
            raise ValueError(f"nanos out of range: {self.nanos}")

    def to_datetime(self) -> datetime:
        """Return a tz-aware UTC datetime (truncated to microseconds)."""
        return _EPOCH + timedelta(seconds=self.seconds, microseconds=self.nanos // 1000)

    @classmethod
    def from_datetime(cls, value: datetime) -> StoreTimestamp:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        delta = value - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        nanos = delta.microseconds * 1000
        # Firestore's DatetimeWithNanoseconds keeps sub-microsecond precision.
        extra = getattr(value, "nanosecond", None)
        if isinstance(extra, int) and extra:
            nanos = extra
        return cls(seconds=seconds, nanos=nanos)

    @classmethod
    def from_epoch(cls, value: float) -> StoreTimestamp:
        """Build from epoch seconds **or** milliseconds."""
        if abs(value) >= _MS_THRESHOLD:
            value = value / 1000.0
        seconds = int(value // 1)
        nanos = int(round((value - seconds) * 1_000_000_000))
        if nanos >= 1_000_000_000:
            seconds, nanos = seconds + 1, 0
        return cls(seconds=seconds, nanos=nanos)

    @classmethod
    def coerce(cls, value: Any) -> StoreTimestamp | None:
        """Tag a wire value as a timestamp.

        Accepts timestamps, datetimes, epoch numbers (seconds or ms) and
        ISO-8601 strings. ``None`` and ``""`` map to ``None``.
        """
        if value is None or value == "":
            return None
        if isinstance(value, StoreTimestamp):
            return value
        if isinstance(value, datetime):
            return cls.from_datetime(value)
        if isinstance(value, bool):
            raise ValueError(f"Not a timestamp: {value!r}")
        if isinstance(value, (int, float)):
            return cls.from_epoch(value)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = f"{text[:-1]}+00:00"
            return cls.from_datetime(datetime.fromisoformat(text))
        raise ValueError(f"Not a timestamp: {value!r}")


def tag_timestamps(data: Mapping[str, Any], fields: Iterable[str] | None = None) -> dict[str, Any]:
    """Return a copy of *data* with top-level timestamp fields tagged.

    With *fields* ``None`` every top-level ``datetime`` is tagged. With an
    explicit allow-list, the named fields are coerced from any supported wire
    representation and everything else is left untouched.
    """
    tagged = dict(data)
    if fields is None:
        for key, value in data.items():
            if isinstance(value, datetime):
                tagged[key] = StoreTimestamp.from_datetime(value)
        return tagged
    for key in fields:
        if key in tagged:
            tagged[key] = StoreTimestamp.coerce(tagged[key])
    return tagged


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentSnapshot:
    """State of one document at a point in time. ``data`` is ``None`` when missing."""

    id: str
    data: dict[str, Any] | None = None

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class QuerySnapshot:
    """Result set of a query, in store order."""

    documents: tuple[DocumentSnapshot, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.documents)

    @property
    def empty(self) -> bool:
        return not self.documents


# ---------------------------------------------------------------------------
# Query constraints
# ---------------------------------------------------------------------------

WhereOp = Literal["==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains", "array-contains-any"]
_WHERE_OPS: frozenset[str] = frozenset(
    {"==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains", "array-contains-any"}
)


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, datetime):
        return StoreTimestamp.from_datetime(value)
    return value


@dataclass(frozen=True)
class Where:
    field: str
    op: WhereOp
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _WHERE_OPS:
            raise ValueError(f"Unsupported where operator: {self.op!r}")
        # Keep constraints hashable so they can key a subscription.
        object.__setattr__(self, "value", _freeze(self.value))


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: Literal["asc", "desc"] = "asc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported order direction: {self.direction!r}")


@dataclass(frozen=True)
class Limit:
    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("limit must be non-negative")


QueryConstraint = Where | OrderBy | Limit


def where(field_path: str, op: WhereOp, value: Any) -> Where:
    return Where(field_path, op, value)


def order_by(field_path: str, direction: Literal["asc", "desc"] = "asc") -> OrderBy:
    return OrderBy(field_path, direction)


def limit(count: int) -> Limit:
    return Limit(count)


Unsubscribe = Callable[[], None]
SnapshotCallback = Callable[[QuerySnapshot], None]
DocumentCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[BaseException], None]
