"""Caller-visible state of one live query."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class SubscriptionState(Generic[T]):
    """The ``(data, loading, error)`` triple exposed to a caller.

    The owning subscription mutates this object in place on every snapshot or
    error; callers hold on to it and re-read it (or register a listener on the
    subscription). ``loading`` is true only until the first snapshot or error
    arrives; ``data`` keeps its last good value when an error is recorded.
    """

    data: T
    loading: bool = True
    error: BaseException | None = None

    @property
    def ready(self) -> bool:
        """Whether the state holds data from a successful snapshot."""
        return not self.loading and self.error is None

    def snapshot(self) -> SubscriptionState[T]:
        """Detached copy, safe to keep while the live state keeps changing."""
        return SubscriptionState(data=copy.copy(self.data), loading=self.loading, error=self.error)
