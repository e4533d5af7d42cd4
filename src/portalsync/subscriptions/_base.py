"""Shared lifecycle for live subscriptions.

Owns:
- opening the store listener and capturing setup failures
- ignoring callbacks from listeners that were closed or replaced
- best-effort teardown
- notifying state listeners after every change
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from portalsync.exceptions import SubscriptionSetupError
from portalsync.state.subscription import SubscriptionState
from portalsync.store.protocols import DocumentStore
from portalsync.store.types import ErrorCallback, Unsubscribe

_logger = logging.getLogger(__name__)

T = TypeVar("T")

StateListener = Callable[[SubscriptionState[Any]], None]


class LiveSubscription(Generic[T]):
    """Base for collection and document subscriptions.

    Nothing raises across :meth:`open`, :meth:`close` or ``update``; every
    failure ends up in ``state.error``.
    """

    def __init__(self, store: DocumentStore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._logger = logger or _logger
        self._unsubscribe: Unsubscribe | None = None
        # Bumped on every open/close; callbacks carrying an older value are stale.
        self._generation = 0
        self._open = False
        self._listeners: list[StateListener] = []
        self.state: SubscriptionState[T] = SubscriptionState(data=self._initial_data())

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _initial_data(self) -> T:
        raise NotImplementedError

    def _skip_reason(self) -> str | None:
        """Return a reason to skip opening a store listener, if any."""
        return None

    def _listen(self, on_snapshot: Callable[[Any], None], on_error: ErrorCallback) -> Unsubscribe:
        raise NotImplementedError

    def _materialize(self, snapshot: Any) -> T:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> SubscriptionState[T]:
        """Start listening. Returns the live state object."""
        if self._open:
            return self.state
        self._open = True
        self._generation += 1
        generation = self._generation

        reason = self._skip_reason()
        if reason is not None:
            self._logger.debug("Subscription %s not opened: %s", self.describe(), reason)
            self.state.loading = False
            self._emit()
            return self.state

        self._logger.debug("Opening subscription %s", self.describe())
        try:
            unsubscribe = self._listen(
                lambda snapshot: self._on_snapshot(generation, snapshot),
                lambda err: self._on_error(generation, err),
            )
        except Exception as err:
            setup_error = SubscriptionSetupError(f"Failed to open subscription {self.describe()}: {err}")
            setup_error.__cause__ = err
            self._fail(setup_error)
            return self.state

        if generation == self._generation:
            self._unsubscribe = unsubscribe
        else:
            # Closed from inside a synchronous delivery during setup.
            self._release(unsubscribe)
        return self.state

    def close(self) -> None:
        """Stop listening. Best-effort: unsubscribe failures are logged, never raised."""
        self._generation += 1
        self._open = False
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            self._logger.debug("Closing subscription %s", self.describe())
            self._release(unsubscribe)

    def _release(self, unsubscribe: Unsubscribe) -> None:
        try:
            unsubscribe()
        except Exception:
            self._logger.warning("Unsubscribe failed for %s", self.describe(), exc_info=True)

    def _restart(self, apply_params: Callable[[], None]) -> None:
        """Tear down, swap parameters, reset state in place and reopen if we were open."""
        was_open = self._open
        self.close()
        apply_params()
        self.state.data = self._initial_data()
        self.state.loading = True
        self.state.error = None
        if was_open:
            self.open()

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    def _on_snapshot(self, generation: int, snapshot: Any) -> None:
        if generation != self._generation:
            self._logger.debug("Dropping stale snapshot for %s", self.describe())
            return
        try:
            data = self._materialize(snapshot)
        except Exception as err:
            self._fail(err)
            return
        self.state.data = data
        self.state.loading = False
        self.state.error = None
        self._emit()

    def _on_error(self, generation: int, err: BaseException) -> None:
        if generation != self._generation:
            self._logger.debug("Dropping stale error for %s: %s", self.describe(), err)
            return
        self._fail(err)

    def _fail(self, err: BaseException) -> None:
        self._logger.warning("Subscription %s failed: %s", self.describe(), err)
        self.state.error = err
        self.state.loading = False
        self._emit()

    # ------------------------------------------------------------------
    # State listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: StateListener) -> Callable[[], None]:
        """Call *callback* with the state after every change. Returns a remover."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _emit(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self.state)
            except Exception:
                self._logger.warning("State listener failed for %s", self.describe(), exc_info=True)

    # ------------------------------------------------------------------
    # Context managers
    # ------------------------------------------------------------------

    def __enter__(self) -> LiveSubscription[T]:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def __aenter__(self) -> LiveSubscription[T]:
        self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()
