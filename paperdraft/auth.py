"""
Authentication & Session State.

Provides the injectable ``SessionStateStore`` that holds the current
``ControllerState`` snapshot for the lifetime of one application
session, and the ``CancellationToken`` that asynchronous steps check
before committing a result to it.

Usage::

    from paperdraft.auth import CancellationToken, SessionStateStore

    store = SessionStateStore(logger=get_logger("session"))
    unsubscribe = store.subscribe(lambda state: render(state))
    store.update(loading=False, error="Invalid login credentials")
    store.snapshot.error
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import ControllerState

StateListener = Callable[[ControllerState], None]


class CancellationToken:
    """Liveness flag shared by every asynchronous step of one controller.

    Once cancelled it stays cancelled; a torn-down controller is never
    revived.
    """

    def __init__(self) -> None:
        self._cancelled: bool = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class SessionStateStore:
    """Injectable holder for the current controller snapshot.

    Each instance maintains its own state, so tests and separate
    application sessions never share a store.  Writers always replace
    the whole snapshot; readers see either the old or the new value,
    never a mix of both.

    Parameters
    ----------
    logger:
        Structured logger; listener failures are reported here.
    initial:
        Starting snapshot.  Defaults to ``ControllerState.initial()``
        (``loading=True`` until the bootstrapper settles).
    """

    def __init__(
        self,
        logger: StructuredLogger,
        initial: Optional[ControllerState] = None,
    ) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._logger: StructuredLogger = logger
        self._state: ControllerState = initial if initial is not None else ControllerState.initial()
        self._listeners: list[StateListener] = []
        self._generation: int = 0

    @property
    def snapshot(self) -> ControllerState:
        """Return the current snapshot."""
        with self._lock:
            return self._state

    # -- Session generation ----------------------------------------------------

    @property
    def generation(self) -> int:
        """Counter of session transitions seen so far (sign-in, sign-out, notifications)."""
        with self._lock:
            return self._generation

    def advance_generation(self) -> int:
        """Mark a new session transition and return its generation.

        A writer that resolved a session under an older generation must
        not publish it: a later transition has superseded it.
        """
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._generation == generation

    def replace(self, state: ControllerState) -> ControllerState:
        """Atomically install *state* and notify listeners."""
        with self._lock:
            self._state = state
            listeners = list(self._listeners)

        self._notify(listeners, state)
        return state

    def update(self, **changes: object) -> ControllerState:
        """Replace the snapshot with a copy of the current one plus *changes*."""
        with self._lock:
            new_state = self._state.model_copy(update=changes)
            self._state = new_state
            listeners = list(self._listeners)

        self._notify(listeners, new_state)
        return new_state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for every future write.

        Returns a callable that removes the listener; calling it more
        than once is harmless.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, listeners: list[StateListener], state: ControllerState) -> None:
        # Listeners run outside the lock; a failing one never blocks the rest.
        for listener in listeners:
            try:
                listener(state)
            except Exception as exc:
                self._logger.warning("State listener failed: %s", exc, exc_info=True)
