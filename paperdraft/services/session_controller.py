"""
Session Controller.

The single object handed to the UI tree: one store, one cancellation
token, one bootstrapper and one auth gateway, wired together.  UI code
reads ``state`` (or ``subscribe``s to it) and calls the five operations;
nothing else writes the store.

Usage::

    controller = SessionController(remote=auth_client, profile_store=repo, logger=log)
    await controller.start()
    result = await controller.sign_in("a@b.com", "secret1")
    controller.state.profile
    controller.teardown()

or as an async context manager::

    async with SessionController(...) as controller:
        ...
"""

from __future__ import annotations

from types import TracebackType
from typing import Callable, Optional

from paperdraft.auth import CancellationToken, SessionStateStore, StateListener
from paperdraft.interfaces import ProfileStore, RemoteAuthClient
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import AuthResult, ControllerState
from paperdraft.services.auth_service import AuthService, ProfileChanges
from paperdraft.services.profile_sync import ProfileSynchronizer
from paperdraft.services.session_bootstrap import SessionBootstrapper


class SessionController:
    """Owns the session state of one application session.

    Parameters
    ----------
    remote:
        Remote auth client.
    profile_store:
        Profile row store.
    logger:
        Structured JSON logger shared by the components.
    store:
        Optional pre-built store (tests use this to observe writes from
        the first one on).
    """

    def __init__(
        self,
        remote: RemoteAuthClient,
        profile_store: ProfileStore,
        logger: StructuredLogger,
        store: Optional[SessionStateStore] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._token: CancellationToken = CancellationToken()
        self._store: SessionStateStore = store if store is not None else SessionStateStore(logger)
        self._profiles: ProfileSynchronizer = ProfileSynchronizer(profile_store, logger)
        self._bootstrapper: SessionBootstrapper = SessionBootstrapper(
            remote=remote,
            profiles=self._profiles,
            store=self._store,
            logger=logger,
        )
        self._auth: AuthService = AuthService(
            remote=remote,
            profiles=self._profiles,
            store=self._store,
            token=self._token,
            logger=logger,
        )
        self._started: bool = False

    # ------------------------------------------------------------------
    # Reactive state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        """The current snapshot."""
        return self._store.snapshot

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot; returns an unsubscribe callable."""
        return self._store.subscribe(listener)

    @property
    def auth(self) -> AuthService:
        """The gateway, for its form-validation helpers."""
        return self._auth

    @property
    def is_alive(self) -> bool:
        return not self._token.cancelled

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Resolve the existing session and subscribe to changes.  Runs once."""
        if self._started:
            return
        if self._token.cancelled:
            self._logger.warning("start() called on a torn-down session controller.")
            return
        self._started = True
        await self._bootstrapper.start(self._token)

    def teardown(self) -> None:
        """Stop all further store writes and drop the subscription.

        Idempotent.  In-flight operations still finish and return their
        results, but their writes are discarded.
        """
        if self._token.cancelled:
            return
        self._token.cancel()
        self._bootstrapper.stop()
        self._logger.info("Session controller torn down.")

    async def wait_for_pending(self) -> None:
        """Wait for scheduled session-change handlers to settle."""
        await self._bootstrapper.wait_for_pending()

    async def __aenter__(self) -> "SessionController":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> AuthResult:
        return await self._auth.register(email, password, display_name)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self._auth.sign_in(email, password)

    async def sign_out(self) -> None:
        await self._auth.sign_out()

    async def update_profile(self, changes: ProfileChanges) -> AuthResult:
        return await self._auth.update_profile(changes)

    def clear_error(self) -> None:
        self._auth.clear_error()
