"""
Session Bootstrapper.

Resolves any existing Supabase session at startup, publishes the
resulting snapshot, and then keeps the store in step with session-change
notifications pushed by the auth client (sign-in or sign-out in another
tab, token refresh, refresh failure).

Lifecycle
---------
``start(token)`` runs once.  ``stop()`` unsubscribes exactly once.  The
controller cancels the shared ``CancellationToken`` before calling
``stop()``; every asynchronous step checks that token before writing,
so a profile fetch that completes after teardown is discarded instead
of landing in a store nobody renders any more.

Each resolution also captures the store's session generation when it
begins.  Every notification, sign-in and sign-out advances it, so a slow
profile fetch for a session that has since ended (signed out, or
replaced by another account) is dropped instead of resurrecting it.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from paperdraft.auth import CancellationToken, SessionStateStore
from paperdraft.interfaces import RemoteAuthClient, Subscription
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import ControllerState, Session
from paperdraft.models.enums import AuthEvent
from paperdraft.services.base_service import BaseService
from paperdraft.services.profile_sync import ProfileSynchronizer

INIT_FAILED_MESSAGE = "Failed to initialize authentication"
CHANGE_FAILED_MESSAGE = "Authentication error"
PROFILE_UNAVAILABLE_MESSAGE = "Failed to load user profile"


class SessionBootstrapper(BaseService):
    """Populates the store from the remote session and follows its changes.

    Parameters
    ----------
    remote:
        Remote auth client (session query + change subscription).
    profiles:
        Profile synchronizer used to resolve the identity's profile.
    store:
        The controller's state store.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        remote: RemoteAuthClient,
        profiles: ProfileSynchronizer,
        store: SessionStateStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._remote: RemoteAuthClient = remote
        self._profiles: ProfileSynchronizer = profiles
        self._store: SessionStateStore = store
        self._token: Optional[CancellationToken] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscription: Optional[Subscription] = None
        self._pending: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, token: CancellationToken) -> None:
        """Resolve the current session, then subscribe to future changes."""
        self._token = token
        self._loop = asyncio.get_running_loop()

        await self._resolve_initial(token)

        if token.cancelled:
            self._logger.debug("Controller torn down during startup; not subscribing.")
            return

        self._subscription = self._remote.on_session_change(self._on_session_change)
        self._logger.info("Subscribed to session changes.")

    def stop(self) -> None:
        """Unsubscribe from session changes.  Safe to call more than once."""
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            subscription.unsubscribe()
            self._logger.info("Unsubscribed from session changes.")
        except Exception as exc:
            self._logger.warning("Failed to unsubscribe from session changes: %s", exc)

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    async def wait_for_pending(self) -> None:
        """Wait until every scheduled notification handler has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def _resolve_initial(self, token: CancellationToken) -> None:
        generation = self._store.generation
        try:
            session, error = await self._remote.get_session()
            if error is not None:
                self._logger.warning(
                    "Error getting session: %s", error.message,
                    extra={"event": "SESSION_QUERY_FAILED"},
                )
                self._commit(
                    token,
                    generation,
                    changes={
                        "identity": None,
                        "profile": None,
                        "session_token": None,
                        "loading": False,
                        "error": error.message,
                    },
                )
                return

            await self._apply_session(session, token, generation)
        except Exception as exc:
            self._logger.error("Error initializing auth: %s", exc, exc_info=True)
            self._commit(token, generation, changes={"loading": False, "error": INIT_FAILED_MESSAGE})

    # ------------------------------------------------------------------
    # Push notifications
    # ------------------------------------------------------------------

    def _on_session_change(self, event: str, session: Optional[Session]) -> None:
        """Subscription callback; schedules the async handler on the loop."""
        token = self._token
        if token is None or token.cancelled or self._loop is None:
            self._logger.debug("Ignoring session change %s after teardown.", event)
            return

        generation = self._store.advance_generation()
        task = self._loop.create_task(self._handle_change(event, session, token, generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _handle_change(
        self,
        event: str,
        session: Optional[Session],
        token: CancellationToken,
        generation: int,
    ) -> None:
        self._logger.info(
            "Session change: %s", event,
            extra={"event": "SESSION_CHANGE", "auth_event": event},
        )
        try:
            await self._apply_session(session, token, generation, AuthEvent.parse(event))
        except Exception as exc:
            self._logger.error(
                "Error handling auth state change: %s", exc, exc_info=True,
            )
            self._commit(token, generation, changes={"loading": False, "error": CHANGE_FAILED_MESSAGE})

    # ------------------------------------------------------------------
    # Shared resolution (startup and notifications)
    # ------------------------------------------------------------------

    async def _apply_session(
        self,
        session: Optional[Session],
        token: CancellationToken,
        generation: int,
        event: Optional[AuthEvent] = None,
    ) -> None:
        if session is None:
            self._commit(token, generation, state=ControllerState.unauthenticated())
            return

        current = self._store.snapshot
        if (
            current.identity is not None
            and current.profile is not None
            and current.identity.id == session.identity.id
            and event is not AuthEvent.USER_UPDATED
        ):
            # Same user (token refresh, duplicate sign-in event): the profile is current.
            self._commit(
                token,
                generation,
                changes={"identity": session.identity, "session_token": session.token},
            )
            return

        profile = await self._profiles.ensure_profile(session.identity)

        if profile is None:
            self._commit(
                token,
                generation,
                state=ControllerState(loading=False, error=PROFILE_UNAVAILABLE_MESSAGE),
            )
            return

        if not self._commit(
            token,
            generation,
            state=ControllerState(
                identity=session.identity,
                profile=profile,
                session_token=session.token,
                loading=False,
                error=None,
            ),
        ):
            return
        self._logger.info(
            "Session resolved for %s.", session.identity.email,
            extra={"user_id": session.identity.id},
        )

    def _commit(
        self,
        token: CancellationToken,
        generation: int,
        state: Optional[ControllerState] = None,
        changes: Optional[dict[str, object]] = None,
    ) -> bool:
        """Write to the store; ``False`` when the write was discarded.

        Discarded after teardown, and when a later session transition
        has superseded *generation*.
        """
        if token.cancelled:
            self._logger.debug("Discarding session update after teardown.")
            return False
        if not self._store.is_current(generation):
            self._logger.debug(
                "Discarding superseded session update (generation %d, now %d).",
                generation, self._store.generation,
            )
            return False
        if state is not None:
            self._store.replace(state)
        elif changes:
            self._store.update(**changes)
        return True
