"""
Supabase Auth Adapter.

Wraps ``AsyncClient.auth`` behind the ``RemoteAuthClient`` contract used
by the session controller.  supabase-py raises ``AuthApiError`` (and
httpx transport errors) instead of returning error values; this adapter
catches every exception at the call boundary and returns it as a
``RemoteError`` so the controller only ever deals with values.

It also converts Supabase's ``User`` / ``Session`` objects into the
frozen ``Identity`` / ``Session`` models, so nothing outside this module
depends on supabase-py's object shapes.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from paperdraft.database import DatabaseManager
from paperdraft.interfaces import SessionChangeCallback, Subscription
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import Identity, RemoteError, Session, SessionToken
from paperdraft.services.base_service import BaseService


def to_identity(user: Any) -> Optional[Identity]:
    """Convert a supabase-py ``User`` into an ``Identity`` (``None`` passes through)."""
    if user is None:
        return None
    metadata: Mapping[str, Any] = getattr(user, "user_metadata", None) or {}
    display_name = metadata.get("full_name") or None
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None) or "",
        display_name=display_name,
    )


def to_session(session: Any) -> Optional[Session]:
    """Convert a supabase-py ``Session`` into a ``Session`` model.

    Returns ``None`` for a missing session or one without a user.
    """
    if session is None:
        return None
    identity = to_identity(getattr(session, "user", None))
    if identity is None:
        return None
    return Session(
        identity=identity,
        token=SessionToken(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=getattr(session, "expires_at", None),
        ),
    )


class SupabaseAuthService(BaseService):
    """``RemoteAuthClient`` implementation over Supabase Auth.

    Parameters
    ----------
    db:
        Connected ``DatabaseManager``.  In offline mode every call
        returns the ``RuntimeError`` from ``db.supabase`` as a
        ``RemoteError``.
    logger:
        Structured JSON logger.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._db: DatabaseManager = db

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    async def get_session(self) -> tuple[Optional[Session], Optional[RemoteError]]:
        try:
            raw = await self._db.supabase.auth.get_session()
            return to_session(raw), None
        except Exception as exc:
            self._log_remote_failure("SESSION_QUERY_FAILED", "get_session failed: %s", exc)
            return None, RemoteError.from_exception(exc)

    def on_session_change(self, callback: SessionChangeCallback) -> Subscription:
        """Subscribe *callback* to Supabase auth state changes.

        Supabase invokes listeners synchronously with ``(event, session)``;
        the session is converted before *callback* sees it.  A listener
        that raises is logged so one bad notification never breaks the
        auth client's own dispatch loop.
        """
        def _listener(event: Any, raw_session: Any) -> None:
            try:
                callback(str(event), to_session(raw_session))
            except Exception as exc:
                self._logger.error(
                    "Session change listener failed for %s: %s", event, exc,
                    exc_info=True,
                )

        return self._db.supabase.auth.on_auth_state_change(_listener)

    # ------------------------------------------------------------------
    # Credential operations
    # ------------------------------------------------------------------

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
    ) -> tuple[Optional[Identity], Optional[RemoteError]]:
        try:
            response = await self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": dict(metadata)},
            })
            return to_identity(response.user), None
        except Exception as exc:
            self._log_remote_failure("REGISTER_FAILED", "sign_up failed for %s: %s", email, exc)
            return None, RemoteError.from_exception(exc)

    async def verify_credentials(
        self,
        email: str,
        password: str,
    ) -> tuple[Optional[Identity], Optional[Session], Optional[RemoteError]]:
        try:
            response = await self._db.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
            return to_identity(response.user), to_session(response.session), None
        except Exception as exc:
            self._log_remote_failure("LOGIN_FAILED", "sign_in_with_password failed for %s: %s", email, exc)
            return None, None, RemoteError.from_exception(exc)

    async def invalidate_session(self) -> Optional[RemoteError]:
        try:
            await self._db.supabase.auth.sign_out()
            return None
        except Exception as exc:
            self._log_remote_failure("LOGOUT_FAILED", "sign_out failed: %s", exc)
            return RemoteError.from_exception(exc)
