"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (Supabase)
- Logger reference
- Convenience property for the Supabase client
- Error capture turning raised client exceptions into ``RemoteError`` values
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar

from supabase import AsyncClient

from paperdraft.database import DatabaseManager
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import RemoteError

T = TypeVar("T")


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> AsyncClient:
        """Returns the Supabase client for cloud operations."""
        return self._db.supabase

    async def _execute(
        self,
        operation: Callable[[], Awaitable[Optional[T]]],
        *,
        operation_name: str,
    ) -> tuple[Optional[T], Optional[RemoteError]]:
        """Run one remote operation and capture its failure as a value.

        Parameters
        ----------
        operation:
            Zero-argument coroutine function performing the PostgREST
            call.  Returns the result or ``None`` if not found.
        operation_name:
            Human-readable label for log messages, e.g.
            ``"get (user_profile)"``.

        Returns
        -------
        tuple
            ``(result, None)`` on success, ``(None, RemoteError)`` when
            the call raised.  Offline mode surfaces here as well, via the
            ``RuntimeError`` raised by ``DatabaseManager.supabase``.
        """
        try:
            return await operation(), None
        except Exception as exc:
            self._logger.warning(
                "Supabase call failed for %s: %s", operation_name, exc,
            )
            return None, RemoteError.from_exception(exc)
