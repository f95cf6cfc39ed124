"""
Remote Backend Connection.

Owns the single async Supabase client used by the session controller:

- ``client.auth`` issues, validates and refreshes sessions and pushes
  session-change notifications (see ``SupabaseAuthService``).
- ``client.table(...)`` is the profile row store, protected by
  row-level security (see ``ProfileRepository``).

This module only manages the *connection*; it contains no query or
auth logic.

Usage (dependency injection at app startup)::

    from paperdraft.database import DatabaseManager
    from paperdraft.logger import StructuredLogger

    db = await DatabaseManager.connect(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
    )
    # Inject `db` into repositories / services that need it.
"""

from __future__ import annotations

from typing import Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from paperdraft.logger import StructuredLogger


class DatabaseManager:
    """Holds the async Supabase client.

    When the URL or key is empty, or the client cannot be created, no
    client is held and the manager is *offline*.  The ``supabase``
    property then raises ``RuntimeError``, which every adapter catches
    and reports as an ordinary remote error, so the controller degrades
    to "Failed to initialize authentication" instead of crashing.

    Parameters
    ----------
    client:
        An initialised ``AsyncClient``, or ``None`` for offline mode.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        client: Optional[AsyncClient],
        logger: StructuredLogger,
    ) -> None:
        self._supabase: Optional[AsyncClient] = client
        self._logger: StructuredLogger = logger

    @classmethod
    async def connect(
        cls,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
        auto_refresh_token: bool = True,
        persist_session: bool = True,
    ) -> "DatabaseManager":
        """Create the Supabase client and wrap it in a manager.

        Never raises: credential or initialisation errors are logged and
        yield an offline manager.
        """
        if not (supabase_url and supabase_key):
            logger.warning(
                "Supabase credentials not configured; running in offline mode."
            )
            return cls(client=None, logger=logger)

        try:
            client = await acreate_client(
                supabase_url,
                supabase_key,
                options=AsyncClientOptions(
                    auto_refresh_token=auto_refresh_token,
                    persist_session=persist_session,
                ),
            )
        except (ValueError, TypeError) as exc:
            logger.warning(
                "Supabase credential format error: %s. Running in offline mode.",
                exc,
            )
            return cls(client=None, logger=logger)
        except Exception as exc:
            logger.error(
                "Unexpected Supabase initialization failure: %s. "
                "Running in offline mode.",
                exc,
                exc_info=True,
            )
            return cls(client=None, logger=logger)

        logger.info("Supabase client initialized.")
        return cls(client=client, logger=logger)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> AsyncClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised (offline mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running in offline mode."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None
