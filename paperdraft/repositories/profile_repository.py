"""
Profile Repository.

Handles all ``user_profile`` row access via Supabase.  Row-level
security restricts every query to the signed-in user's own row, so the
repository never filters by anything but ``user_id``.
"""

from __future__ import annotations

from typing import Optional

from paperdraft.database import DatabaseManager
from paperdraft.interfaces import ProfileRow
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import RemoteError
from paperdraft.repositories.base_repository import BaseRepository


class ProfileRepository(BaseRepository):
    """Data access layer for profile rows.

    There is no ``delete()``: profiles live as long as the account and
    nothing in the session controller removes them.

    Parameters
    ----------
    db:
        Connected ``DatabaseManager``.
    logger:
        Structured logger.
    table:
        Table name; defaults to ``user_profile``.
    """

    TABLE = "user_profile"

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        table: Optional[str] = None,
    ) -> None:
        super().__init__(db, logger)
        if table:
            self.TABLE = table

    async def get(self, identity_id: str) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        """Fetch the profile row for *identity_id*; ``(None, None)`` when absent."""
        async def _op() -> Optional[ProfileRow]:
            response = await (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("user_id", identity_id)
                .maybe_single()
                .execute()
            )
            # postgrest returns None instead of an empty response for no rows
            if response is None or not response.data:
                return None
            return dict(response.data)

        return await self._execute(_op, operation_name=f"get ({self.TABLE})")

    async def insert(self, row: ProfileRow) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        """Insert a new row.  Never upserts; a duplicate key is an error."""
        async def _op() -> Optional[ProfileRow]:
            response = await self.supabase.table(self.TABLE).insert(row).execute()
            return dict(response.data[0]) if response.data else None

        return await self._execute(_op, operation_name=f"insert ({self.TABLE})")

    async def update(
        self,
        identity_id: str,
        partial_row: ProfileRow,
    ) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        """Apply *partial_row* to the row keyed by *identity_id*."""
        async def _op() -> Optional[ProfileRow]:
            response = await (
                self.supabase.table(self.TABLE)
                .update(partial_row)
                .eq("user_id", identity_id)
                .execute()
            )
            return dict(response.data[0]) if response.data else None

        return await self._execute(_op, operation_name=f"update ({self.TABLE})")
