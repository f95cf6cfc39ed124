"""
Remote Service Contracts.

Structural ``Protocol`` types for the collaborators the session
controller talks to.  The Supabase adapters in ``paperdraft.services``
and ``paperdraft.repositories`` implement them; tests implement them
with in-memory fakes.

Every call reports failure through its return value, never by raising.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol

from paperdraft.models.auth_models import Identity, RemoteError, Session

ProfileRow = dict[str, Any]

# (event name, session or None); the event is advisory
SessionChangeCallback = Callable[[str, Optional[Session]], None]


class Subscription(Protocol):
    """Handle for a push subscription to session changes."""

    def unsubscribe(self) -> None: ...


class RemoteAuthClient(Protocol):
    """Session issuance / validation half of the remote service."""

    async def get_session(self) -> tuple[Optional[Session], Optional[RemoteError]]: ...

    def on_session_change(self, callback: SessionChangeCallback) -> Subscription: ...

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
    ) -> tuple[Optional[Identity], Optional[RemoteError]]: ...

    async def verify_credentials(
        self,
        email: str,
        password: str,
    ) -> tuple[Optional[Identity], Optional[Session], Optional[RemoteError]]: ...

    async def invalidate_session(self) -> Optional[RemoteError]: ...


class ProfileStore(Protocol):
    """Keyed profile row store (row-level security enforced remotely)."""

    async def get(self, identity_id: str) -> tuple[Optional[ProfileRow], Optional[RemoteError]]: ...

    async def insert(self, row: ProfileRow) -> tuple[Optional[ProfileRow], Optional[RemoteError]]: ...

    async def update(
        self,
        identity_id: str,
        partial_row: ProfileRow,
    ) -> tuple[Optional[ProfileRow], Optional[RemoteError]]: ...
