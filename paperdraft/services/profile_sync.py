"""
Profile Synchronizer.

Keeps the ``user_profile`` row in step with the authenticated identity:
fetches it, creates it when the identity has none yet, and applies
partial updates.

Sync strategy:
    - A profile is created exactly once per identity, by insert (never
      upsert), on registration or on the first session that finds none.
    - Fetch failures and "not found" are reported the same way (``None``);
      the caller decides whether to create.
    - If a create loses a race against a concurrent creator (e.g. the
      session-change listener and ``sign_in`` resolving the same new
      identity), the row is looked up once more instead of failing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from paperdraft.interfaces import ProfileStore
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import Identity, RemoteError
from paperdraft.models.profile import Profile, ProfileUpdate
from paperdraft.services.base_service import BaseService
from paperdraft.utils.audit import log_audit_event


class ProfileSynchronizer(BaseService):
    """Fetches, creates and updates profile rows for an identity."""

    def __init__(
        self,
        store: ProfileStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._store: ProfileStore = store

    async def fetch_profile(self, identity_id: str) -> Optional[Profile]:
        """Return the profile for *identity_id*, or ``None`` if absent or unreadable."""
        try:
            row, error = await self._store.get(identity_id)
        except Exception as exc:
            self._logger.error(
                "Error fetching user profile %s: %s", identity_id, exc, exc_info=True,
            )
            return None

        if error is not None:
            self._log_remote_failure(
                "PROFILE_FETCH_FAILED", "Error fetching user profile %s: %s", identity_id, error.message,
            )
            return None
        if row is None:
            self._logger.info("No profile row for user %s.", identity_id)
            return None

        try:
            return Profile.model_validate(row)
        except ValidationError as exc:
            self._logger.warning(
                "Malformed profile row for user %s: %s", identity_id, exc,
            )
            return None

    async def create_profile(
        self,
        identity_id: str,
        email: str,
        display_name: Optional[str] = None,
    ) -> bool:
        """Insert a new profile row; ``True`` when the insert succeeded.

        Must not be called for an identity that already has a row; what
        the store does then (conflict or overwrite) is not relied upon.
        """
        now = datetime.now(timezone.utc).isoformat()
        row = {
            "user_id": identity_id,
            "email": email,
            "full_name": display_name or None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            _, error = await self._store.insert(row)
        except Exception as exc:
            self._logger.error(
                "Error creating user profile %s: %s", identity_id, exc, exc_info=True,
            )
            return False

        if error is not None:
            self._log_remote_failure(
                "PROFILE_CREATE_FAILED", "Error creating user profile %s: %s", identity_id, error.message,
            )
            return False

        log_audit_event(
            logger=self._logger,
            action="PROFILE_CREATE",
            entity_type="Profile",
            entity_id=identity_id,
            user_id=identity_id,
            details={"email": email, "full_name": display_name},
        )
        return True

    async def ensure_profile(self, identity: Identity) -> Optional[Profile]:
        """Fetch the identity's profile, creating it first if it is missing.

        Returns ``None`` only when the row can neither be read nor
        created.
        """
        profile = await self.fetch_profile(identity.id)
        if profile is not None:
            return profile

        self._logger.info(
            "Provisioning profile for %s (ID: %s)", identity.email, identity.id,
        )
        created = await self.create_profile(identity.id, identity.email, identity.display_name)
        if not created:
            # Possible race: another caller created the row first.
            self._logger.warning(
                "Profile insert failed for %s; retrying lookup.", identity.id,
            )

        profile = await self.fetch_profile(identity.id)
        if profile is None:
            self._logger.error("Could not resolve a profile for user %s.", identity.id)
        return profile

    async def update_profile(
        self,
        identity_id: str,
        update: ProfileUpdate,
    ) -> Optional[RemoteError]:
        """Apply *update* server-side, stamping ``updated_at``.

        The echoed row is ignored; callers re-fetch with
        :meth:`fetch_profile`.
        """
        row: dict[str, str] = update.to_row()
        row["updated_at"] = datetime.now(timezone.utc).isoformat()

        _, error = await self._store.update(identity_id, row)
        if error is not None:
            self._log_remote_failure(
                "PROFILE_UPDATE_FAILED", "Error updating user profile %s: %s", identity_id, error.message,
            )
            return error

        log_audit_event(
            logger=self._logger,
            action="PROFILE_UPDATE",
            entity_type="Profile",
            entity_id=identity_id,
            user_id=identity_id,
            details={"fields": ",".join(update.changed_fields())},
        )
        return None
