"""
Authentication Service.

The only mutation entry point of the session controller: register,
sign-in, sign-out, profile update and clear-error.  Sits between the UI
layer and Supabase so that the login and profile pages remain thin form
handlers.

Every operation follows the same shape: publish ``loading=True,
error=None``, make one remote call, resolve into success or failure,
publish the final snapshot.  ``loading`` is back to ``False`` on every
exit path, including exceptions raised by the remote call, which are
converted into the ``error`` field rather than propagated.

Operations started concurrently are not serialised; the last one to
finish wins.  Disabling the submit control while ``loading`` is the
UI's job.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional, Union

from pydantic import ValidationError

from paperdraft.auth import CancellationToken, SessionStateStore
from paperdraft.interfaces import RemoteAuthClient
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    ControllerState,
    RemoteError,
    ValidationResult,
)
from paperdraft.models.profile import Profile, ProfileUpdate
from paperdraft.services.base_service import BaseService
from paperdraft.services.profile_sync import ProfileSynchronizer
from paperdraft.utils.audit import log_audit_event


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_MIN_PASSWORD_LENGTH: int = 6
_MIN_NAME_LENGTH: int = 2
_MIN_API_KEY_LENGTH: int = 10

NO_USER_MESSAGE = "No authenticated user"
PROFILE_CREATE_FAILED_MESSAGE = "Failed to create user profile"
PROFILE_UNAVAILABLE_MESSAGE = "Failed to load user profile"
SIGN_UP_FAILED_MESSAGE = "Sign up failed"
SIGN_IN_FAILED_MESSAGE = "Sign in failed"
SIGN_OUT_FAILED_MESSAGE = "Sign out failed"
UPDATE_FAILED_MESSAGE = "Profile update failed"
INVALID_UPDATE_MESSAGE = "Invalid profile update"

ProfileChanges = Union[ProfileUpdate, Mapping[str, object]]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AuthService(BaseService):
    """Auth action gateway.

    Parameters
    ----------
    remote:
        Remote auth client (account creation, credential verification,
        session invalidation).
    profiles:
        Profile synchronizer for create / fetch / update.
    store:
        The controller's state store; this service and the
        bootstrapper are its only writers.
    token:
        The controller's cancellation token.  Once cancelled, results
        are still returned to the caller but never written.
    logger:
        Structured JSON logger for audit-grade logging.
    """

    def __init__(
        self,
        remote: RemoteAuthClient,
        profiles: ProfileSynchronizer,
        store: SessionStateStore,
        token: CancellationToken,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._remote: RemoteAuthClient = remote
        self._profiles: ProfileSynchronizer = profiles
        self._store: SessionStateStore = store
        self._token: CancellationToken = token

    # ==================================================================
    # Validation helpers (used by the login / profile forms)
    # ==================================================================

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Check that *email* is present and shaped like ``local@domain.tld``."""
        if not email or not email.strip():
            return ValidationResult(is_valid=False, error_message="Email is required")
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_password(password: str) -> ValidationResult:
        """Enforce the password policy: present and at least 6 characters."""
        if not password:
            return ValidationResult(is_valid=False, error_message="Password is required")
        if len(password) < _MIN_PASSWORD_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=f"Password must be at least {_MIN_PASSWORD_LENGTH} characters",
            )
        return ValidationResult(is_valid=True)

    @classmethod
    def validate_sign_in(cls, email: str, password: str) -> ValidationResult:
        """Validate the sign-in form, returning per-field errors."""
        return cls._collect({
            "email": cls.validate_email(email),
            "password": cls.validate_password(password),
        })

    @classmethod
    def validate_sign_up(
        cls,
        email: str,
        password: str,
        confirm_password: str,
        full_name: str,
    ) -> ValidationResult:
        """Validate the registration form, returning per-field errors.

        Parameters
        ----------
        email:
            Raw email as typed.
        password:
            Chosen password.
        confirm_password:
            Must equal *password*.
        full_name:
            Display name; required.
        """
        checks: dict[str, ValidationResult] = {
            "email": cls.validate_email(email),
            "password": cls.validate_password(password),
        }
        if not full_name or not full_name.strip():
            checks["full_name"] = ValidationResult(
                is_valid=False, error_message="Full name is required",
            )
        if not confirm_password:
            checks["confirm_password"] = ValidationResult(
                is_valid=False, error_message="Please confirm your password",
            )
        elif password != confirm_password:
            checks["confirm_password"] = ValidationResult(
                is_valid=False, error_message="Passwords do not match",
            )
        return cls._collect(checks)

    @classmethod
    def validate_profile_form(cls, full_name: str, grok_api_key: str = "") -> ValidationResult:
        """Validate the profile form.

        The API key is optional; when given it must look like a real key.
        """
        checks: dict[str, ValidationResult] = {}
        stripped_name = (full_name or "").strip()
        if not stripped_name:
            checks["full_name"] = ValidationResult(
                is_valid=False, error_message="Full name is required",
            )
        elif len(stripped_name) < _MIN_NAME_LENGTH:
            checks["full_name"] = ValidationResult(
                is_valid=False,
                error_message=f"Full name must be at least {_MIN_NAME_LENGTH} characters",
            )

        stripped_key = (grok_api_key or "").strip()
        if stripped_key and len(stripped_key) < _MIN_API_KEY_LENGTH:
            checks["grok_api_key"] = ValidationResult(
                is_valid=False, error_message="API key appears to be too short",
            )
        return cls._collect(checks)

    @staticmethod
    def build_profile_update(
        current: Optional[Profile],
        full_name: str,
        grok_api_key: str = "",
    ) -> Optional[ProfileUpdate]:
        """Build the partial update for a submitted profile form.

        ``full_name`` is included only when it differs from the stored
        value; the API key only when a non-blank one was typed.  Returns
        ``None`` when there is nothing to save.
        """
        changes: dict[str, str] = {}
        stored_name = (current.full_name if current is not None else None) or ""
        if full_name != stored_name:
            changes["full_name"] = full_name.strip()
        if grok_api_key and grok_api_key.strip():
            changes["grok_api_key"] = grok_api_key.strip()

        if not changes:
            return None
        return ProfileUpdate.model_validate(changes)

    @staticmethod
    def _collect(checks: Mapping[str, ValidationResult]) -> ValidationResult:
        field_errors = {
            field: result.error_message or "Invalid value"
            for field, result in checks.items()
            if not result.is_valid
        }
        if not field_errors:
            return ValidationResult(is_valid=True)
        return ValidationResult(
            is_valid=False,
            error_message=next(iter(field_errors.values())),
            field_errors=field_errors,
        )

    # ==================================================================
    # Registration
    # ==================================================================

    async def register(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> AuthResult:
        """Create an account and its profile row.

        Does not sign the user in.  When Supabase issues a session right
        away, the session-change subscription publishes it; when email
        confirmation is required, the store stays unauthenticated until
        the user signs in.

        If the account is created but the profile insert fails, the
        result is a failure although the account now exists remotely.
        Retrying with the same email then fails with "User already
        registered"; the missing profile is created on first sign-in.
        An insert that fails because the row already exists (created by
        the session-change listener for the session issued during
        sign-up) counts as success.
        """
        self._begin()
        try:
            metadata: dict[str, str] = {}
            if display_name:
                metadata["full_name"] = display_name

            identity, error = await self._remote.create_account(email, password, metadata)
            if error is not None:
                return self._fail_remote(error, "REGISTER_FAILED")

            if identity is None:
                return self._fail(SIGN_UP_FAILED_MESSAGE, AuthErrorCode.UNKNOWN_ERROR)

            created = await self._profiles.create_profile(identity.id, email, display_name)
            if not created:
                # Supabase may already have pushed the new session; its
                # listener provisions the same row concurrently.
                created = await self._profiles.fetch_profile(identity.id) is not None
            if not created:
                self._logger.warning(
                    "Account %s created but its profile was not; the account "
                    "exists remotely without a profile row.",
                    identity.id,
                    extra={"event": "REGISTER_PROFILE_FAILED", "user_id": identity.id},
                )
                return self._fail(PROFILE_CREATE_FAILED_MESSAGE, AuthErrorCode.PROFILE_ERROR)

            self._publish_changes(loading=False, error=None)
            log_audit_event(
                logger=self._logger,
                action="REGISTER",
                entity_type="Session",
                entity_id=identity.id,
                user_id=identity.id,
                details={"email": email},
            )
            return AuthResult.ok()

        except Exception as exc:
            return self._fail_unexpected(exc, SIGN_UP_FAILED_MESSAGE, "register")

    # ==================================================================
    # Sign-in
    # ==================================================================

    async def sign_in(self, email: str, password: str) -> AuthResult:
        """Verify credentials and publish the authenticated snapshot.

        On failure the identity/profile/token fields are left exactly as
        they were before the call.  When the credentials are accepted but
        no profile can be read or created, the result is a failure and
        the store stays unauthenticated, but the Supabase session that
        was just issued is left active remotely; a later sign-in or the
        next session notification retries the profile.

        Success advances the store's session generation, so a
        notification still resolving an older session cannot overwrite
        the one published here.
        """
        self._begin()
        try:
            identity, session, error = await self._remote.verify_credentials(email, password)
            if error is not None:
                return self._fail_remote(error, "LOGIN_FAILED")

            if identity is None:
                return self._fail(SIGN_IN_FAILED_MESSAGE, AuthErrorCode.UNKNOWN_ERROR)

            profile = await self._profiles.ensure_profile(identity)
            if profile is None:
                return self._fail(PROFILE_UNAVAILABLE_MESSAGE, AuthErrorCode.PROFILE_ERROR)

            self._store.advance_generation()
            self._publish(ControllerState(
                identity=identity,
                profile=profile,
                session_token=session.token if session is not None else None,
                loading=False,
                error=None,
            ))

            log_audit_event(
                logger=self._logger,
                action="SIGN_IN",
                entity_type="Session",
                entity_id=identity.id,
                user_id=identity.id,
                details={"email": identity.email},
            )
            return AuthResult.ok()

        except Exception as exc:
            return self._fail_unexpected(exc, SIGN_IN_FAILED_MESSAGE, "sign_in")

    # ==================================================================
    # Sign-out
    # ==================================================================

    async def sign_out(self) -> None:
        """Invalidate the remote session, then clear the local snapshot.

        Failure is reported only through the store's ``error`` field; the
        identity and profile stay as they were, since the sign-out did not
        take effect.
        """
        previous = self._store.snapshot.identity
        self._begin()
        try:
            error = await self._remote.invalidate_session()
            if error is not None:
                self._fail_remote(error, "LOGOUT_FAILED")
                return

            self._store.advance_generation()
            self._publish(ControllerState.unauthenticated())

            if previous is not None:
                log_audit_event(
                    logger=self._logger,
                    action="SIGN_OUT",
                    entity_type="Session",
                    entity_id=previous.id,
                    user_id=previous.id,
                )
        except Exception as exc:
            self._fail_unexpected(exc, SIGN_OUT_FAILED_MESSAGE, "sign_out")

    # ==================================================================
    # Profile update
    # ==================================================================

    async def update_profile(self, changes: ProfileChanges) -> AuthResult:
        """Apply a partial profile update for the signed-in user.

        Blank secret fields are dropped, never sent as "clear".  The
        profile is re-fetched afterwards rather than trusting the echoed
        row.  If the user signed out or switched accounts while the
        update was in flight, the re-fetched row is not published.
        """
        identity = self._store.snapshot.identity
        if identity is None:
            self._publish_changes(error=NO_USER_MESSAGE)
            return AuthResult.fail(NO_USER_MESSAGE, AuthErrorCode.NOT_AUTHENTICATED)

        self._begin()
        try:
            if isinstance(changes, ProfileUpdate):
                update = changes
            else:
                try:
                    update = ProfileUpdate.model_validate(dict(changes))
                except ValidationError as exc:
                    fields = ", ".join(
                        str(err["loc"][0]) for err in exc.errors() if err["loc"]
                    )
                    self._logger.warning(
                        "Rejected profile update for %s: %s", identity.id, fields,
                        extra={"event": "PROFILE_UPDATE_REJECTED"},
                    )
                    return self._fail(
                        f"{INVALID_UPDATE_MESSAGE}: {fields}",
                        AuthErrorCode.VALIDATION_ERROR,
                    )

            error = await self._profiles.update_profile(identity.id, update)
            if error is not None:
                return self._fail_remote(error, "PROFILE_UPDATE_FAILED")

            refreshed = await self._profiles.fetch_profile(identity.id)
            current = self._store.snapshot.identity
            if current is None or current.id != identity.id:
                self._logger.info(
                    "Session changed during profile update for %s; "
                    "discarding refreshed profile.",
                    identity.id,
                )
                self._publish_changes(loading=False, error=None)
            elif refreshed is None:
                self._logger.warning(
                    "Profile %s updated but could not be re-fetched; "
                    "keeping the previous snapshot.",
                    identity.id,
                )
                self._publish_changes(loading=False, error=None)
            else:
                self._publish_changes(profile=refreshed, loading=False, error=None)

            return AuthResult.ok()

        except Exception as exc:
            return self._fail_unexpected(exc, UPDATE_FAILED_MESSAGE, "update_profile")

    # ==================================================================
    # Error reset
    # ==================================================================

    def clear_error(self) -> None:
        """Drop the current error without touching any other field."""
        if self._store.snapshot.error is None:
            return
        self._publish_changes(error=None)

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _begin(self) -> None:
        self._publish_changes(loading=True, error=None)

    def _fail(self, message: str, error_code: AuthErrorCode) -> AuthResult:
        self._publish_changes(loading=False, error=message)
        return AuthResult.fail(message, error_code)

    def _fail_remote(self, error: RemoteError, event: str) -> AuthResult:
        error_code = error.classify()
        self._logger.warning(
            "Auth error (%s): %s", error_code, error.message,
            extra={"event": event, "error_code": str(error_code)},
        )
        return self._fail(error.message, error_code)

    def _fail_unexpected(self, exc: Exception, fallback: str, operation: str) -> AuthResult:
        self._logger.error(
            "Unexpected error during %s: %s", operation, exc,
            exc_info=True,
            extra={"event": "AUTH_UNEXPECTED_ERROR"},
        )
        message = str(exc) or fallback
        return self._fail(message, AuthErrorCode.UNKNOWN_ERROR)

    def _publish(self, state: ControllerState) -> None:
        if self._token.cancelled:
            self._logger.debug("Discarding auth state write after teardown.")
            return
        self._store.replace(state)

    def _publish_changes(self, **changes: object) -> None:
        if self._token.cancelled:
            self._logger.debug("Discarding auth state write after teardown.")
            return
        self._store.update(**changes)
