"""
Authentication Pipeline Models.

Pydantic models and enumerations for the session controller: the
identity/session values handed out by Supabase, the controller snapshot
read by the UI layer, and the request/response contracts of every auth
operation.

Every snapshot and value object is frozen so that a reader can never
observe a half-written state; the store replaces whole snapshots.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field, SecretStr

from paperdraft.models.profile import Profile


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Enumeration of authentication error categories.

    Advisory only: the human-readable ``error`` string on
    ``AuthResult`` is always the provider's message verbatim (or a fixed
    local message).  The UI may use the code to decide which extra
    controls to show.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    NOT_AUTHENTICATED = "not_authenticated"
    PROFILE_ERROR = "profile_error"
    SESSION_ERROR = "session_error"
    UNKNOWN_ERROR = "unknown_error"


# Substrings of Supabase error messages / codes, lower-cased.
SUPABASE_ERROR_MAP: dict[str, AuthErrorCode] = {
    "invalid login credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid_credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid_grant": AuthErrorCode.INVALID_CREDENTIALS,
    "user already registered": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "user_already_exists": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "email not confirmed": AuthErrorCode.EMAIL_NOT_CONFIRMED,
    "email_not_confirmed": AuthErrorCode.EMAIL_NOT_CONFIRMED,
    "password should be": AuthErrorCode.VALIDATION_ERROR,
    "weak_password": AuthErrorCode.VALIDATION_ERROR,
    "validation_failed": AuthErrorCode.VALIDATION_ERROR,
    "session_not_found": AuthErrorCode.SESSION_ERROR,
    "refresh_token_not_found": AuthErrorCode.SESSION_ERROR,
}


class RemoteError(BaseModel):
    """Error reported by the remote auth/profile service.

    Attributes
    ----------
    message:
        Human-readable provider message, surfaced verbatim to the UI.
    status:
        HTTP status when the provider reported one.
    code:
        Provider error code (e.g. ``invalid_credentials``), if any.
    is_network:
        ``True`` when the failure never reached the provider.
    """

    message: str
    status: Optional[int] = None
    code: Optional[str] = None
    is_network: bool = False

    model_config = {"frozen": True}

    @classmethod
    def from_exception(cls, exc: BaseException, fallback: str = "Unexpected error") -> "RemoteError":
        """Build a ``RemoteError`` from any exception raised by a client call.

        Supabase / PostgREST errors carry ``message``, ``status`` and
        ``code`` attributes; everything else falls back to ``str(exc)``.
        """
        message = getattr(exc, "message", None) or str(exc) or fallback
        status = getattr(exc, "status", None)
        code = getattr(exc, "code", None)
        return cls(
            message=str(message),
            status=status if isinstance(status, int) else None,
            code=str(code) if code else None,
            is_network=isinstance(exc, (ConnectionError, TimeoutError, OSError)),
        )

    def classify(self) -> AuthErrorCode:
        """Map this error onto an ``AuthErrorCode``."""
        if self.is_network:
            return AuthErrorCode.NETWORK_ERROR

        haystack = f"{self.code or ''} {self.message}".lower()
        for needle, error_code in SUPABASE_ERROR_MAP.items():
            if needle in haystack:
                return error_code
        return AuthErrorCode.UNKNOWN_ERROR


# ---------------------------------------------------------------------------
# Identity & session values
# ---------------------------------------------------------------------------

class Identity(BaseModel):
    """Authenticated principal returned by Supabase.

    Immutable; replaced wholesale on sign-in / sign-out, never patched.
    """

    id: str
    email: str
    display_name: Optional[str] = None

    model_config = {"frozen": True, "from_attributes": True}


class SessionToken(BaseModel):
    """Opaque credential bound to an identity.

    The expiry / refresh lifecycle belongs to Supabase; the controller
    only ever checks presence or absence.
    """

    access_token: SecretStr
    refresh_token: SecretStr
    expires_at: Optional[int] = None

    model_config = {"frozen": True}


class Session(BaseModel):
    """A live authenticated context: identity plus token."""

    identity: Identity
    token: SessionToken

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Controller snapshot
# ---------------------------------------------------------------------------

class ControllerState(BaseModel):
    """One immutable snapshot of the session controller.

    Attributes
    ----------
    identity:
        The signed-in principal, or ``None``.
    profile:
        The profile row for ``identity``; present exactly when
        ``identity`` is.
    session_token:
        Token of the live session, or ``None``.
    loading:
        ``True`` only while a core-initiated operation is in flight.
    error:
        Human-readable message of the last failure, or ``None``.
    """

    identity: Optional[Identity] = None
    profile: Optional[Profile] = None
    session_token: Optional[SessionToken] = None
    loading: bool = False
    error: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def initial(cls) -> "ControllerState":
        """Snapshot before the bootstrapper has resolved anything."""
        return cls(loading=True)

    @classmethod
    def unauthenticated(cls) -> "ControllerState":
        """The fully-unauthenticated, settled snapshot."""
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for register, sign-in and profile update.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    error:
        Human-readable error description (``None`` on success).
    error_code:
        Structured error category (``None`` on success).
    """

    success: bool
    error: Optional[str] = None
    error_code: Optional[AuthErrorCode] = None

    model_config = {"frozen": True}

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def fail(cls, error: str, error_code: AuthErrorCode = AuthErrorCode.UNKNOWN_ERROR) -> "AuthResult":
        return cls(success=False, error=error, error_code=error_code)


class ValidationResult(BaseModel):
    """Result of a client-side form validation check.

    Attributes
    ----------
    is_valid:
        ``True`` when every field passes.
    error_message:
        First failure, for single-field checks; ``None`` on success.
    field_errors:
        Per-field messages for whole-form checks.
    """

    is_valid: bool
    error_message: Optional[str] = None
    field_errors: dict[str, str] = Field(default_factory=dict)

    model_config = {"from_attributes": True}
