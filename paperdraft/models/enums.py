"""
Shared Enumerations for PaperDraft Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so code like ``if event == 'SIGNED_OUT'`` continues to work.
"""

from __future__ import annotations
from enum import StrEnum


class AuthEvent(StrEnum):
    """Session-change events pushed by the Supabase auth client.

    Only used for logging and for the token-refresh shortcut in the
    bootstrapper; every event is otherwise handled by the session
    payload it carries.
    """

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"

    @classmethod
    def parse(cls, raw: object) -> "AuthEvent | None":
        """Return the matching member, or ``None`` for unknown events."""
        try:
            return cls(str(raw))
        except ValueError:
            return None
