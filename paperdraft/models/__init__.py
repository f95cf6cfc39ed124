from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for convenient imports:
    from paperdraft.models import ControllerState, Identity, Profile
    from paperdraft.models import AuthResult, AuthErrorCode, AuthEvent
"""

from paperdraft.models.enums import AuthEvent
from paperdraft.models.profile import Profile, ProfileUpdate
from paperdraft.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    ControllerState,
    Identity,
    RemoteError,
    Session,
    SessionToken,
    ValidationResult,
)

__all__ = [
    "AuthErrorCode",
    "AuthEvent",
    "AuthResult",
    "ControllerState",
    "Identity",
    "Profile",
    "ProfileUpdate",
    "RemoteError",
    "Session",
    "SessionToken",
    "ValidationResult",
]
