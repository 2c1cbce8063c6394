"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    SessionDiagnosticsSchema,
    SessionUserSchema,
    SocialCallbackSchema,
)
from .user import UserPublicSchema

__all__ = [
    "LoginSchema",
    "SocialCallbackSchema",
    "SessionUserSchema",
    "SessionDiagnosticsSchema",
    "UserPublicSchema",
]
