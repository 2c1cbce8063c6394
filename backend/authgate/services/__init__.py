"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`authgate.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``authgate.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Auth service (from ``authgate.services.auth``)
    * :class:`AuthService`
    * DTOs: :class:`LoginIn`, :class:`RefreshIn`, :class:`SocialLoginIn`,
      :class:`TokenPair`, :class:`AuthResult`, :class:`TokenRefreshResult`,
      :class:`SessionCheck`, :class:`SocialLoginOut`,
      :class:`SessionDiagnostics`, :class:`UserPublicOut`

- Account service (from ``authgate.services.accounts``)
    * :class:`AccountService`
    * DTOs: :class:`LocalUserIn`, :class:`PasswordSetIn`
"""

from __future__ import annotations

# Base primitives (service base + request-scoped context)
from ._shared.base import BaseService, ServiceContext

# Account service + DTOs
from .accounts.dto import LocalUserIn, PasswordSetIn
from .accounts.service import AccountService

# Auth service + DTOs
from .auth.dto import (
    AuthResult,
    LoginIn,
    RefreshIn,
    SessionCheck,
    SessionDiagnostics,
    SocialLoginIn,
    SocialLoginOut,
    TokenPair,
    TokenRefreshResult,
    UserPublicOut,
)
from .auth.service import AuthService

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Auth
    "AuthService",
    "LoginIn",
    "RefreshIn",
    "SocialLoginIn",
    "TokenPair",
    "AuthResult",
    "TokenRefreshResult",
    "SessionCheck",
    "SocialLoginOut",
    "SessionDiagnostics",
    "UserPublicOut",
    # Accounts
    "AccountService",
    "LocalUserIn",
    "PasswordSetIn",
]
