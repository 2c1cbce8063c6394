"""
authgate.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token handling and external identity infrastructure.

These ports decouple the service layer from concrete implementations
of token signing and OAuth exchanges.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec`, :class:`~.TokenPayload`,
    :class:`~.TokenStatus` and :class:`~.TokenCheck`: stateless minting and
    verification of access/refresh tokens.

- :mod:`identity_provider`:
    Defines :class:`~.IdentityProvider` and :class:`~.ExternalIdentity`:
    the OAuth authorization-code exchange.

Design Notes
------------
Concrete adapters live under ``authgate.infra``.
"""

from __future__ import annotations

from .identity_provider import ExternalIdentity, IdentityProvider, IdentityProviderError
from .token_codec import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenCheck,
    TokenCodec,
    TokenPayload,
    TokenStatus,
)

__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "TokenCodec",
    "TokenCheck",
    "TokenPayload",
    "TokenStatus",
    "IdentityProvider",
    "ExternalIdentity",
    "IdentityProviderError",
]
