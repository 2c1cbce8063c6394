# authgate/services/accounts/dto.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LocalUserIn:
    """
    Input DTO for provisioning a password account.

    :param userid: Chosen account identifier (max 50 chars).
    :param usernm: Display name.
    :param email: Email address; stored normalized.
    :param password: Raw password, hashed by the model setter.
    :param role: Optional authorization hint.
    """

    userid: str
    usernm: str
    email: str
    password: str
    role: str | None = None


@dataclass(frozen=True, slots=True)
class PasswordSetIn:
    """Input DTO for an administrative password reset."""

    userid: str
    password: str
