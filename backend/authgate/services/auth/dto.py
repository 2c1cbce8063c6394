# authgate/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from authgate.services._shared.ports.token_codec import TokenPayload

if TYPE_CHECKING:
    from authgate.models.user import User

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for local login.

    :param userid: Account identifier.
    :type userid: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    userid: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class SocialLoginIn:
    """
    Input DTO for the social login upsert.

    :param email: Email asserted by the provider.
    :type email: str
    :param display_name: Provider display name; falls back to the email local part.
    :type display_name: str | None
    :param provider: Provider name (``"google"``).
    :type provider: str
    """

    email: str
    display_name: str | None
    provider: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Public user fields returned to clients.

    :param userid: Account identifier.
    :param usernm: Display name.
    :param email: Normalized email.
    :param role: Authorization hint (may be ``None``).
    """

    userid: str
    usernm: str
    email: str
    role: str | None = None

    @classmethod
    def from_model(cls, user: User) -> UserPublicOut:
        return cls(userid=user.userid, usernm=user.usernm, email=user.email, role=user.role)


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Freshly issued access and refresh tokens.

    :param access_token: Encoded access JWT.
    :param refresh_token: Encoded refresh JWT, also stored on the user row.
    :param refresh_expires_at: Stored expiry of ``refresh_token``.
    """

    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Outcome of a successful local login."""

    tokens: TokenPair
    user: UserPublicOut


@dataclass(frozen=True, slots=True)
class TokenRefreshResult:
    """
    Outcome of a successful rotation.

    :param tokens: The new pair; the presented refresh token is dead.
    :param user: Payload embedded in the new tokens.
    """

    tokens: TokenPair
    user: TokenPayload


@dataclass(frozen=True, slots=True)
class SessionCheck:
    """
    Outcome of verifying the cookie pair of a request.

    :param user: Payload of the access token (or of the new tokens).
    :param refreshed: ``True`` when the refresh path rotated the tokens.
    :param tokens: The rotated pair; set only when ``refreshed``.
    """

    user: TokenPayload
    refreshed: bool = False
    tokens: TokenPair | None = None


@dataclass(frozen=True, slots=True)
class SocialLoginOut:
    """
    Typed result of a completed social login: tokens plus public user fields.
    """

    access_token: str
    refresh_token: str
    user: UserPublicOut


@dataclass(frozen=True, slots=True)
class SessionDiagnostics:
    """
    Expiry view of the current session, for troubleshooting screens.

    :param userid: Identified account.
    :param role: Stored role.
    :param was_refreshed: ``True`` when the refresh path ran.
    :param access_expires_at: ``exp`` of the current (or new) access token.
    :param refresh_expires_at: ``exp`` of the current (or new) refresh token.
    :param tokens: Rotated pair, when ``was_refreshed``.
    """

    userid: str
    role: str | None
    was_refreshed: bool
    access_expires_at: datetime | None
    refresh_expires_at: datetime | None
    tokens: TokenPair | None = None
