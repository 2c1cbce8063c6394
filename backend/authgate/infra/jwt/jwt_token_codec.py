# authgate/infra/jwt/jwt_token_codec.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from authgate.core.config import parse_duration
from authgate.services._shared.ports.token_codec import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenCheck,
    TokenCodec,
    TokenPayload,
    TokenStatus,
)


def _whole_seconds(moment: datetime) -> datetime:
    """Drop sub-second precision so stored expiries equal the ``exp`` claim."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).replace(microsecond=0)


@dataclass(slots=True)
class JWTTokenCodec(TokenCodec):
    """
    HS256 token codec built on PyJWT.

    Every token carries ``userid``, ``usernm``, ``email``, ``type``
    (``"access"`` or ``"refresh"``), a random ``jti`` and whole-second
    ``iat``/``exp`` claims. The ``jti`` keeps two tokens minted in the same
    second for the same user distinct, which rotation relies on.

    .. note::
       Access and refresh secrets must differ; the constructor refuses
       identical or empty secrets.
    """

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Access and refresh secrets are required.")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must use distinct secrets.")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> JWTTokenCodec:
        """Build the codec from ``JWT_*`` settings of a Flask config."""
        return cls(
            access_secret=config["JWT_ACCESS_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_ttl=parse_duration(config.get("JWT_ACCESS_EXPIRY", "15m")),
            refresh_ttl=parse_duration(config.get("JWT_REFRESH_EXPIRY", "7d")),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    # ------------------------------------------------------------------ #
    # Issuing
    # ------------------------------------------------------------------ #

    def _issue(
        self,
        payload: TokenPayload,
        *,
        secret: str,
        ttl: timedelta,
        token_type: str,
        now: datetime | None,
    ) -> str:
        issued_at = _whole_seconds(now or datetime.now(UTC))
        claims: dict[str, Any] = {
            **payload.as_claims(),
            "type": token_type,
            "jti": uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
        }
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def issue_access_token(self, payload: TokenPayload, *, now: datetime | None = None) -> str:
        return self._issue(
            payload,
            secret=self.access_secret,
            ttl=self.access_ttl,
            token_type=ACCESS_TOKEN_TYPE,
            now=now,
        )

    def issue_refresh_token(self, payload: TokenPayload, *, now: datetime | None = None) -> str:
        return self._issue(
            payload,
            secret=self.refresh_secret,
            ttl=self.refresh_ttl,
            token_type=REFRESH_TOKEN_TYPE,
            now=now,
        )

    def compute_refresh_expiry(self, now: datetime | None = None) -> datetime:
        """
        Expiry a refresh token issued at ``now`` embeds.

        Call it with the same ``now`` passed to :meth:`issue_refresh_token`
        so the stored expiry matches the token's own ``exp`` claim.
        """
        return _whole_seconds(now or datetime.now(UTC)) + self.refresh_ttl

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    def verify(
        self, token: str | None, secret: str, *, expected_type: str | None = None
    ) -> TokenCheck:
        """
        Check signature and expiry; never raises for bad input.

        :param token: Encoded token (``None`` or empty counts as malformed).
        :param secret: Key the token must be signed with.
        :param expected_type: When set, the ``type`` claim must match it.
        :returns: :class:`TokenCheck` carrying the payload only when valid.
        """
        if not token:
            return TokenCheck.invalid(TokenStatus.MALFORMED)
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            return TokenCheck.invalid(TokenStatus.EXPIRED)
        except jwt.InvalidSignatureError:
            return TokenCheck.invalid(TokenStatus.INVALID_SIGNATURE)
        except jwt.InvalidTokenError:
            return TokenCheck.invalid(TokenStatus.MALFORMED)

        if expected_type is not None and claims.get("type") != expected_type:
            return TokenCheck.invalid(TokenStatus.WRONG_TYPE)
        payload = TokenPayload.from_claims(claims)
        if payload is None:
            return TokenCheck.invalid(TokenStatus.MALFORMED)
        return TokenCheck(
            status=TokenStatus.VALID,
            payload=payload,
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=UTC),
        )

    def verify_access(self, token: str | None) -> TokenCheck:
        return self.verify(token, self.access_secret, expected_type=ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str | None) -> TokenCheck:
        return self.verify(token, self.refresh_secret, expected_type=REFRESH_TOKEN_TYPE)

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #

    def get_expiry(self, token: str | None) -> datetime | None:
        """
        Read the ``exp`` claim without checking signature or expiry.

        For display only: the value is not trustworthy.
        """
        if not token:
            return None
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
        exp = claims.get("exp")
        if not isinstance(exp, int | float):
            return None
        return datetime.fromtimestamp(int(exp), tz=UTC)

    def is_expired(self, token: str | None) -> bool:
        """``True`` when no expiry can be read or it is not in the future."""
        expiry = self.get_expiry(token)
        return expiry is None or expiry <= datetime.now(UTC)
