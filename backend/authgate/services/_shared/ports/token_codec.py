from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any, Protocol

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True, slots=True)
class TokenPayload:
    """
    Identity carried by both access and refresh tokens.

    :ivar userid: Account identifier.
    :ivar usernm: Display name at issuance time.
    :ivar email: Normalized email at issuance time.
    """

    userid: str
    usernm: str
    email: str

    def as_claims(self) -> dict[str, Any]:
        return {"userid": self.userid, "usernm": self.usernm, "email": self.email}

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> TokenPayload | None:
        """Build a payload from decoded claims, or ``None`` if a field is missing."""
        values = [claims.get(key) for key in ("userid", "usernm", "email")]
        if not all(isinstance(value, str) and value for value in values):
            return None
        userid, usernm, email = values
        return cls(userid=userid, usernm=usernm, email=email)  # type: ignore[arg-type]


class TokenStatus(Enum):
    """Outcome of a token verification."""

    VALID = auto()
    EXPIRED = auto()
    INVALID_SIGNATURE = auto()
    MALFORMED = auto()
    WRONG_TYPE = auto()


@dataclass(frozen=True, slots=True)
class TokenCheck:
    """
    Result of :meth:`TokenCodec.verify`: a status plus the payload when valid.

    Invalid tokens are an expected, frequent input, so verification reports
    them through this value instead of raising.
    """

    status: TokenStatus
    payload: TokenPayload | None = None
    expires_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.VALID and self.payload is not None

    @classmethod
    def invalid(cls, status: TokenStatus) -> TokenCheck:
        return cls(status=status)


class TokenCodec(Protocol):
    """
    Port for minting and verifying signed access/refresh tokens.

    Implementations are stateless and perform no I/O. Access and refresh
    tokens are signed with distinct secrets.
    """

    def issue_access_token(self, payload: TokenPayload, *, now: datetime | None = None) -> str: ...

    def issue_refresh_token(self, payload: TokenPayload, *, now: datetime | None = None) -> str: ...

    def verify(
        self, token: str | None, secret: str, *, expected_type: str | None = None
    ) -> TokenCheck: ...

    def verify_access(self, token: str | None) -> TokenCheck: ...

    def verify_refresh(self, token: str | None) -> TokenCheck: ...

    def get_expiry(self, token: str | None) -> datetime | None: ...

    def is_expired(self, token: str | None) -> bool: ...

    def compute_refresh_expiry(self, now: datetime | None = None) -> datetime: ...
