from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class ExternalIdentity:
    """
    Identity asserted by an OAuth provider after a successful exchange.

    :ivar provider: Provider name (e.g. ``"google"``).
    :ivar subject: Provider-side stable account id.
    :ivar email: Verified email address.
    :ivar display_name: Name to show; may be empty.
    """

    provider: str
    subject: str
    email: str
    display_name: str | None = None


class IdentityProviderError(Exception):
    """Raised when the provider rejects the exchange or answers unexpectedly."""


class IdentityProvider(Protocol):
    """
    Port for a single OAuth authorization-code exchange.

    The service layer only ever sees :class:`ExternalIdentity`; provider
    payloads never leak past the adapter.
    """

    name: str

    @property
    def configured(self) -> bool: ...

    def authorization_url(self, state: str) -> str: ...

    def exchange_code(self, code: str) -> ExternalIdentity: ...
