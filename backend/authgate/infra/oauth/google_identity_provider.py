# authgate/infra/oauth/google_identity_provider.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import requests

from authgate.services._shared.ports.identity_provider import (
    ExternalIdentity,
    IdentityProvider,
    IdentityProviderError,
)

log = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(slots=True)
class GoogleIdentityProvider(IdentityProvider):
    """
    Google OAuth 2.0 authorization-code exchange over ``requests``.

    Flow: :meth:`authorization_url` sends the browser to Google's consent
    page; on callback :meth:`exchange_code` trades the code for an access
    token and reads the OpenID Connect userinfo. Only verified emails are
    accepted.
    """

    client_id: str | None
    client_secret: str | None
    redirect_uri: str | None
    timeout: float = 5.0
    scopes: tuple[str, ...] = ("openid", "email", "profile")
    http: requests.Session = field(default_factory=requests.Session)
    name: str = "google"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> GoogleIdentityProvider:
        return cls(
            client_id=config.get("GOOGLE_CLIENT_ID"),
            client_secret=config.get("GOOGLE_CLIENT_SECRET"),
            redirect_uri=config.get("OAUTH_REDIRECT_URI"),
            timeout=float(config.get("OAUTH_HTTP_TIMEOUT", 5)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def authorization_url(self, state: str) -> str:
        """Consent-page URL carrying ``state`` for CSRF protection."""
        query = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(query)}"

    def exchange_code(self, code: str) -> ExternalIdentity:
        """
        Trade an authorization code for the caller's verified identity.

        :raises IdentityProviderError: On HTTP failures, an unverified email
            or a userinfo document missing required fields.
        """
        token_data = self._post_json(
            TOKEN_URL,
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        provider_token = token_data.get("access_token")
        if not provider_token:
            raise IdentityProviderError("Token response did not include an access token.")

        info = self._get_json(USERINFO_URL, provider_token)
        email = info.get("email")
        subject = info.get("sub")
        if not email or not subject:
            raise IdentityProviderError("Userinfo response is missing 'email' or 'sub'.")
        if info.get("email_verified") is False:
            raise IdentityProviderError("Email address is not verified by the provider.")

        return ExternalIdentity(
            provider=self.name,
            subject=str(subject),
            email=str(email),
            display_name=info.get("name") or None,
        )

    # ------------------------------------------------------------------ #
    # HTTP helpers
    # ------------------------------------------------------------------ #

    def _post_json(self, url: str, data: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = self.http.post(url, data=data, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            log.warning("OAuth token exchange failed", extra={"context": "oauth.google.token"})
            raise IdentityProviderError("Token exchange with the provider failed.") from exc
        except ValueError as exc:
            raise IdentityProviderError("Provider returned a non-JSON token response.") from exc

    def _get_json(self, url: str, bearer: str) -> dict[str, Any]:
        try:
            resp = self.http.get(
                url, headers={"Authorization": f"Bearer {bearer}"}, timeout=self.timeout
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            log.warning("OAuth userinfo lookup failed", extra={"context": "oauth.google.userinfo"})
            raise IdentityProviderError("Could not read the identity from the provider.") from exc
        except ValueError as exc:
            raise IdentityProviderError("Provider returned a non-JSON userinfo response.") from exc
