"""Integration tests for the token diagnostics endpoints."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from authgate.core.cookies import ACCESS_COOKIE, REFRESH_COOKIE
from authgate.models.user import User
from authgate.services._shared.ports.token_codec import TokenPayload
from tests.factories.user import UserFactory
from tests.helpers.assertions import assert_auth_redirect, assert_json_keys
from tests.helpers.http import cookie_value, login, set_auth_cookies

BASE = "/api/v1/token-test"


@pytest.fixture()
def bob(session) -> User:
    user = UserFactory(userid="bob", usernm="Bob", email="bob@example.com", role="admin")
    session.commit()
    return user


def _expired_access(codec) -> str:
    payload = TokenPayload(userid="bob", usernm="Bob", email="bob@example.com")
    return codec.issue_access_token(payload, now=datetime.now(UTC) - timedelta(hours=1))


def test_expiry_reports_current_tokens(client, bob, codec) -> None:
    login(client, "bob", "secret")
    access = cookie_value(client, ACCESS_COOKIE)
    refresh = cookie_value(client, REFRESH_COOKIE)

    resp = client.get(f"{BASE}/expiry")

    assert resp.status_code == 200
    data = resp.get_json()
    assert_json_keys(
        data, {"userId", "userrole", "wasRefreshed", "accessTokenExpiry", "refreshTokenExpiry"}
    )
    assert data["userId"] == "bob"
    assert data["userrole"] == "admin"
    assert data["wasRefreshed"] is False
    assert "message" not in data
    assert datetime.fromisoformat(data["accessTokenExpiry"]) == codec.get_expiry(access)
    assert datetime.fromisoformat(data["refreshTokenExpiry"]) == codec.get_expiry(refresh)


def test_expiry_rotates_expired_access(client, bob, codec) -> None:
    login(client, "bob", "secret")
    old_refresh = cookie_value(client, REFRESH_COOKIE)
    set_auth_cookies(client, access=_expired_access(codec))

    resp = client.get(f"{BASE}/expiry")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["wasRefreshed"] is True
    assert data["message"] == "Tokens were refreshed."
    assert cookie_value(client, REFRESH_COOKIE) != old_refresh


def test_expiry_without_cookies(client) -> None:
    resp = client.get(f"{BASE}/expiry")

    assert resp.status_code == 401
    assert_auth_redirect(resp.get_json())


def test_invalidate_kills_refresh_token(client, bob, session) -> None:
    login(client, "bob", "secret")
    refresh = cookie_value(client, REFRESH_COOKIE)

    resp = client.post(f"{BASE}/invalidate")

    assert resp.status_code == 200
    assert resp.get_json()["success"] is True
    assert cookie_value(client, ACCESS_COOKIE) is None
    session.expire_all()
    assert session.get(User, "bob").refresh_token is None

    # The old refresh token no longer establishes a session
    set_auth_cookies(client, refresh=refresh)
    assert client.get("/api/v1/auth/verify").status_code == 401


def test_invalidate_without_cookies(client) -> None:
    resp = client.post(f"{BASE}/invalidate")

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Not authenticated."


def test_invalidate_with_unverifiable_cookies(client) -> None:
    set_auth_cookies(client, access="garbage", refresh="garbage")

    resp = client.post(f"{BASE}/invalidate")

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Unable to identify the user."
