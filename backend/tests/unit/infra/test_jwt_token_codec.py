"""Unit tests for the PyJWT-backed token codec."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from freezegun import freeze_time

from authgate.infra.jwt.jwt_token_codec import JWTTokenCodec
from authgate.services._shared.ports.token_codec import TokenPayload, TokenStatus

ACCESS = "unit-access-secret-0123456789abcdef"
REFRESH = "unit-refresh-secret-fedcba9876543210"
ISSUED_AT = datetime(2026, 1, 10, 8, 30, 15, 987654, tzinfo=UTC)


@pytest.fixture()
def codec() -> JWTTokenCodec:
    return JWTTokenCodec(access_secret=ACCESS, refresh_secret=REFRESH)


@pytest.fixture()
def payload() -> TokenPayload:
    return TokenPayload(userid="alice", usernm="Alice", email="alice@example.com")


class TestIssueAndVerify:
    def test_round_trip_returns_payload(self, codec, payload):
        access = codec.issue_access_token(payload)
        refresh = codec.issue_refresh_token(payload)

        access_check = codec.verify_access(access)
        refresh_check = codec.verify_refresh(refresh)

        assert access_check.ok and access_check.payload == payload
        assert refresh_check.ok and refresh_check.payload == payload

    def test_wrong_secret_is_invalid(self, codec, payload):
        token = codec.issue_access_token(payload)

        check = codec.verify(token, "some-other-secret-value-0000000000")

        assert not check.ok
        assert check.status is TokenStatus.INVALID_SIGNATURE
        assert check.payload is None

    def test_tokens_are_bound_to_their_own_secret(self, codec, payload):
        # A refresh token never passes as an access token and vice versa
        assert not codec.verify_access(codec.issue_refresh_token(payload)).ok
        assert not codec.verify_refresh(codec.issue_access_token(payload)).ok

    def test_type_claim_is_enforced(self, codec, payload):
        forged = jwt.encode(
            {**payload.as_claims(), "type": "refresh", "iat": 1, "exp": 4102444800},
            ACCESS,
            algorithm="HS256",
        )

        assert codec.verify_access(forged).status is TokenStatus.WRONG_TYPE

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_garbage_is_malformed(self, codec, token):
        assert codec.verify_access(token).status is TokenStatus.MALFORMED

    def test_missing_identity_claims_are_malformed(self, codec):
        token = jwt.encode(
            {"userid": "alice", "type": "access", "iat": 1, "exp": 4102444800},
            ACCESS,
            algorithm="HS256",
        )

        assert codec.verify_access(token).status is TokenStatus.MALFORMED

    def test_same_second_tokens_differ(self, codec, payload):
        with freeze_time(ISSUED_AT):
            first = codec.issue_refresh_token(payload)
            second = codec.issue_refresh_token(payload)

        assert first != second


class TestExpiry:
    def test_access_token_valid_until_exp(self, codec, payload):
        with freeze_time(ISSUED_AT) as frozen:
            token = codec.issue_access_token(payload)
            exp = ISSUED_AT.replace(microsecond=0) + timedelta(minutes=15)

            frozen.move_to(exp - timedelta(seconds=1))
            assert codec.verify_access(token).ok

            frozen.move_to(exp + timedelta(seconds=1))
            check = codec.verify_access(token)
            assert check.status is TokenStatus.EXPIRED
            assert check.payload is None

    def test_refresh_token_outlives_access_token(self, codec, payload):
        with freeze_time(ISSUED_AT) as frozen:
            access = codec.issue_access_token(payload)
            refresh = codec.issue_refresh_token(payload)

            frozen.tick(timedelta(hours=1))
            assert not codec.verify_access(access).ok
            assert codec.verify_refresh(refresh).ok

            frozen.tick(timedelta(days=7))
            assert not codec.verify_refresh(refresh).ok

    def test_expires_at_reported_for_valid_tokens(self, codec, payload):
        token = codec.issue_access_token(payload, now=datetime.now(UTC))
        check = codec.verify_access(token)

        assert check.expires_at == codec.get_expiry(token)

    def test_compute_refresh_expiry_equals_embedded_exp(self, codec, payload):
        with freeze_time(ISSUED_AT):
            token = codec.issue_refresh_token(payload, now=ISSUED_AT)

        assert codec.compute_refresh_expiry(ISSUED_AT) == codec.get_expiry(token)
        assert codec.compute_refresh_expiry(ISSUED_AT) == datetime(
            2026, 1, 17, 8, 30, 15, tzinfo=UTC
        )

    def test_get_expiry_ignores_signature_and_expiry(self, codec, payload):
        with freeze_time(ISSUED_AT):
            token = codec.issue_access_token(payload)

        foreign = JWTTokenCodec(access_secret="x" * 32, refresh_secret="y" * 32)
        assert foreign.get_expiry(token) == ISSUED_AT.replace(microsecond=0) + timedelta(
            minutes=15
        )
        with freeze_time(ISSUED_AT + timedelta(hours=1)):
            assert codec.is_expired(token)

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_get_expiry_of_unreadable_token(self, codec, token):
        assert codec.get_expiry(token) is None
        assert codec.is_expired(token)


class TestConstruction:
    def test_equal_secrets_rejected(self):
        with pytest.raises(ValueError, match="distinct"):
            JWTTokenCodec(access_secret="same-secret", refresh_secret="same-secret")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            JWTTokenCodec(access_secret="", refresh_secret="something")

    def test_from_config_parses_durations(self):
        codec = JWTTokenCodec.from_config(
            {
                "JWT_ACCESS_SECRET": ACCESS,
                "JWT_REFRESH_SECRET": REFRESH,
                "JWT_ACCESS_EXPIRY": "30s",
                "JWT_REFRESH_EXPIRY": "2d",
            }
        )

        assert codec.access_ttl == timedelta(seconds=30)
        assert codec.refresh_ttl == timedelta(days=2)
        assert codec.algorithm == "HS256"
