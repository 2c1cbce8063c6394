# tests/unit/services/test_auth_service.py
from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest
from freezegun import freeze_time
from sqlalchemy import create_engine, event, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import scoped_session, sessionmaker

from authgate.core.extensions import db
from authgate.models.base import as_utc
from authgate.models.user import User
from authgate.repositories.user import UserRepository
from authgate.services._shared.errors import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from authgate.services._shared.ports.identity_provider import ExternalIdentity
from authgate.services.auth.dto import LoginIn, RefreshIn, SocialLoginIn
from authgate.services.auth.service import AuthService
from tests.factories.user import UserFactory

T0 = datetime(2026, 2, 1, 9, 0, 0, tzinfo=UTC)


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def service(codec) -> AuthService:
    """AuthService wired to the application's codec."""
    return AuthService(codec=codec)


@pytest.fixture()
def alice(session) -> User:
    user = UserFactory(userid="alice", usernm="Alice", email="alice@example.com", password="secret")
    session.commit()
    return user


@pytest.fixture()
def file_store(tmp_path, session):
    """``db.session`` over a SQLite file, one session and connection per thread."""
    engine = create_engine(f"sqlite:///{tmp_path / 'store.db'}", connect_args={"timeout": 15})

    # writers queue on BEGIN IMMEDIATE
    @event.listens_for(engine, "connect")
    def _no_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    db.metadata.create_all(engine)
    per_thread = scoped_session(sessionmaker(bind=engine, autoflush=False))
    joined = db.session
    db.session = per_thread
    try:
        yield per_thread
    finally:
        per_thread.remove()
        db.session = joined
        engine.dispose()


def _stored(session, userid: str) -> User:
    session.expire_all()
    return session.get(User, userid)


class RacingCodec:
    """Codec double that runs ``on_first_issue`` before minting the first refresh token."""

    def __init__(self, inner, on_first_issue):
        self._inner = inner
        self._on_first_issue = on_first_issue
        self._fired = False

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def issue_refresh_token(self, payload, *, now=None):
        if not self._fired:
            self._fired = True
            self._on_first_issue()
        return self._inner.issue_refresh_token(payload, now=now)


# -------------------------------- Login ----------------------------------- #
class TestLogin:
    def test_login_issues_pair_and_stores_refresh_token(self, service, codec, alice, session):
        with freeze_time(T0):
            result = service.login(LoginIn(userid="alice", password="secret"))
            access = codec.verify_access(result.tokens.access_token)

        assert result.user.userid == "alice"
        assert result.user.usernm == "Alice"
        assert result.user.email == "alice@example.com"
        assert result.user.role == "member"
        assert access.payload.userid == "alice"
        assert codec.get_expiry(result.tokens.access_token) == T0 + timedelta(minutes=15)

        stored = _stored(session, "alice")
        assert stored.refresh_token == result.tokens.refresh_token
        assert as_utc(stored.refresh_token_expiry) == T0 + timedelta(days=7)
        assert as_utc(stored.refresh_token_expiry) == codec.get_expiry(result.tokens.refresh_token)
        assert as_utc(stored.last_login_at) == T0

    def test_unknown_user(self, service):
        with pytest.raises(AuthenticationError, match="User not found"):
            service.login(LoginIn(userid="nobody", password="secret"))

    def test_wrong_password(self, service, alice, session):
        with pytest.raises(AuthenticationError, match="Password does not match"):
            service.login(LoginIn(userid="alice", password="wrong"))
        assert _stored(session, "alice").refresh_token is None

    def test_social_account_cannot_use_password_login(self, service, session):
        UserFactory(userid="socialite", social=True)
        session.commit()

        with pytest.raises(AuthenticationError, match="Password does not match"):
            service.login(LoginIn(userid="socialite", password="anything"))

    def test_missing_fields_are_validation_errors(self, service):
        with pytest.raises(ValidationError):
            service.login(LoginIn(userid="", password="secret"))

    def test_second_login_supersedes_first(self, service, alice):
        first = service.login(LoginIn(userid="alice", password="secret"))
        second = service.login(LoginIn(userid="alice", password="secret"))

        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            service.refresh(RefreshIn(first.tokens.refresh_token))
        assert service.refresh(RefreshIn(second.tokens.refresh_token)).user.userid == "alice"


# ------------------------------- Refresh ---------------------------------- #
class TestRefresh:
    def test_rotation_invalidates_predecessor(self, service, alice, session):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        rotated = service.refresh(RefreshIn(pair.refresh_token))

        assert rotated.tokens.refresh_token != pair.refresh_token
        assert _stored(session, "alice").refresh_token == rotated.tokens.refresh_token
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            service.refresh(RefreshIn(pair.refresh_token))

    def test_rotation_within_the_same_second(self, service, alice):
        with freeze_time(T0):
            pair = service.login(LoginIn(userid="alice", password="secret")).tokens
            rotated = service.refresh(RefreshIn(pair.refresh_token))

        assert rotated.tokens.refresh_token != pair.refresh_token

    def test_invalid_signature_never_reaches_the_store(self, service, alice, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("store must not be consulted")

        monkeypatch.setattr(UserRepository, "get_by_refresh_token", _fail)

        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            service.refresh(RefreshIn("not-a-token"))

    def test_access_token_is_not_a_refresh_token(self, service, alice):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        with pytest.raises(AuthenticationError):
            service.refresh(RefreshIn(pair.access_token))

    def test_stored_expiry_is_authoritative(self, service, alice, session):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens
        session.execute(
            User.__table__.update()
            .where(User.userid == "alice")
            .values(refresh_token_expiry=datetime.now(UTC) - timedelta(minutes=1))
        )
        session.commit()

        with pytest.raises(AuthenticationError, match="Refresh token expired"):
            service.refresh(RefreshIn(pair.refresh_token))

    def test_refresh_after_codec_expiry_fails(self, service, alice):
        with freeze_time(T0) as frozen:
            pair = service.login(LoginIn(userid="alice", password="secret")).tokens
            frozen.tick(timedelta(days=7, seconds=1))

            with pytest.raises(AuthenticationError, match="Invalid refresh token"):
                service.refresh(RefreshIn(pair.refresh_token))

    def test_concurrent_refresh_has_exactly_one_winner(self, service, codec, alice, session):
        """Two refreshes with the same token: the one that swaps first wins."""
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens
        winners = []

        # The competing refresh runs after the outer call matched the stored
        # token but before it performs its conditional swap
        racing = AuthService(
            codec=RacingCodec(
                codec, lambda: winners.append(service.refresh(RefreshIn(pair.refresh_token)))
            )
        )

        with pytest.raises(AuthenticationError, match="already been used"):
            racing.refresh(RefreshIn(pair.refresh_token))

        assert len(winners) == 1
        assert _stored(session, "alice").refresh_token == winners[0].tokens.refresh_token

    def test_refresh_from_two_threads_has_exactly_one_winner(self, service, file_store):
        file_store.add(UserFactory.build(userid="alice", email="alice@example.com", password="secret"))
        file_store.commit()
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens
        file_store.remove()

        start = threading.Barrier(2)
        outcomes = []

        def _refresh():
            start.wait(timeout=10)
            try:
                outcomes.append(service.refresh(RefreshIn(pair.refresh_token)))
            except Exception as exc:
                outcomes.append(exc)
            finally:
                file_store.remove()

        workers = [threading.Thread(target=_refresh) for _ in range(2)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=30)

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        losers = [o for o in outcomes if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AuthenticationError)
        assert _stored(file_store, "alice").refresh_token == winners[0].tokens.refresh_token


# ------------------------------- Verify ----------------------------------- #
class TestVerifySession:
    def test_no_tokens(self, service):
        with pytest.raises(AuthenticationError, match="Not authenticated"):
            service.verify_session(None, None)

    def test_valid_access_token_short_circuits(self, service, alice, monkeypatch):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        def _fail(*args, **kwargs):
            raise AssertionError("refresh path must not run")

        monkeypatch.setattr(service, "refresh", _fail)
        check = service.verify_session(pair.access_token, "garbage")

        assert check.user.userid == "alice"
        assert check.refreshed is False
        assert check.tokens is None

    def test_expired_access_token_rotates(self, service, alice, session):
        with freeze_time(T0) as frozen:
            pair = service.login(LoginIn(userid="alice", password="secret")).tokens
            frozen.tick(timedelta(minutes=16))

            check = service.verify_session(pair.access_token, pair.refresh_token)

        assert check.refreshed is True
        assert check.user.userid == "alice"
        assert check.tokens.refresh_token != pair.refresh_token
        assert _stored(session, "alice").refresh_token == check.tokens.refresh_token

    def test_invalid_access_without_refresh(self, service):
        with pytest.raises(AuthenticationError):
            service.verify_session("garbage", None)

    def test_both_invalid(self, service):
        with pytest.raises(AuthenticationError):
            service.verify_session("garbage", "garbage")

    def test_identify_prefers_access_then_refresh(self, service, alice):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        assert service.identify(pair.access_token, None) == "alice"
        assert service.identify("garbage", pair.refresh_token) == "alice"
        assert service.identify("garbage", "garbage") is None
        assert service.identify(None, None) is None


# ---------------------------- Social login -------------------------------- #
class TestSocialLogin:
    def test_new_email_creates_one_account(self, service, session):
        with freeze_time(T0):
            user = service.social_login(
                SocialLoginIn(email="New.Person@Example.com", display_name="New", provider="google")
            )

        rows = session.execute(select(User).where(User.email == "new.person@example.com")).all()
        assert len(rows) == 1
        assert user.userid.startswith("new.person_")
        assert len(user.userid) <= 50

        stored = _stored(session, user.userid)
        assert stored.password_hash is None
        assert stored.auth_provider == "google"
        assert stored.usernm == "New"
        assert as_utc(stored.last_login_at) == T0

    def test_existing_email_updates_profile_only(self, service, alice, session):
        user = service.social_login(
            SocialLoginIn(email="ALICE@example.com", display_name="Alice G.", provider="google")
        )

        assert user.userid == "alice"
        stored = _stored(session, "alice")
        assert stored.usernm == "Alice G."
        assert stored.verify_password("secret")
        assert session.query(User).count() == 1

    def test_display_name_falls_back_to_local_part(self, service):
        user = service.social_login(
            SocialLoginIn(email="quiet@example.com", display_name="  ", provider="google")
        )

        assert user.usernm == "quiet"

    def test_long_local_part_fits_userid_column(self, service):
        user = service.social_login(
            SocialLoginIn(email=f"{'x' * 80}@example.com", display_name=None, provider="google")
        )

        assert len(user.userid) <= 50
        assert user.userid.startswith("x" * 20)

    def test_unsafe_characters_are_replaced_in_userid(self, service):
        user = service.social_login(
            SocialLoginIn(email="o'brien+news@example.com", display_name=None, provider="google")
        )

        assert user.userid.startswith("o_brien_news_")

    @pytest.mark.parametrize("email", ["", "no-at-sign", "@example.com", "user@"])
    def test_invalid_email(self, service, email):
        with pytest.raises(ValidationError):
            service.social_login(SocialLoginIn(email=email, display_name=None, provider="google"))

    def test_complete_social_login_issues_tokens(self, service, codec, session):
        identity = ExternalIdentity(
            provider="google", subject="123", email="eve@example.com", display_name="Eve"
        )

        result = service.complete_social_login(identity)

        assert result.user.email == "eve@example.com"
        assert codec.verify_access(result.access_token).payload.userid == result.user.userid
        assert _stored(session, result.user.userid).refresh_token == result.refresh_token

    def test_issue_tokens_for_unknown_user(self, service):
        with pytest.raises(NotFoundError):
            service.issue_tokens("ghost")


# --------------------------- Logout / invalidate -------------------------- #
class TestLogoutAndInvalidate:
    def test_logout_is_idempotent(self, service, alice, session):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        service.logout("alice")
        service.logout("alice")
        service.logout("ghost")

        stored = _stored(session, "alice")
        assert stored.refresh_token is None
        assert stored.refresh_token_expiry is None
        with pytest.raises(AuthenticationError):
            service.refresh(RefreshIn(pair.refresh_token))

    def test_invalidate_clears_token(self, service, alice, session):
        service.login(LoginIn(userid="alice", password="secret"))

        service.invalidate("alice")

        assert _stored(session, "alice").refresh_token is None

    def test_invalidate_is_atomic(self, service, alice, session, monkeypatch):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        def _broken_touch(self, userid):
            raise OperationalError("UPDATE users SET updated_at", {}, Exception("disk I/O error"))

        monkeypatch.setattr(UserRepository, "touch", _broken_touch)

        with pytest.raises(DatabaseError):
            service.invalidate("alice")

        assert _stored(session, "alice").refresh_token == pair.refresh_token


# ------------------------------- Read side -------------------------------- #
class TestReadSide:
    def test_get_profile(self, service, alice):
        profile = service.get_profile("alice")

        assert profile.userid == "alice"
        assert profile.role == "member"

    def test_get_profile_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_profile("ghost")

    def test_describe_session_access_path(self, service, codec, alice):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        info = service.describe_session(pair.access_token, pair.refresh_token)

        assert info.userid == "alice"
        assert info.role == "member"
        assert info.was_refreshed is False
        assert info.access_expires_at == codec.get_expiry(pair.access_token)
        assert info.refresh_expires_at == codec.get_expiry(pair.refresh_token)
        assert info.tokens is None

    def test_describe_session_refresh_path(self, service, codec, alice):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens

        info = service.describe_session(None, pair.refresh_token)

        assert info.was_refreshed is True
        assert info.tokens is not None
        assert info.refresh_expires_at == codec.get_expiry(info.tokens.refresh_token)

    def test_describe_session_for_deleted_user(self, service, alice, session):
        pair = service.login(LoginIn(userid="alice", password="secret")).tokens
        session.delete(_stored(session, "alice"))
        session.commit()

        with pytest.raises(NotFoundError):
            service.describe_session(pair.access_token, None)
