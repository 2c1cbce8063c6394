# authgate/services/auth/service.py
from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from authgate.models.base import as_utc, utcnow
from authgate.models.user import User
from authgate.repositories.user import UserRepository
from authgate.services._shared.base import BaseService, ServiceContext
from authgate.services._shared.errors import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    violates,
)
from authgate.services._shared.ports.identity_provider import ExternalIdentity
from authgate.services._shared.ports.token_codec import TokenCodec, TokenPayload
from authgate.services.auth.dto import (
    AuthResult,
    LoginIn,
    RefreshIn,
    SessionCheck,
    SessionDiagnostics,
    SocialLoginIn,
    SocialLoginOut,
    TokenPair,
    TokenRefreshResult,
    UserPublicOut,
)
from authgate.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

# Client-facing failure messages
USER_NOT_FOUND = "User not found."
PASSWORD_MISMATCH = "Password does not match."
NOT_AUTHENTICATED = "Not authenticated."
INVALID_ACCESS = "Access token is invalid or expired."
INVALID_REFRESH = "Invalid refresh token."
EXPIRED_REFRESH = "Refresh token expired."
REFRESH_REUSED = "Refresh token has already been used."

USERID_MAX_LENGTH = 50
USERID_SUFFIX_BYTES = 4
_USERID_UNSAFE = re.compile(r"[^a-z0-9._-]+")


class AuthService(BaseService):
    """
    Dual-token session lifecycle: login, refresh, verify, social login, logout.

    Each user row holds at most one live refresh token. Issuing a pair
    overwrites it (so a new login supersedes older sessions), rotation swaps
    it with a conditional update, and logout/invalidate clear it. Access
    tokens are never stored; they are verified by signature and expiry only.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        ctx: ServiceContext | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param codec: Adapter minting and verifying the signed tokens.
        :param ctx: Request-scoped context used for log correlation.
        :param clock: Source of "now"; tests may freeze it.
        """
        super().__init__(ctx=ctx)
        self.codec = codec
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> AuthResult:
        """
        Authenticate a local account and issue a fresh token pair.

        The new refresh token replaces whatever was stored, so refresh
        tokens from earlier sessions stop working.

        :param dto: Login input.
        :returns: Token pair plus public user fields.
        :raises AuthenticationError: Unknown user or wrong password.
        """
        if not dto.userid or not dto.password:
            raise ValidationError("userid and password are required.")

        now = self.clock()
        with self.guard_store("auth.login"), self.rw_uow() as uow:
            user = uow.users.get(dto.userid)
            if user is None:
                self._log_rejected("auth.login", dto.userid, USER_NOT_FOUND)
                raise AuthenticationError(USER_NOT_FOUND)
            if not user.verify_password(dto.password):
                self._log_rejected("auth.login", dto.userid, PASSWORD_MISMATCH)
                raise AuthenticationError(PASSWORD_MISMATCH)

            public = UserPublicOut.from_model(user)
            tokens = self._issue_and_store(uow, user, now=now, login_at=now)

        log.info("Login succeeded", extra={"context": "auth.login", "userid": public.userid})
        return AuthResult(tokens=tokens, user=public)

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenRefreshResult:
        """
        Exchange a live refresh token for a new pair, consuming it.

        Signature and expiry are checked first; a token failing them never
        reaches the credential store. The stored value must then match and be
        unexpired, and the final swap succeeds only if nobody rotated the
        same token in the meantime.

        :raises AuthenticationError: Invalid, expired, foreign or reused token.
        """
        check = self.codec.verify_refresh(dto.refresh_token)
        if not check.ok:
            self._log_rejected("auth.refresh", None, f"refresh token {check.status.name.lower()}")
            raise AuthenticationError(INVALID_REFRESH)
        claimed = check.payload
        assert claimed is not None

        now = self.clock()
        with self.guard_store("auth.refresh"), self.rw_uow() as uow:
            user = uow.users.get_by_refresh_token(dto.refresh_token)
            if user is None or user.userid != claimed.userid:
                self._log_rejected("auth.refresh", claimed.userid, INVALID_REFRESH)
                raise AuthenticationError(INVALID_REFRESH)

            stored_expiry = as_utc(user.refresh_token_expiry)
            if stored_expiry is None or stored_expiry <= now:
                self._log_rejected("auth.refresh", user.userid, EXPIRED_REFRESH)
                raise AuthenticationError(EXPIRED_REFRESH)

            payload = self._payload_for(user)
            access = self.codec.issue_access_token(payload, now=now)
            refresh = self.codec.issue_refresh_token(payload, now=now)
            expires_at = self.codec.compute_refresh_expiry(now)
            swapped = uow.users.swap_refresh_token(
                payload.userid,
                expected=dto.refresh_token,
                token=refresh,
                expires_at=expires_at,
                now=now,
            )
            if not swapped:
                self._log_rejected("auth.refresh", payload.userid, REFRESH_REUSED)
                raise AuthenticationError(REFRESH_REUSED)

        log.info("Tokens rotated", extra={"context": "auth.refresh", "userid": payload.userid})
        return TokenRefreshResult(
            tokens=TokenPair(access_token=access, refresh_token=refresh, refresh_expires_at=expires_at),
            user=payload,
        )

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify_session(self, access_token: str | None, refresh_token: str | None) -> SessionCheck:
        """
        Validate the cookie pair of a request, rotating when the access token lapsed.

        A valid access token is accepted on its own, without touching the
        store. Otherwise the refresh token goes through :meth:`refresh`.

        :raises AuthenticationError: Neither token can establish a session.
        """
        if not access_token and not refresh_token:
            raise AuthenticationError(NOT_AUTHENTICATED)

        if access_token:
            check = self.codec.verify_access(access_token)
            if check.ok:
                assert check.payload is not None
                return SessionCheck(user=check.payload)

        if not refresh_token:
            raise AuthenticationError(INVALID_ACCESS)

        result = self.refresh(RefreshIn(refresh_token=refresh_token))
        return SessionCheck(user=result.user, refreshed=True, tokens=result.tokens)

    def identify(self, access_token: str | None, refresh_token: str | None) -> str | None:
        """
        Best-effort user id from whichever token verifies, access first.

        Expired or forged tokens yield nothing; no store access happens.
        """
        for check in (
            self.codec.verify_access(access_token),
            self.codec.verify_refresh(refresh_token),
        ):
            if check.ok and check.payload is not None:
                return check.payload.userid
        return None

    # ------------------------------------------------------------------ #
    # Social login
    # ------------------------------------------------------------------ #

    def social_login(self, dto: SocialLoginIn) -> UserPublicOut:
        """
        Find the account owning ``dto.email`` or create one.

        Existing accounts get their display name and last login refreshed.
        New accounts receive a generated userid prefixed with the email's
        local part, no password and ``auth_provider`` set. If a concurrent
        request creates the same email first, its row is reused.

        :raises ValidationError: Missing or malformed email.
        """
        email = (dto.email or "").strip().lower()
        local_part, _, domain = email.partition("@")
        if not local_part or not domain:
            raise ValidationError("A valid email address is required.")
        display_name = (dto.display_name or "").strip() or local_part

        now = self.clock()
        with self.guard_store("auth.social_login"), self.rw_uow() as uow:
            repo: UserRepository = uow.users
            existing = repo.get_by_email(email)
            if existing is not None:
                repo.update_social_profile(existing, usernm=display_name, login_at=now)
                public = UserPublicOut.from_model(existing)
            else:
                public = self._create_social_user(
                    repo, email=email, display_name=display_name, provider=dto.provider, now=now
                )

        log.info(
            "Social login resolved",
            extra={"context": "auth.social_login", "userid": public.userid},
        )
        return public

    def _create_social_user(
        self,
        repo: UserRepository,
        *,
        email: str,
        display_name: str,
        provider: str,
        now: datetime,
    ) -> UserPublicOut:
        local_part = email.split("@", 1)[0]
        for _ in range(5):
            userid = self._synthesize_userid(local_part)
            if repo.exists(userid=userid):
                continue
            user = User(
                userid=userid,
                usernm=display_name,
                email=email,
                auth_provider=provider,
                last_login_at=now,
            )
            try:
                with repo.session.begin_nested():
                    repo.add(user)
            except IntegrityError as exc:
                if not violates(exc, "uq_users_email"):
                    continue
                winner = repo.get_by_email(email)
                if winner is None:
                    raise
                repo.update_social_profile(winner, usernm=display_name, login_at=now)
                return UserPublicOut.from_model(winner)
            return UserPublicOut.from_model(user)
        raise DatabaseError("Could not allocate a unique user id.")

    @staticmethod
    def _synthesize_userid(local_part: str) -> str:
        suffix = secrets.token_hex(USERID_SUFFIX_BYTES)
        prefix = _USERID_UNSAFE.sub("_", local_part).strip("_") or "user"
        prefix = prefix[: USERID_MAX_LENGTH - len(suffix) - 1]
        return f"{prefix}_{suffix}"

    def issue_tokens(self, userid: str) -> TokenPair:
        """
        Mint a pair for an already-resolved user and store its refresh token.

        :raises NotFoundError: Unknown userid.
        """
        now = self.clock()
        with self.guard_store("auth.issue_tokens"), self.rw_uow() as uow:
            user = uow.users.get(userid)
            if user is None:
                raise NotFoundError("User", userid)
            return self._issue_and_store(uow, user, now=now)

    def complete_social_login(self, identity: ExternalIdentity) -> SocialLoginOut:
        """Resolve a provider identity to an account and sign it in."""
        user = self.social_login(
            SocialLoginIn(
                email=identity.email,
                display_name=identity.display_name,
                provider=identity.provider,
            )
        )
        tokens = self.issue_tokens(user.userid)
        return SocialLoginOut(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=user,
        )

    # ------------------------------------------------------------------ #
    # Logout / invalidate
    # ------------------------------------------------------------------ #

    def logout(self, userid: str) -> None:
        """Clear the stored refresh token. Unknown users and repeats are no-ops."""
        with self.guard_store("auth.logout"), self.rw_uow() as uow:
            uow.users.clear_refresh_token(userid)
        log.info("Logged out", extra={"context": "auth.logout", "userid": userid})

    def invalidate(self, userid: str) -> None:
        """
        Clear the stored refresh token and bump ``updated_at`` atomically.

        If either statement fails neither takes effect and the error propagates.
        """

        def _clear_and_touch(uow: SQLAlchemyUnitOfWork) -> None:
            uow.users.clear_refresh_token(userid)
            uow.users.touch(userid)

        with self.guard_store("auth.invalidate"):
            self.in_transaction(_clear_and_touch)
        log.info("Refresh token invalidated", extra={"context": "auth.invalidate", "userid": userid})

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    def describe_session(
        self, access_token: str | None, refresh_token: str | None
    ) -> SessionDiagnostics:
        """
        Report expiries of the current session, rotating first if needed.

        :raises AuthenticationError: Neither token can establish a session.
        :raises NotFoundError: The identified account no longer exists.
        """
        session = self.verify_session(access_token, refresh_token)
        if session.refreshed and session.tokens is not None:
            access_exp = self.codec.get_expiry(session.tokens.access_token)
            refresh_exp = self.codec.get_expiry(session.tokens.refresh_token)
        else:
            access_exp = self.codec.get_expiry(access_token)
            refresh_exp = self.codec.get_expiry(refresh_token)

        profile = self.get_profile(session.user.userid)
        return SessionDiagnostics(
            userid=profile.userid,
            role=profile.role,
            was_refreshed=session.refreshed,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
            tokens=session.tokens,
        )

    def get_profile(self, userid: str) -> UserPublicOut:
        """
        Public fields of one account.

        :raises NotFoundError: Unknown userid.
        """
        with self.guard_store("auth.profile"), self.ro_uow() as uow:
            user = uow.users.get(userid)
            if user is None:
                raise NotFoundError("User", userid)
            return UserPublicOut.from_model(user)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @staticmethod
    def _payload_for(user: User) -> TokenPayload:
        return TokenPayload(userid=user.userid, usernm=user.usernm, email=user.email)

    def _issue_and_store(
        self,
        uow: SQLAlchemyUnitOfWork,
        user: User,
        *,
        now: datetime,
        login_at: datetime | None = None,
    ) -> TokenPair:
        """Mint both tokens at ``now`` and overwrite the stored refresh token."""
        payload = self._payload_for(user)
        access = self.codec.issue_access_token(payload, now=now)
        refresh = self.codec.issue_refresh_token(payload, now=now)
        expires_at = self.codec.compute_refresh_expiry(now)
        uow.users.store_refresh_token(payload.userid, refresh, expires_at, login_at=login_at)
        return TokenPair(access_token=access, refresh_token=refresh, refresh_expires_at=expires_at)

    def _log_rejected(self, context: str, userid: str | None, reason: str) -> None:
        extra = {"context": context, "userid": userid, "detail": reason}
        if self.ctx.client_ip:
            extra["client_ip"] = self.ctx.client_ip
        log.info("Authentication rejected", extra=extra)
