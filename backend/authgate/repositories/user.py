"""User repository: point lookups and the refresh-token column writes."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import func, select, update
from sqlalchemy.engine import CursorResult

from authgate.models.user import User
from authgate.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Every write to ``refresh_token`` sets or clears ``refresh_token_expiry``
    in the same statement, so the pair is never half-written. Token writes
    are single ``UPDATE`` statements rather than ORM attribute changes; the
    affected row count is returned so callers can tell a no-op from a write.
    """

    model = User

    # ---------------------------- Whitelists ----------------------------

    def _pk_attr(self):
        return User.userid

    def _filterable_fields(self):
        """Whitelist fields safe for equality filters."""
        return {
            "userid": User.userid,
            "email": User.email,
            "auth_provider": User.auth_provider,
        }

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_by_refresh_token(self, token: str) -> User | None:
        """Fetch the user currently holding ``token`` as their refresh token.

        At most one row can match: the column is unique and every rotation
        replaces the previous value.

        :param token: Encoded refresh token, as presented by the client.
        :type token: str
        :returns: Owning user or ``None`` when the value is not live anymore.
        :rtype: User | None
        """
        stmt = select(User).where(User.refresh_token == token)
        return cast(User | None, self.session.execute(stmt).scalars().first())

    # ---------------------------- Refresh token writes ----------------------------

    def store_refresh_token(
        self,
        userid: str,
        token: str,
        expires_at: datetime,
        *,
        login_at: datetime | None = None,
    ) -> int:
        """Overwrite the stored refresh token and expiry in one statement.

        :param userid: Owner of the token.
        :param token: New refresh token.
        :param expires_at: Expiry paired with ``token``.
        :param login_at: When given, also written to ``last_login_at``.
        :returns: Number of rows updated (``0`` for an unknown user).
        :rtype: int
        """
        values: dict[str, object] = {
            "refresh_token": token,
            "refresh_token_expiry": expires_at,
        }
        if login_at is not None:
            values["last_login_at"] = login_at
        stmt = update(User).where(User.userid == userid).values(**values)
        return self._execute_update(stmt, userid)

    def swap_refresh_token(
        self,
        userid: str,
        *,
        expected: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Replace ``expected`` with ``token`` only if it is still the live value.

        The guard (same token, not yet expired) and the write are one
        conditional ``UPDATE``; when two callers race with the same token the
        database lets exactly one of them match the row.

        :param userid: Owner of the token.
        :param expected: Refresh token presented by the client.
        :param token: Replacement refresh token.
        :param expires_at: Expiry paired with ``token``.
        :param now: Reference time for the stored-expiry guard.
        :returns: ``True`` if this call performed the rotation.
        :rtype: bool
        """
        stmt = (
            update(User)
            .where(
                User.userid == userid,
                User.refresh_token == expected,
                User.refresh_token_expiry > now,
            )
            .values(refresh_token=token, refresh_token_expiry=expires_at)
        )
        return self._execute_update(stmt, userid) == 1

    def clear_refresh_token(self, userid: str) -> int:
        """Null out the refresh token and its expiry. Clearing twice is harmless.

        :returns: Number of rows matched (``0`` for an unknown user).
        :rtype: int
        """
        stmt = (
            update(User)
            .where(User.userid == userid)
            .values(refresh_token=None, refresh_token_expiry=None)
        )
        return self._execute_update(stmt, userid)

    def touch(self, userid: str) -> int:
        """Bump ``updated_at`` to the database clock.

        :returns: Number of rows matched; ``0`` is not an error.
        :rtype: int
        """
        stmt = update(User).where(User.userid == userid).values(updated_at=func.now())
        return self._execute_update(stmt, userid)

    # ---------------------------- Profile writes ----------------------------

    def update_social_profile(self, user: User, *, usernm: str, login_at: datetime) -> User:
        """Refresh display name and last login of an existing social account."""
        user.usernm = usernm
        user.last_login_at = login_at
        self.flush()
        return user

    def set_password(self, userid: str, raw_password: str) -> bool:
        """Hash and store a new password.

        :returns: ``False`` when the user does not exist.
        :rtype: bool
        """
        user = self.get(userid)
        if user is None:
            return False
        user.password = raw_password  # invokes setter -> hash
        self.flush()
        return True

    # ---------------------------- Internals ----------------------------

    def _execute_update(self, stmt, userid: str) -> int:
        """Run a bulk ``UPDATE`` and drop any stale in-memory copy of the row."""
        result = cast(
            CursorResult,
            self.session.execute(stmt, execution_options={"synchronize_session": False}),
        )
        cached = self.session.identity_map.get(self.session.identity_key(User, userid))
        if cached is not None:
            self.session.expire(cached)
        return int(result.rowcount)
