"""User model: credentials, profile and the single live refresh token."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from authgate.core.extensions import db

from .base import ReprMixin, TimestampMixin


class User(ReprMixin, TimestampMixin, db.Model):
    """
    One row per account, local or social.

    Fields
    ------
    userid : str
        Primary key chosen at creation (local) or synthesized from the email
        local part (social). Never changes afterwards.
    usernm : str
        Display name.
    email : str
        Stored normalized (lowercase, trimmed). Correlates social identities.
    password_hash : str | None
        Hashed password (write-only setter via ``password``). ``None`` for
        social-only accounts, which can never pass a password check.
    role : str | None
        Authorization hint returned to clients, not enforced here.
    auth_provider : str | None
        Social provider the account was created through (``"google"``).
    refresh_token : str | None
        The only refresh token currently accepted for this user.
    refresh_token_expiry : datetime | None
        Expiry of ``refresh_token``; set and cleared together with it.
    last_login_at : datetime | None
        Last successful login (local or social).
    """

    __tablename__ = "users"
    __repr_key__ = "userid"

    # Columns
    userid: Mapped[str] = mapped_column(String(50), primary_key=True)
    usernm: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    auth_provider: Mapped[str | None] = mapped_column(String(30), nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Constraints & indexes
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("refresh_token", name="uq_users_refresh_token"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        The digest comparison inside ``check_password_hash`` is constant-time.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; ``False`` otherwise or when the
            account has no password (social-only).
        :rtype: bool
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :param key: Field name (``email``).
        :type key: str
        :param value: Email to normalize.
        :type value: str
        :returns: Normalized email (lowercased/trimmed).
        :rtype: str
        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        if "@" not in v or not v.split("@", 1)[0]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("userid", "usernm")
    def _strip_required(self, key: str, value: str) -> str:
        """
        Trim required string identifiers.

        :raises ValueError: If the value is missing or only whitespace.
        """
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{key} is required.")
        return value.strip()
