"""Tests for the User model."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from authgate.models.user import User


class TestUser:
    def test_password_hashing(self, session):
        u = User(userid="tester", usernm="Tester", email="Test@Example.com")
        u.password = "secret123"
        session.add(u)
        session.commit()
        assert u.password_hash != "secret123"
        assert u.verify_password("secret123") is True
        assert u.verify_password("wrong") is False

    def test_password_is_write_only(self):
        u = User(userid="u1", usernm="U1", email="a@example.com")
        u.password = "x"
        with pytest.raises(AttributeError):
            _ = u.password

    def test_empty_password_rejected(self):
        u = User(userid="u2", usernm="U2", email="b@example.com")
        with pytest.raises(ValueError):
            u.password = ""

    def test_social_account_never_matches_a_password(self):
        u = User(userid="social", usernm="S", email="s@example.com", auth_provider="google")
        assert u.password_hash is None
        assert u.verify_password("") is False
        assert u.verify_password("anything") is False

    def test_email_normalized_and_unique(self, session):
        u1 = User(userid="alice", usernm="Alice", email="  Alice@Example.com ")
        session.add(u1)
        session.commit()
        assert u1.email == "alice@example.com"

        session.add(User(userid="alice2", usernm="Alice 2", email="alice@example.com"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    @pytest.mark.parametrize("email", ["", "no-at-sign", "@example.com"])
    def test_malformed_email_rejected(self, email):
        with pytest.raises(ValueError):
            User(userid="x", usernm="X", email=email)

    def test_identifiers_are_trimmed_and_required(self):
        u = User(userid="  padded  ", usernm=" Name ", email="p@example.com")
        assert u.userid == "padded"
        assert u.usernm == "Name"
        with pytest.raises(ValueError):
            User(userid="   ", usernm="X", email="q@example.com")

    def test_refresh_token_unique(self, session):
        session.add_all(
            [
                User(userid="r1", usernm="R1", email="r1@example.com", refresh_token="same"),
                User(userid="r2", usernm="R2", email="r2@example.com", refresh_token="same"),
            ]
        )
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_repr_uses_userid(self):
        assert repr(User(userid="repr", usernm="R", email="r@example.com")) == "<User userid=repr>"
