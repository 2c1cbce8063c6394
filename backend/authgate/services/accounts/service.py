"""
AccountService
==============

Provisioning of local (password) accounts for operators. Sessions are
handled by :class:`~authgate.services.auth.service.AuthService`; this
service only creates rows and manages the password lifecycle.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from authgate.repositories.user import UserRepository
from authgate.services._shared.base import BaseService
from authgate.services._shared.errors import NotFoundError, ValidationError, violates
from authgate.services.accounts.dto import LocalUserIn, PasswordSetIn
from authgate.services.auth.dto import UserPublicOut

log = logging.getLogger(__name__)


class AccountService(BaseService):
    """
    Application service for local account provisioning.

    Responsibilities
    ----------------
    - Create password accounts ensuring userid and email uniqueness.
    - Reset passwords.
    """

    def create_local_user(self, dto: LocalUserIn) -> UserPublicOut:
        """
        Create a password account.

        :param dto: Account input DTO.
        :type dto: LocalUserIn
        :returns: Public-safe user DTO.
        :rtype: UserPublicOut
        :raises ValidationError: Invalid fields, or userid/email already taken.
        """
        with self.guard_store("accounts.create"), self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists(userid=dto.userid):
                raise ValidationError("userid already in use.")
            if repo.get_by_email(dto.email) is not None:
                raise ValidationError("email already in use.")

            try:
                user = repo.model(
                    userid=dto.userid,
                    usernm=dto.usernm,
                    email=dto.email,
                    role=dto.role,
                    password=dto.password,  # model hashes via setter
                )
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

            try:
                repo.add(user)
            except IntegrityError as exc:
                if violates(exc, "uq_users_email"):
                    raise ValidationError("email already in use.") from exc
                raise

            out = UserPublicOut.from_model(user)

        log.info("Local account created", extra={"context": "accounts.create", "userid": out.userid})
        return out

    def set_password(self, dto: PasswordSetIn) -> None:
        """
        Replace the password of an existing account.

        The stored refresh token is left alone; use
        :meth:`AuthService.invalidate` to end open sessions.

        :raises NotFoundError: Unknown userid.
        :raises ValidationError: Empty password.
        """
        if not dto.password:
            raise ValidationError("Password must be a non-empty string.")
        with self.guard_store("accounts.set_password"), self.rw_uow() as uow:
            if not uow.users.set_password(dto.userid, dto.password):
                raise NotFoundError("User", dto.userid)
        log.info("Password changed", extra={"context": "accounts.set_password", "userid": dto.userid})
