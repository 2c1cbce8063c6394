"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP. They serve as stable contracts between repositories, domain
models, and application services.

The translation to HTTP responses is handled by ``authgate/core/errors.py``
via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').

    Returns
    -------
    bool
        True if the IntegrityError mentions the given constraint. SQLite only
        reports column names, so ``users.<column>`` is accepted as well.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    name = constraint_name.lower()
    if name in message:
        return True
    # uq_users_email -> users.email (SQLite wording)
    parts = name.split("_", 2)
    return len(parts) == 3 and f"{parts[1]}.{parts[2]}" in message


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories or domain logic.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


class AuthenticationError(ServiceError):
    """
    Raised for missing, invalid, expired or superseded credentials and tokens.

    The message is client-safe; callers decide whether to show it.
    """

    def __init__(self, message: str = "Authentication failed.") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Raised when service input is malformed or incomplete."""

    def __init__(self, message: str = "Invalid input.") -> None:
        super().__init__(message)
        self.message = message


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


class DatabaseError(ServiceError):
    """
    Raised when the credential store fails while executing a statement.

    The originating :class:`sqlalchemy.exc.SQLAlchemyError` is chained as
    ``__cause__``.
    """

    def __init__(self, message: str = "Database operation failed.") -> None:
        super().__init__(message)
        self.message = message


class StoreUnavailableError(DatabaseError):
    """
    Raised when no connection could be obtained in time (pool exhaustion,
    connection refused, statement timeout).
    """

    def __init__(self, message: str = "Credential store unavailable.") -> None:
        super().__init__(message)
