"""Transaction boundary contract shared by the credential-store services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authgate.repositories.user import UserRepository


class UnitOfWork(ABC):
    """
    One transaction against the credential store.

    ``users`` is bound to the transaction; every statement it issues inside
    the ``with`` block commits or rolls back together. Leaving the block
    normally commits, leaving it with an exception rolls back.
    """

    users: UserRepository

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
