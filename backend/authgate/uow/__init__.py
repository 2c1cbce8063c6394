"""Units of work: the transaction scopes services run credential-store calls in.

``SQLAlchemyUnitOfWork`` commits on success; ``SQLAlchemyReadOnlyUnitOfWork``
always rolls back and rejects writes.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = ["UnitOfWork", "SQLAlchemyUnitOfWork", "SQLAlchemyReadOnlyUnitOfWork"]
