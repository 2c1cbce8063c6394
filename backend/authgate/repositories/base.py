"""Generic repository base for SQLAlchemy 2.x.

Repositories are persistence-only: they read and write rows through the
session of the active unit of work and never commit or roll back. Services
decide where a transaction starts and ends.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, exists, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from authgate.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Thin data access for one mapped class.

    Subclasses set ``model`` and override :meth:`_pk_attr` and
    :meth:`_filterable_fields`. Filters passed to :meth:`exists` are matched
    by equality and only for whitelisted keys; an unknown key is a
    programming error and raises ``KeyError``.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """
        :param session: Session of the unit of work; defaults to the
            Flask-scoped ``db.session``.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Session statements are issued on."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ------------------------------ Extensibility ----------------------------

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        raise NotImplementedError

    def _filterable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        return {}

    def _where(self, stmt: Select[Any], filters: Mapping[str, Any]) -> Select[Any]:
        allowed = self._filterable_fields()
        for key, value in filters.items():
            stmt = stmt.where(allowed[key] == value)
        return stmt

    # ------------------------------ Operations -------------------------------

    def get(self, key: Any) -> E | None:
        """Row with primary key ``key``, or ``None``."""
        stmt = select(self.model).where(self._pk_attr() == key)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def exists(self, **filters: Any) -> bool:
        """``True`` when at least one row matches every filter."""
        stmt = self._where(select(self._pk_attr()), filters)
        return bool(self.session.execute(select(exists(stmt))).scalar())

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so constraint violations surface here.

        :raises sqlalchemy.exc.IntegrityError: A unique or not-null
            constraint rejected the row.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def flush(self) -> None:
        self.session.flush()
