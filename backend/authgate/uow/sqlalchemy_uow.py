"""
SQLAlchemy units of work over the Flask-scoped session.

Both flavours hand a :class:`UserRepository` bound to ``db.session`` to the
service. The session's transaction always ends when the block exits, which
returns the pooled connection; nothing is held between requests.
"""

from __future__ import annotations

from contextlib import suppress

from flask import current_app
from sqlalchemy import event, text
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from authgate.core.extensions import db
from authgate.repositories import UserRepository
from authgate.uow.base import UnitOfWork

# First keyword of statements the read-only scope refuses to send
_WRITE_KEYWORDS = frozenset(
    {"insert", "update", "delete", "merge", "upsert", "replace", "alter", "drop", "create", "truncate"}
)


class _SessionBound:
    """Share one session between the unit of work and its repository."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session if session is not None else db.session
        self.users = UserRepository(session=self.session)


class SQLAlchemyUnitOfWork(_SessionBound, UnitOfWork):
    """
    Read-write scope: commit when the block succeeds, roll back otherwise.

    A failing commit (for instance a unique violation surfacing at flush
    time) is rolled back before the error propagates, so the session is
    reusable by the next caller.
    """

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(_SessionBound, UnitOfWork):
    """
    Lookup-only scope used by profile and diagnostics reads.

    On entry it begins its own transaction (marked ``READ ONLY`` on
    PostgreSQL) or, when the session is already inside one, joins it
    without taking ownership. While active, ORM flushes carrying changes and
    data-modifying statements raise :class:`RuntimeError`. On exit the owned
    transaction is rolled back; ``commit()`` is refused.

    :param enforce_db_readonly: Issue ``SET TRANSACTION READ ONLY`` when the
        backend supports it.
    """

    def __init__(self, *, enforce_db_readonly: bool = True) -> None:
        super().__init__()
        self.enforce_db_readonly = enforce_db_readonly
        self._owned: SessionTransaction | None = None
        self._guarded: Session | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        try:
            self._owned = self.session.begin()
        except InvalidRequestError:
            self._owned = None  # already inside the caller's transaction

        if self._owned is not None and self.enforce_db_readonly:
            self._mark_read_only()

        # Guard only the thread-local session, not every session of the factory
        scoped = self.session
        self._guarded = scoped() if isinstance(scoped, scoped_session) else scoped
        event.listen(self._guarded, "before_flush", self._reject_flush)
        event.listen(self._guarded, "do_orm_execute", self._reject_write)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owned is not None:
                with suppress(SQLAlchemyError):
                    self.session.rollback()
        finally:
            self._owned = None
            self._detach_guards()

    def commit(self) -> None:
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ------------------------------ Guards ----------------------------------

    def _mark_read_only(self) -> None:
        if self.session.get_bind().dialect.name != "postgresql":
            return
        try:
            self.session.execute(text("SET TRANSACTION READ ONLY"))
        except SQLAlchemyError as exc:
            current_app.logger.warning("SET TRANSACTION READ ONLY failed, guards only: %s", exc)

    def _reject_flush(self, session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

    def _reject_write(self, orm_execute_state) -> None:
        statement = str(orm_execute_state.statement).lstrip()
        keyword = statement.split(None, 1)[0].lower() if statement else ""
        if keyword in _WRITE_KEYWORDS:
            raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {keyword.upper()}")

    def _detach_guards(self) -> None:
        if self._guarded is None:
            return
        with suppress(InvalidRequestError):
            event.remove(self._guarded, "before_flush", self._reject_flush)
        with suppress(InvalidRequestError):
            event.remove(self._guarded, "do_orm_execute", self._reject_write)
        self._guarded = None
