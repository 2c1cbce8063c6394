"""Factory Boy base class persisting into the per-test transactional session."""

from __future__ import annotations

from factory.alchemy import SQLAlchemyModelFactory
from sqlalchemy.orm import Session

_bound: dict[str, Session | None] = {"session": None}


def bind_session(session: Session | None) -> None:
    """Route every factory's writes to ``session`` (``None`` unbinds)."""
    _bound["session"] = session


def bound_session() -> Session:
    session = _bound["session"]
    if session is None:
        raise RuntimeError("No session bound to factories; request the 'session' fixture.")
    return session


class BaseFactory(SQLAlchemyModelFactory):
    """Flush created objects; the test decides whether to commit."""

    class Meta:
        abstract = True
        sqlalchemy_session_factory = bound_session
        sqlalchemy_session_persistence = "flush"
