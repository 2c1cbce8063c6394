"""Reusable SQLAlchemy mixins and UTC helpers shared by models (typed 2.0)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Coerce a datetime read from the database into an aware UTC value.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; every timestamp is written in UTC, so a naive value is UTC.

    :param value: Datetime from a mapped column, possibly naive.
    :returns: Aware datetime in UTC, or ``None``.
    :rtype: datetime | None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TimestampMixin:
    """Provide ``created_at`` and ``updated_at`` timestamp columns.

    Attributes
    ----------
    created_at:
        Timezone-aware timestamp filled by the database on insert.
    updated_at:
        Timezone-aware timestamp refreshed by the database on update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ReprMixin:
    """Provide a concise ``__repr__`` including the class name and key."""

    __repr_key__ = "id"

    def __repr__(self) -> str:
        """Return a short and useful string representation.

        :returns: Debug-friendly ``<ClassName key=...>``.
        :rtype: str
        """
        cls = self.__class__.__name__
        attr = self.__repr_key__
        return f"<{cls} {attr}={getattr(self, attr, None)}>"
