# authgate/services/_shared/base.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from authgate.core import errors as api_errors
from authgate.services._shared.errors import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    ValidationError,
)
from authgate.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

T = TypeVar("T")

log = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (PoolTimeoutError, OperationalError, DisconnectionError)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (caller identity, tracing).

    :param actor_id: Identifier of the user the request acts for, when known.
    :param request_id: Correlation id for logging/tracing.
    :param client_ip: Address of the caller, for log context.
    """

    actor_id: str | None = None
    request_id: str | None = None
    client_ip: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Run caller-supplied statement sequences in one transaction.
    * Turn credential-store failures into service errors, logged with context.
    * Centralize error translation towards the HTTP layer.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context (caller, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(self, *, enforce_db_readonly: bool = True) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param enforce_db_readonly: Apply `SET TRANSACTION READ ONLY` when supported.
        :type enforce_db_readonly: bool
        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork(enforce_db_readonly=enforce_db_readonly)

    def in_transaction(self, work: Callable[[SQLAlchemyUnitOfWork], T]) -> T:
        """
        Run ``work`` inside one read-write transaction.

        Every statement issued through the unit of work handed to ``work``
        commits together. If any of them raises, the whole transaction is
        rolled back and the error propagates unchanged.

        :param work: Callable receiving the active unit of work.
        :returns: Whatever ``work`` returns.
        """
        with self.rw_uow() as uow:
            return work(uow)

    # -------------------------- Store failures ------------------------------

    @contextmanager
    def guard_store(self, context: str) -> Iterator[None]:
        """
        Normalize credential-store failures raised inside the block.

        :class:`sqlalchemy.exc.SQLAlchemyError` becomes
        :class:`StoreUnavailableError` for pool timeouts and connectivity
        problems, or :class:`DatabaseError` otherwise. The failure is logged
        with ``context`` (the originating operation) and the acting user.
        Service errors pass through untouched.

        :param context: Operation label such as ``"auth.refresh"``.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            extra = {"context": context, "userid": self.ctx.actor_id}
            if self.ctx.client_ip:
                extra["client_ip"] = self.ctx.client_ip
            if isinstance(exc, _UNAVAILABLE_ERRORS):
                log.error("Credential store unavailable", extra=extra, exc_info=True)
                raise StoreUnavailableError() from exc
            log.error("Credential store error", extra=extra, exc_info=True)
            raise DatabaseError() from exc

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, AuthenticationError):
            # -> 401 Unauthorized
            return api_errors.Unauthorized(exc.message)

        if isinstance(exc, ValidationError):
            # -> 400 Bad Request
            return api_errors.BadRequest(exc.message)

        if isinstance(exc, NotFoundError):
            # -> 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, StoreUnavailableError):
            # -> 503 Service Unavailable
            return api_errors.ServiceUnavailable(cause=exc.__cause__ or exc)

        if isinstance(exc, DatabaseError):
            # -> 500, generic message; detail only in development
            return api_errors.InternalError(
                exc.message, code="database_error", cause=exc.__cause__ or exc
            )

        # Any other ServiceError subclass -> 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
