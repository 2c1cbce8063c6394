"""Shared API helpers for service wiring and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from authgate.core.logger import client_ip, ensure_request_id
from authgate.services._shared.base import ServiceContext
from authgate.services._shared.ports.identity_provider import IdentityProvider
from authgate.services._shared.ports.token_codec import TokenCodec
from authgate.services.auth.service import AuthService

F = TypeVar("F", bound=Callable[..., Any])


def get_token_codec() -> TokenCodec:
    """Return the codec built once by :func:`authgate.core.extensions.init_app`."""

    return cast(TokenCodec, current_app.extensions["token_codec"])


def get_identity_provider() -> IdentityProvider:
    """Return the OAuth adapter built at startup."""

    return cast(IdentityProvider, current_app.extensions["identity_provider"])


def service_context(actor_id: str | None = None) -> ServiceContext:
    """Request-scoped context for service logging."""

    return ServiceContext(actor_id=actor_id, request_id=ensure_request_id(), client_ip=client_ip())


def get_auth_service(actor_id: str | None = None) -> AuthService:
    """Build an :class:`AuthService` wired to the app-wide codec."""

    return AuthService(codec=get_token_codec(), ctx=service_context(actor_id))


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access-token cookie."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_userid() -> str:
    """Identity of the verified access token (call after :func:`require_auth`)."""

    return str(get_jwt_identity())


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
