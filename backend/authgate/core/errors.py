"""Centralized JSON error handling for the API.

Every handled failure renders the same envelope::

    {"success": false, "message": "...", "code": "...", "request_id": "..."}

Authentication failures add ``shouldRedirect`` and ``redirectTo`` so the
front end can send the user back to the login page. In development the
envelope also carries ``error`` with the underlying exception text.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, current_app, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException

from authgate.core.logger import ensure_request_id

log = logging.getLogger(__name__)

LOGIN_PATH = "/login"


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _is_development() -> bool:
    return current_app.config.get("APP_ENV") == "development" or bool(
        current_app.config.get("DEBUG")
    )


def build_envelope(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    cause: BaseException | None = None,
) -> dict[str, Any]:
    """
    Build the failure envelope shared by every error response.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :param cause: Underlying exception, exposed only in development.
    :returns: JSON-serializable dictionary.
    :rtype: dict
    """
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if status == HTTPStatus.UNAUTHORIZED:
        body["shouldRedirect"] = True
        body["redirectTo"] = LOGIN_PATH
    if details:
        body["details"] = details
    if cause is not None and _is_development():
        body["error"] = str(cause)
    return body


def envelope_response(body: dict[str, Any], status: int) -> tuple[Response, int]:
    """Wrap an envelope into a ``(response, status)`` pair."""
    return jsonify(body), int(status)


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload (e.g., validation messages) included in the
        response body.
    cause : BaseException | None, optional
        Originating exception, surfaced as ``error`` in development only.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_envelope(self) -> dict[str, Any]:
        """
        Serialize error metadata into the failure envelope.

        :returns: Envelope dictionary.
        :rtype: dict
        """
        return build_envelope(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
            cause=self.cause,
        )


# Domain conveniences
class BadRequest(APIError):
    """400 for malformed or missing request fields."""

    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message, status_code=HTTPStatus.BAD_REQUEST, code="validation_error", details=details
        )


class NotFound(APIError):
    """404 when resources are missing."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Unauthorized(APIError):
    """401 when authentication fails."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="unauthorized")


class ServiceUnavailable(APIError):
    """503 when the credential store cannot be reached in time."""

    def __init__(
        self, message: str = "Service temporarily unavailable", cause: BaseException | None = None
    ) -> None:
        super().__init__(
            message,
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            cause=cause,
        )


class InternalError(APIError):
    """500 for database and other server-side failures."""

    def __init__(
        self,
        message: str = "Unexpected error",
        code: str = "internal_server_error",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message, status_code=HTTPStatus.INTERNAL_SERVER_ERROR, code=code, cause=cause
        )


def _log_api_error(err: APIError) -> None:
    # 4xx -> warning; 5xx -> error
    level = log.error if err.status_code >= 500 else log.warning
    level(
        "APIError: code=%s status=%s msg=%s",
        err.code,
        err.status_code,
        err.message,
        extra={"context": request.endpoint, "status": err.status_code},
        exc_info=err.cause if err.status_code >= 500 and err.cause is not None else None,
    )


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    - Service-layer errors are translated through
      :meth:`authgate.services._shared.base.BaseService.translate_exceptions`.
    - Registers ``flask-jwt-extended`` loaders so rejected access cookies use
      the same envelope as every other 401.
    """
    from authgate.core.extensions import jwt
    from authgate.services._shared.base import BaseService
    from authgate.services._shared.errors import ServiceError

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        body = err.to_envelope()
        _log_api_error(err)
        return envelope_response(body, err.status_code)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        translated = BaseService.translate_exceptions(err)
        if isinstance(translated, APIError):
            return handle_api_error(translated)
        return handle_unexpected_error(err)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        body = build_envelope(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level("HTTPException: code=%s status=%s detail=%s", error_code, status, message)
        return envelope_response(body, status)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        body = build_envelope(
            status=HTTPStatus.BAD_REQUEST,
            code="validation_error",
            message="Request validation failed.",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: fields=%s", sorted(_field_names(err.messages)))
        return envelope_response(body, HTTPStatus.BAD_REQUEST)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Do not leak raw DB error to clients
        body = build_envelope(
            status=HTTPStatus.CONFLICT, code="conflict", message="Resource conflict", cause=err
        )
        log.error("IntegrityError", exc_info=True)
        return envelope_response(body, HTTPStatus.CONFLICT)

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def handle_store_unavailable(err: Exception):
        # E.g., pool exhaustion, transient DB connectivity, deadlocks
        body = build_envelope(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
            cause=err,
        )
        log.error("Credential store unavailable", exc_info=True)
        return envelope_response(body, HTTPStatus.SERVICE_UNAVAILABLE)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; details only in development
        body = build_envelope(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
            cause=err,
        )
        log.error("Unhandled exception", exc_info=err)
        return envelope_response(body, HTTPStatus.INTERNAL_SERVER_ERROR)

    # ---- flask-jwt-extended: protected routes reading the access cookie ----

    def _jwt_unauthorized(message: str):
        body = build_envelope(status=HTTPStatus.UNAUTHORIZED, code="unauthorized", message=message)
        log.warning("Access cookie rejected: %s", message)
        return envelope_response(body, HTTPStatus.UNAUTHORIZED)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _jwt_unauthorized("Not authenticated.")

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _jwt_unauthorized("Access token is invalid.")

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _jwt_unauthorized("Access token has expired.")


def _field_names(messages: Any) -> list[str]:
    if isinstance(messages, dict):
        return [str(key) for key in messages]
    return []
