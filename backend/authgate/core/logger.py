"""Structured logging configuration with request correlation."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")
LOG_FILENAME = "authgate.log"

# Keys callers may attach through ``extra=`` that end up in the JSON line
EXTRA_KEYS = ("context", "userid", "client_ip", "endpoint", "elapsed_ms", "status", "detail")


class JSONFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key in EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        return json.dumps(payload, default=str, ensure_ascii=False)


class RequestIdFilter(logging.Filter):
    """Ensure a ``request_id`` attribute is always present on log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


class ClientIPFilter(logging.Filter):
    """Attach the caller's address as ``client_ip`` unless the call site set one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "client_ip", None) is None:
            record.client_ip = client_ip() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the current request identifier, generating one when necessary."""

    if has_request_context():
        if hasattr(g, "request_id"):
            return g.request_id  # type: ignore[return-value]
        for header in CORRELATION_HEADERS:
            value = request.headers.get(header)
            if value:
                g.request_id = value
                return value
        request_id = str(uuid4())
        g.request_id = request_id
        return request_id
    return str(uuid4())


def client_ip() -> str | None:
    """Best-effort client address for the active request.

    Prefers the first ``X-Forwarded-For`` hop, then ``X-Real-IP`` and finally
    the socket peer (already rewritten by ``ProxyFix`` when enabled).
    """
    if not has_request_context():
        return None
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.headers.get("X-Real-IP") or request.remote_addr


def _resolve_level(level: str | int) -> int | str:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else level.upper()
    return level


def _build_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    handler.addFilter(ClientIPFilter())
    return handler


def configure_logging(
    level: str | int = "INFO",
    *,
    log_dir: str | None = None,
    retention_days: int = 14,
) -> None:
    """Configure the root logger with JSON-formatted stdout output.

    When ``log_dir`` is given, a second handler writes the same JSON lines to
    ``<log_dir>/authgate.log``, rotated at midnight and kept for
    ``retention_days`` days.
    """

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_build_handler(logging.StreamHandler(sys.stdout)))
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            directory / LOG_FILENAME,
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        root.addHandler(_build_handler(file_handler))
    root.setLevel(_resolve_level(level))


def init_app(app: Flask) -> None:
    """Inject request-id middleware and attach filters to the app logger."""

    app.logger.addFilter(RequestIdFilter())
    app.logger.addFilter(ClientIPFilter())

    @app.before_request
    def _seed_request_id() -> None:  # pragma: no cover - integration glue
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):  # pragma: no cover - integration glue
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "client_ip"]
