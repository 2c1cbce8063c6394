"""Cross-origin policy for the cookie-authenticated API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS


def init_app(app: Flask) -> None:
    """Allow the configured front-end origins to call ``/api/*`` with cookies.

    ``CORS_ORIGINS`` is a comma-separated list. Browsers only attach the
    auth cookies to cross-origin calls when credentials are allowed, and
    credentials cannot be combined with ``*``; an empty list or ``*``
    therefore yields a wildcard policy under which no session crosses
    origins.
    """
    origins = [item.strip() for item in app.config.get("CORS_ORIGINS", "").split(",")]
    origins = [item for item in origins if item]
    allow_any = origins in ([], ["*"])

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if allow_any else origins}},
        supports_credentials=not allow_any,
        expose_headers=["X-Request-ID"],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
