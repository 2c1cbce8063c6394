"""Auth cookie transport: the only place token strings touch HTTP."""

from __future__ import annotations

from flask import Request, Response, current_app

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _cookie_options() -> dict[str, object]:
    """Shared flags for both auth cookies.

    Cookies are ``HttpOnly``, ``SameSite=Strict``, scoped to ``/`` and only
    ``Secure`` when ``COOKIE_SECURE`` is enabled (production default). No
    ``Max-Age`` is sent, so they live for the browser session.
    """
    return {
        "httponly": True,
        "secure": bool(current_app.config.get("COOKIE_SECURE", False)),
        "samesite": current_app.config.get("COOKIE_SAMESITE", "Strict"),
        "path": "/",
    }


def read_auth_cookies(req: Request) -> tuple[str | None, str | None]:
    """Return ``(access_token, refresh_token)``; empty values become ``None``."""
    access = req.cookies.get(ACCESS_COOKIE) or None
    refresh = req.cookies.get(REFRESH_COOKIE) or None
    return access, refresh


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> Response:
    """Attach both auth cookies to ``response``."""
    options = _cookie_options()
    response.set_cookie(ACCESS_COOKIE, access_token, **options)  # type: ignore[arg-type]
    response.set_cookie(REFRESH_COOKIE, refresh_token, **options)  # type: ignore[arg-type]
    return response


def clear_auth_cookies(response: Response) -> Response:
    """Expire both auth cookies immediately, using the flags they were set with."""
    options = _cookie_options()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            secure=bool(options["secure"]),
            httponly=True,
            samesite=str(options["samesite"]),
        )
    return response
