"""Authentication endpoints: cookie transport over :class:`AuthService`."""

from __future__ import annotations

import secrets

from flask import Blueprint, current_app, redirect, request, session

from authgate.api.deps import (
    get_auth_service,
    get_identity_provider,
    get_token_codec,
    json_response,
    timing,
)
from authgate.core.cookies import (
    clear_auth_cookies,
    read_auth_cookies,
    set_auth_cookies,
)
from authgate.core.errors import BadRequest, ServiceUnavailable, Unauthorized
from authgate.schemas import (
    LoginSchema,
    SessionUserSchema,
    SocialCallbackSchema,
    UserPublicSchema,
)
from authgate.services._shared.ports.identity_provider import IdentityProviderError
from authgate.services.auth.dto import LoginIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
social_callback_schema = SocialCallbackSchema()
session_user_schema = SessionUserSchema()
user_public_schema = UserPublicSchema()

OAUTH_STATE_KEY = "oauth_state"


@bp.post("/login")
@timing
def login():
    """Authenticate a local account and set both auth cookies."""

    data = login_schema.load(request.get_json(silent=True) or {})
    service = get_auth_service(actor_id=data["userid"])
    result = service.login(LoginIn(userid=data["userid"], password=data["password"]))
    response = json_response({"success": True, "user": user_public_schema.dump(result.user)})
    return set_auth_cookies(response, result.tokens.access_token, result.tokens.refresh_token)


@bp.get("/verify")
@timing
def verify():
    """Validate the cookie pair, rotating the tokens when the access token lapsed."""

    access, refresh = read_auth_cookies(request)
    check = get_auth_service().verify_session(access, refresh)
    body = {"success": True, "user": session_user_schema.dump(check.user)}
    if not check.refreshed or check.tokens is None:
        return json_response(body)
    body["refreshed"] = True
    response = json_response(body)
    return set_auth_cookies(response, check.tokens.access_token, check.tokens.refresh_token)


@bp.post("/logout")
@timing
def logout():
    """Drop the stored refresh token of the identified user and both cookies."""

    access, refresh = read_auth_cookies(request)
    service = get_auth_service()
    userid = service.identify(access, refresh)
    if userid is not None:
        service.logout(userid)
    response = json_response({"success": True, "message": "Logged out."})
    return clear_auth_cookies(response)


@bp.post("/social-callback")
@timing
def social_callback():
    """Install tokens minted by a completed social login as cookies."""

    data = social_callback_schema.load(request.get_json(silent=True) or {})
    check = get_token_codec().verify_access(data["access_token"])
    if not check.ok:
        raise Unauthorized("Access token is invalid or expired.")
    response = json_response({"success": True, "user": session_user_schema.dump(check.payload)})
    return set_auth_cookies(response, data["access_token"], data["refresh_token"])


@bp.get("/oauth/google")
def oauth_start():
    """Send the browser to the provider's consent page."""

    provider = get_identity_provider()
    if not provider.configured:
        raise ServiceUnavailable("Social login is not configured.")
    state = secrets.token_urlsafe(24)
    session[OAUTH_STATE_KEY] = state
    return redirect(provider.authorization_url(state))


@bp.get("/oauth/google/callback")
@timing
def oauth_callback():
    """Finish the authorization-code flow and sign the user in."""

    expected_state = session.pop(OAUTH_STATE_KEY, None)
    state = request.args.get("state")
    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        raise Unauthorized("Invalid OAuth state.")
    if request.args.get("error"):
        raise Unauthorized("Social login was cancelled.")
    code = request.args.get("code")
    if not code:
        raise BadRequest("Missing authorization code.")

    provider = get_identity_provider()
    try:
        identity = provider.exchange_code(code)
    except IdentityProviderError as exc:
        current_app.logger.warning(
            "Social login exchange failed: %s", exc, extra={"context": "oauth.google.callback"}
        )
        raise Unauthorized("Social login failed.") from exc

    result = get_auth_service().complete_social_login(identity)
    response = redirect(current_app.config.get("SOCIAL_LOGIN_REDIRECT_URL", "/dashboard"))
    return set_auth_cookies(response, result.access_token, result.refresh_token)
