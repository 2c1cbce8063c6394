"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class LoginSchema(Schema):
    """Input payload for authenticating a local account."""

    class Meta:
        unknown = EXCLUDE

    userid = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class SocialCallbackSchema(Schema):
    """Input payload posted after a social login completed elsewhere."""

    class Meta:
        unknown = EXCLUDE

    access_token = fields.String(
        required=True, data_key="accessToken", validate=validate.Length(min=1)
    )
    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=1)
    )
    user = fields.Dict(required=True)


class SessionUserSchema(Schema):
    """Identity carried by the session tokens."""

    userid = fields.String(required=True)
    usernm = fields.String(required=True)
    email = fields.String(required=True)


class SessionDiagnosticsSchema(Schema):
    """Response payload of the token expiry diagnostics."""

    userid = fields.String(data_key="userId")
    role = fields.String(data_key="userrole", allow_none=True)
    was_refreshed = fields.Boolean(data_key="wasRefreshed")
    access_expires_at = fields.DateTime(data_key="accessTokenExpiry", allow_none=True)
    refresh_expires_at = fields.DateTime(data_key="refreshTokenExpiry", allow_none=True)
