"""User-facing Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields


class UserPublicSchema(Schema):
    """Public representation of an account."""

    userid = fields.String(required=True)
    usernm = fields.String(required=True)
    email = fields.Email(required=True)
    role = fields.String(allow_none=True)
