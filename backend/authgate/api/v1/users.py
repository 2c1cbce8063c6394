"""User endpoints."""

from __future__ import annotations

from flask import Blueprint

from authgate.api.deps import current_userid, get_auth_service, json_response, require_auth, timing
from authgate.schemas import UserPublicSchema

bp = Blueprint("users", __name__, url_prefix="/users")

user_schema = UserPublicSchema()


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the profile of the access-cookie holder."""

    userid = current_userid()
    user = get_auth_service(actor_id=userid).get_profile(userid)
    return json_response({"success": True, "user": user_schema.dump(user)})
