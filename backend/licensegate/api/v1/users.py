"""User endpoints."""

from __future__ import annotations

from flask import Blueprint

from licensegate.api.deps import current_user, envelope, require_auth, timing
from licensegate.schemas import ProfileSchema

bp = Blueprint("users", __name__, url_prefix="/users")

profile_schema = ProfileSchema()


@bp.get("/profile")
@require_auth
@timing
def profile():
    """Return the authenticated user profile."""

    return envelope("User profile retrieved successfully", profile_schema.dump(current_user()))
