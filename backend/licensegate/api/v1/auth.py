"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, request

from licensegate.api.cookies import clear_auth_cookies, set_auth_cookies
from licensegate.api.deps import (
    REFRESH_COOKIE,
    current_user,
    envelope,
    extract_token,
    require_auth,
    session_context,
    timing,
)
from licensegate.core.container import current_services
from licensegate.core.errors import Unauthorized
from licensegate.schemas import SessionSchema, SignInSchema, SignUpSchema, TokenResponseSchema
from licensegate.services.auth.dto import RefreshIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

sign_up_schema = SignUpSchema()
sign_in_schema = SignInSchema()
token_schema = TokenResponseSchema()
session_list_schema = SessionSchema(many=True)


@bp.post("/sign-up")
@timing
def sign_up():
    """Register a user and open their first session."""

    dto = sign_up_schema.load(request.get_json(silent=True) or {})
    services = current_services()
    pair = services.auth.sign_up(dto, session_context())
    response = envelope("User signed up successfully", token_schema.dump(pair), status=201)
    return set_auth_cookies(response, pair, services.settings)


@bp.post("/sign-in")
@timing
def sign_in():
    """Check credentials and open a new session."""

    data = sign_in_schema.load(request.get_json(silent=True) or {})
    services = current_services()
    user = services.auth.validate_user(data["email"], data["password"])
    if user is None:
        raise Unauthorized("Invalid credentials")
    pair = services.auth.sign_in(user.id, session_context())
    response = envelope("User signed in successfully", token_schema.dump(pair))
    return set_auth_cookies(response, pair, services.settings)


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the presented refresh token into a new token pair."""

    token = extract_token(REFRESH_COOKIE)
    if not token:
        raise Unauthorized("Invalid refresh token")
    services = current_services()
    pair = services.auth.refresh(RefreshIn(refresh_token=token))
    response = envelope("Token refreshed successfully", token_schema.dump(pair))
    return set_auth_cookies(response, pair, services.settings)


@bp.post("/sign-out")
@require_auth
@timing
def sign_out():
    """End the session named by the access token."""

    session_id = current_user().session_id
    if not session_id:
        raise Unauthorized("Session ID missing from token")
    services = current_services()
    services.auth.sign_out(session_id)
    response = envelope("User signed out successfully")
    return clear_auth_cookies(response, services.settings)


@bp.get("/sessions")
@require_auth
@timing
def list_sessions():
    """List the caller's unexpired sessions."""

    user = current_user()
    sessions = current_services().auth.list_sessions(user.id, current_session_id=user.session_id)
    return envelope("Sessions fetched successfully", session_list_schema.dump(sessions))


@bp.delete("/sessions")
@require_auth
@timing
def sign_out_everywhere():
    """End every session of the caller."""

    services = current_services()
    removed = services.auth.sign_out_everywhere(current_user().id)
    response = envelope("User signed out from all sessions successfully", {"removed": removed})
    return clear_auth_cookies(response, services.settings)
