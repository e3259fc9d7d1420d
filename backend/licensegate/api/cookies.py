"""Auth cookie helpers."""

from __future__ import annotations

from flask import Response

from licensegate.api.deps import ACCESS_COOKIE, REFRESH_COOKIE
from licensegate.core.config import Settings
from licensegate.services.auth.dto import TokenPairOut


def set_auth_cookies(response: Response, pair: TokenPairOut, settings: Settings) -> Response:
    """Attach both tokens as ``httponly`` cookies living as long as the tokens."""
    cookies = (
        (ACCESS_COOKIE, pair.access_token, settings.access_expires),
        (REFRESH_COOKIE, pair.refresh_token, settings.refresh_expires),
    )
    for name, value, lifetime in cookies:
        response.set_cookie(
            name,
            value,
            max_age=int(lifetime.total_seconds()),
            httponly=True,
            secure=settings.cookie_secure,
            samesite="Lax",
            path="/",
        )
    return response


def clear_auth_cookies(response: Response, settings: Settings) -> Response:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite="Lax",
        )
    return response
