"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request

from licensegate.core.container import current_services
from licensegate.core.errors import Forbidden, Unauthorized
from licensegate.services._shared.policies.common import has_role
from licensegate.services.auth.dto import AuthenticatedUserOut, SessionContextIn

F = TypeVar("F", bound=Callable[..., Any])

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def envelope(message: str, data: Any = None, *, status: int = 200) -> Response:
    """Return the ``{"message", "data"}`` success body used by every endpoint."""

    return json_response({"message": message, "data": data}, status=status)


def extract_token(cookie_name: str) -> str | None:
    """Read a JWT from ``cookie_name`` or, failing that, a Bearer header.

    The cookie wins when both are present.
    """

    token = request.cookies.get(cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def session_context() -> SessionContextIn:
    """Capture the client details recorded on a new session."""

    user_agent = request.user_agent.string or None
    return SessionContextIn(user_agent=user_agent, ip=request.remote_addr)


def current_user() -> AuthenticatedUserOut:
    """Return the caller resolved by :func:`require_auth`."""

    user = g.get("current_user")
    if user is None:
        raise Unauthorized()
    return user


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token and load its user."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = extract_token(ACCESS_COOKIE)
        if not token:
            raise Unauthorized()
        g.current_user = current_services().auth.authenticate(token)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_roles(*roles: str) -> Callable[[F], F]:
    """Ensure the authenticated caller holds one of ``roles``.

    Must be applied beneath :func:`require_auth`.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            user = current_user()
            if not has_role(actor_role=user.role, allowed=roles):
                raise Forbidden("You do not have permission to access this resource")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
