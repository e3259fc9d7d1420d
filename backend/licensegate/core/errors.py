"""RFC 7807 problem responses for every error the API lets through.

Services raise :class:`~licensegate.services._shared.errors.ServiceError`
subclasses and know nothing about HTTP. This module is the only place where
those, marshmallow validation failures, database errors and Werkzeug
exceptions become ``application/problem+json`` bodies.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from licensegate.core.logger import ensure_request_id
from licensegate.services._shared.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"

# Stable machine-readable codes; anything else reports "error".
STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    415: "unsupported_media_type",
    422: "validation_error",
    500: "internal_server_error",
    503: "service_unavailable",
}


def problem_response(
    status: int,
    detail: str,
    *,
    code: str | None = None,
    details: dict[str, Any] | None = None,
) -> tuple[Response, int]:
    """
    Render one problem document and pair it with its status.

    :param status: HTTP status code.
    :param detail: Client-safe, human-readable summary.
    :param code: Machine-readable code; derived from ``status`` when omitted.
    :param details: Optional structured payload (validation messages).
    :returns: ``(response, status)`` ready to return from a handler.
    """
    status = int(status)
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": detail,
        "instance": request.path if request else None,
        "code": code or STATUS_CODES.get(status, "error"),
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    response = jsonify(body)
    response.mimetype = PROBLEM_MIMETYPE
    return response, status


class APIError(Exception):
    """
    An error raised by the HTTP layer itself (auth decorators, routes).

    Subclasses pin ``status_code`` and ``default_message``; the instance
    message overrides the default.
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return STATUS_CODES.get(int(self.status_code), "error")


class BadRequest(APIError):
    pass


class Unauthorized(APIError):
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(APIError):
    status_code = HTTPStatus.FORBIDDEN
    default_message = "Forbidden"


class NotFound(APIError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Resource not found"


class Conflict(APIError):
    status_code = HTTPStatus.CONFLICT
    default_message = "Conflict"


_SERVICE_ERRORS: dict[type[ServiceError], type[APIError]] = {
    BadRequestError: BadRequest,
    UnauthorizedError: Unauthorized,
    ForbiddenError: Forbidden,
    NotFoundError: NotFound,
    ConflictError: Conflict,
}


def translate_service_error(exc: ServiceError) -> APIError:
    """
    Map a service error onto its HTTP counterpart, keeping the message.

    The most specific registered base class wins; an unregistered
    :class:`ServiceError` subclass is reported as ``400``.
    """
    for klass in type(exc).__mro__:
        api_cls = _SERVICE_ERRORS.get(klass)
        if api_cls is not None:
            return api_cls(str(exc))
    return BadRequest(str(exc))


# Database failures never leak driver messages.
_DATABASE_ERRORS: tuple[tuple[type[Exception], int, str], ...] = (
    (IntegrityError, HTTPStatus.CONFLICT, "Resource conflict"),
    (OperationalError, HTTPStatus.SERVICE_UNAVAILABLE, "Service temporarily unavailable"),
)


def _log_problem(kind: str, status: int, detail: str, *, exc_info: bool = False) -> None:
    level = logging.ERROR if status >= 500 or exc_info else logging.WARNING
    log.log(
        level,
        "%s: status=%s detail=%s request_id=%s",
        kind,
        status,
        detail,
        ensure_request_id(),
        exc_info=exc_info,
    )


def init_app(app: Flask) -> None:
    """Register the problem+json handlers on ``app``."""

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        _log_problem(type(err).__name__, int(err.status_code), err.message)
        return problem_response(err.status_code, err.message, details=err.details)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        return handle_api_error(translate_service_error(err))

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        _log_problem("ValidationError", HTTPStatus.UNPROCESSABLE_ENTITY, "Validation failed")
        return problem_response(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        if status == HTTPStatus.NOT_FOUND:
            detail = f"Route '{request.path}' not found"
        else:
            detail = (err.description or HTTPStatus(status).phrase).strip()
        _log_problem("HTTPException", status, detail)
        return problem_response(status, detail)

    for exc_type, status, detail in _DATABASE_ERRORS:

        def handle_database_error(err: Exception, status: int = status, detail: str = detail):
            _log_problem(type(err).__name__, status, detail, exc_info=True)
            return problem_response(status, detail)

        app.register_error_handler(exc_type, handle_database_error)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        _log_problem("Unhandled exception", 500, "Unexpected error", exc_info=True)
        return problem_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Unexpected error")
