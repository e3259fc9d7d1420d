"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. The translation to RFC 7807 responses happens once at the HTTP
boundary in ``licensegate/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The message is safe to show to API clients.
    """

    def __init__(self, message: str = "Service error") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


class BadRequestError(ServiceError):
    """Raised when a domain rule rejects the request (already redeemed, bad id...)."""

    def __init__(self, message: str = "Bad request") -> None:
        super().__init__(message)


class UnauthorizedError(ServiceError):
    """Raised for bad credentials, invalid tokens or missing sessions."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(ServiceError):
    """Raised when the caller lacks the role an operation requires."""

    def __init__(
        self, message: str = "You do not have permission to access this resource"
    ) -> None:
        super().__init__(message)


@dataclass(eq=False)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "Coupon").
    :type entity: str
    :param key: Identifier or search key; kept out of the message.
    :type key: str | int | None
    """

    entity: str
    key: str | int | None = None

    def __post_init__(self) -> None:
        ServiceError.__init__(self, f"{self.entity} not found")


@dataclass(eq=False)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __post_init__(self) -> None:
        ServiceError.__init__(self, self.detail)
