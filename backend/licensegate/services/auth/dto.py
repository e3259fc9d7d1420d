# licensegate/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SignUpIn:
    """
    Input DTO for sign-up.

    :param email: User email (normalized by the model).
    :type email: str
    :param name: Display name.
    :type name: str
    :param password: Raw password (hashed before storage).
    :type password: str
    :param whatsapp_number: Contact number, unique across users.
    :type whatsapp_number: str | None
    """

    email: str
    name: str
    password: str
    whatsapp_number: str | None = None
    governorate: str | None = None
    education_administration: str | None = None
    subjects: list[str] = field(default_factory=list)
    schools: list[str] = field(default_factory=list)
    grades: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SessionContextIn:
    """
    Client metadata recorded on the session row.

    :param user_agent: Raw ``User-Agent`` header.
    :type user_agent: str | None
    :param ip: Client address (after proxy resolution).
    :type ip: str | None
    """

    user_agent: str | None = None
    ip: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT as presented by the client.
    :type refresh_token: str
    """

    refresh_token: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    """

    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True, slots=True)
class AuthenticatedUserOut:
    """Identity resolved from a verified access token."""

    id: str
    email: str
    name: str
    role: str
    session_id: str | None
    whatsapp_number: str | None = None
    license_expires_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SessionOut:
    """Public view of a session row (no digest)."""

    id: str
    created_at: datetime
    expires_at: datetime
    user_agent: str | None
    ip: str | None
    current: bool = False
