# licensegate/infra/jwt/pyjwt_token_codec.py
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt as pyjwt

from licensegate.core.config import Settings
from licensegate.models.base import utcnow
from licensegate.services._shared.errors import UnauthorizedError
from licensegate.services._shared.ports import TokenCodec

SESSION_ALGORITHM = "HS256"
LICENSE_ALGORITHM = "RS256"
_REQUIRED_CLAIMS = ["exp", "iat", "jti"]


@dataclass(slots=True)
class PyJWTTokenCodec(TokenCodec):
    """
    Adapter for PyJWT.

    Access and refresh tokens use HMAC with their own secret and lifetime;
    license tokens use RSA with the admin private key. Verification pins the
    algorithm and requires ``exp``/``iat``/``jti``; every decoding failure
    surfaces as the same :class:`UnauthorizedError` per token kind.

    :param settings: Frozen runtime settings (secrets and lifetimes).
    :type settings: Settings
    """

    settings: Settings

    # ------------------------------------------------------------------ #
    # Issuing
    # ------------------------------------------------------------------ #

    def _session_payload(self, claims: dict[str, Any], lifetime: timedelta) -> dict[str, Any]:
        now = utcnow()
        payload = dict(claims)
        payload["jti"] = self.new_jti()
        payload["iat"] = now
        payload["exp"] = now + lifetime
        return payload

    def issue_access_token(self, claims: dict[str, Any]) -> str:
        payload = self._session_payload(claims, self.settings.access_expires)
        return pyjwt.encode(payload, self.settings.access_secret, algorithm=SESSION_ALGORITHM)

    def issue_refresh_token(self, claims: dict[str, Any]) -> str:
        payload = self._session_payload(claims, self.settings.refresh_expires)
        return pyjwt.encode(payload, self.settings.refresh_secret, algorithm=SESSION_ALGORITHM)

    def issue_license_token(self, claims: dict[str, Any], signing_key: str) -> str:
        """
        Sign a license token with the admin RSA key.

        ``datetime`` claim values are rendered as ISO-8601 strings.

        :param claims: License claims, typically ``{id, expiresAt}``.
        :type claims: dict[str, Any]
        :param signing_key: PEM-encoded RSA private key.
        :type signing_key: str
        :returns: Encoded JWT.
        :rtype: str
        :raises RuntimeError: If no signing key is configured.
        """
        if not signing_key:
            raise RuntimeError("License signing key is not configured.")
        payload: dict[str, Any] = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in claims.items()
        }
        payload["jti"] = self.new_jti()
        payload["iat"] = utcnow()
        return pyjwt.encode(payload, signing_key, algorithm=LICENSE_ALGORITHM)

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    @staticmethod
    def _decode(token: str, secret: str, message: str) -> dict[str, Any]:
        try:
            return pyjwt.decode(
                token,
                key=secret,
                algorithms=[SESSION_ALGORITHM],
                options={"require": _REQUIRED_CLAIMS},
            )
        except pyjwt.PyJWTError as exc:
            raise UnauthorizedError(message) from exc

    def verify_access_token(self, token: str) -> dict[str, Any]:
        return self._decode(token, self.settings.access_secret, "Invalid access token")

    def verify_refresh_token(self, token: str) -> dict[str, Any]:
        return self._decode(token, self.settings.refresh_secret, "Invalid refresh token")

    # ------------------------------------------------------------------ #
    # Identifiers
    # ------------------------------------------------------------------ #

    def new_jti(self) -> str:
        return uuid4().hex

    def generate_code(self, nbytes: int) -> str:
        """Return ``nbytes`` of CSPRNG output, hex-encoded."""
        return secrets.token_hex(nbytes)

    def hash_refresh_token(self, token: str) -> str:
        """SHA-256 hex digest stored in place of the refresh token."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
