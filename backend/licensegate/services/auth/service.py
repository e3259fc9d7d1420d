# licensegate/services/auth/service.py
from __future__ import annotations

import hmac
import logging
from typing import Any

from licensegate.core.config import Settings
from licensegate.models.base import is_valid_id
from licensegate.models.user import User, UserRole
from licensegate.services._shared.base import BaseService
from licensegate.services._shared.errors import ConflictError, UnauthorizedError
from licensegate.services._shared.ports.token_codec import TokenCodec
from licensegate.services.auth.dto import (
    AuthenticatedUserOut,
    RefreshIn,
    SessionContextIn,
    SessionOut,
    SignUpIn,
    TokenPairOut,
)
from licensegate.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "You are not authorized to access this resource"


class AuthService(BaseService):
    """
    Session/token lifecycle (sign-up / sign-in / refresh / sign-out).

    Every login owns one ``sessions`` row. The row is created *pending*, the
    refresh token embedding its id is minted, and only then is the token's
    digest written, which moves the session to *active*. Refresh rotates the
    digest of the same row with a compare-and-set, so a refresh token works
    exactly once. Sign-out deletes the row; access tokens already issued stay
    valid until their own expiry.
    """

    def __init__(self, *, codec: TokenCodec, settings: Settings) -> None:
        """
        Initialize the service with its dependencies.

        :param codec: Adapter for issuing/verifying JWTs.
        :param settings: Token lifetimes.
        """
        super().__init__()
        self.codec = codec
        self.settings = settings

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in whole seconds."""
        return int(self.settings.access_expires.total_seconds())

    # ------------------------------------------------------------------ #
    # Session opening (shared by sign-up and sign-in)
    # ------------------------------------------------------------------ #

    def _open_session(
        self, uow: SQLAlchemyUnitOfWork, user: User, ctx: SessionContextIn
    ) -> tuple[str, TokenPairOut]:
        """Create a session row and mint its token pair inside ``uow``."""
        now = self.now_utc()
        row = uow.sessions.create_session(
            user.id,
            now + self.settings.refresh_expires,
            user_agent=ctx.user_agent,
            ip=ctx.ip,
        )

        # The refresh token embeds the session id, so the digest comes second.
        claims: dict[str, Any] = {"id": user.id, "email": user.email, "sessionId": row.id}
        refresh_token = self.codec.issue_refresh_token(claims)
        uow.sessions.set_refresh_token_hash(row, self.codec.hash_refresh_token(refresh_token))
        access_token = self.codec.issue_access_token(claims)

        return row.id, TokenPairOut(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_expires_in,
        )

    # ------------------------------------------------------------------ #
    # Sign-up / sign-in
    # ------------------------------------------------------------------ #

    def sign_up(self, dto: SignUpIn, ctx: SessionContextIn | None = None) -> TokenPairOut:
        """
        Register a local user and open their first session.

        :param dto: Sign-up input.
        :param ctx: Client metadata for the session row.
        :returns: Access/refresh token pair.
        :raises ConflictError: If the email or WhatsApp number is taken.
        """
        with self.rw_uow() as uow:
            if uow.users.exists_by_email(dto.email):
                raise ConflictError("User", "User already exists")
            if dto.whatsapp_number and uow.users.exists_by_whatsapp_number(dto.whatsapp_number):
                raise ConflictError("User", "WhatsApp number already in use")

            user = uow.users.create_user(
                email=dto.email,
                name=dto.name,
                password=dto.password,
                whatsapp_number=dto.whatsapp_number,
                governorate=dto.governorate,
                education_administration=dto.education_administration,
                subjects=list(dto.subjects),
                schools=list(dto.schools),
                grades=list(dto.grades),
            )
            session_id, pair = self._open_session(uow, user, ctx or SessionContextIn())
            user_id = user.id

        log.info("auth.sign_up", extra={"user_id": user_id, "session_id": session_id})
        return pair

    def sign_in(self, user_id: str, ctx: SessionContextIn | None = None) -> TokenPairOut:
        """
        Open a new session for an already-authenticated user.

        Every call creates a distinct session, so a user may hold several.

        :raises UnauthorizedError: If the user no longer exists.
        """
        with self.rw_uow() as uow:
            user = uow.users.get(user_id) if is_valid_id(user_id) else None
            if user is None:
                raise UnauthorizedError("User not found")
            session_id, pair = self._open_session(uow, user, ctx or SessionContextIn())

        log.info("auth.sign_in", extra={"user_id": user_id, "session_id": session_id})
        return pair

    def create_admin(self, email: str, name: str, password: str) -> str:
        """
        Provision an administrator with a local password; no session is opened.

        :returns: The new user's id.
        :raises ConflictError: If the email is taken.
        """
        with self.rw_uow() as uow:
            if uow.users.exists_by_email(email):
                raise ConflictError("User", "User already exists")
            user = uow.users.create_user(
                email=email, name=name, password=password, role=UserRole.ADMIN
            )
            user_id = user.id

        log.info("auth.admin_created", extra={"user_id": user_id})
        return user_id

    def validate_user(self, email: str, password: str) -> User | None:
        """
        Return the user whose local password matches, else ``None``.

        "No such user" and "wrong password" are indistinguishable here; the
        caller decides how to report the failure.
        """
        with self.ro_uow() as uow:
            return uow.users.authenticate(email, password)

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - The token must verify against the refresh secret and carry ``sessionId``.
        - Its digest must equal the digest stored on the (unexpired) session.
        - The new digest replaces the old one with a compare-and-set, so two
          concurrent refreshes with the same token cannot both succeed.

        :raises UnauthorizedError: On any failed check.
        """
        claims = self.codec.verify_refresh_token(dto.refresh_token)
        session_id = claims.get("sessionId")
        if not session_id:
            raise UnauthorizedError("Session ID missing from token")
        user_id = str(claims.get("id") or "")

        with self.rw_uow() as uow:
            user = uow.users.get(user_id) if is_valid_id(user_id) else None
            if user is None:
                raise UnauthorizedError("User not found")

            now = self.now_utc()
            row = uow.sessions.get_valid_session(str(session_id), now)
            if row is None or row.user_id != user.id:
                raise UnauthorizedError("Session not found")

            presented = self.codec.hash_refresh_token(dto.refresh_token)
            if not hmac.compare_digest(presented, row.refresh_token_hash):
                log.warning(
                    "auth.refresh_rejected",
                    extra={"user_id": user.id, "session_id": row.id},
                )
                raise UnauthorizedError("Invalid refresh token")

            new_claims: dict[str, Any] = {
                "id": user.id,
                "email": user.email,
                "sessionId": row.id,
            }
            refresh_token = self.codec.issue_refresh_token(new_claims)
            access_token = self.codec.issue_access_token(new_claims)

            rotated = uow.sessions.rotate_refresh_token_hash(
                row.id,
                expected_hash=presented,
                new_hash=self.codec.hash_refresh_token(refresh_token),
                expires_at=now + self.settings.refresh_expires,
            )
            if not rotated:
                raise UnauthorizedError("Invalid refresh token")

        log.info("auth.refresh", extra={"user_id": user_id, "session_id": str(session_id)})
        return TokenPairOut(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_expires_in,
        )

    # ------------------------------------------------------------------ #
    # Sign-out
    # ------------------------------------------------------------------ #

    def sign_out(self, session_id: str) -> None:
        """
        Hard-delete the session so its refresh token can never rotate again.

        :raises UnauthorizedError: If the session is already gone or expired.
        """
        with self.rw_uow() as uow:
            row = uow.sessions.get_valid_session(session_id, self.now_utc())
            if row is None:
                raise UnauthorizedError("Session not found")
            uow.sessions.delete_session(row.id)

        log.info("auth.sign_out", extra={"session_id": session_id})

    def sign_out_everywhere(self, user_id: str) -> int:
        """Delete every session of ``user_id``; returns how many were removed."""
        with self.rw_uow() as uow:
            removed = uow.sessions.delete_user_sessions(user_id)

        log.info("auth.sign_out_everywhere", extra={"user_id": user_id, "count": removed})
        return removed

    # ------------------------------------------------------------------ #
    # Access-token authentication
    # ------------------------------------------------------------------ #

    def authenticate(self, access_token: str) -> AuthenticatedUserOut:
        """
        Resolve the caller behind an access token.

        The session is not consulted: a signed-out session's access token
        keeps working until it expires.

        :raises UnauthorizedError: On a bad token or a missing user.
        """
        claims = self.codec.verify_access_token(access_token)
        user_id = str(claims.get("id") or "")

        with self.ro_uow() as uow:
            user = uow.users.get(user_id) if is_valid_id(user_id) else None
            if user is None:
                raise UnauthorizedError(ACCESS_DENIED_MESSAGE)
            return AuthenticatedUserOut(
                id=user.id,
                email=user.email,
                name=user.name,
                role=user.role.value,
                session_id=claims.get("sessionId"),
                whatsapp_number=user.whatsapp_number,
                license_expires_at=user.license_expires_at,
                created_at=user.created_at,
            )

    # ------------------------------------------------------------------ #
    # Session housekeeping
    # ------------------------------------------------------------------ #

    def list_sessions(
        self, user_id: str, *, current_session_id: str | None = None
    ) -> list[SessionOut]:
        """Return the user's unexpired sessions, newest first."""
        with self.ro_uow() as uow:
            rows = uow.sessions.find_valid_sessions_by_user_id(user_id, self.now_utc())
            return [
                SessionOut(
                    id=row.id,
                    created_at=row.created_at,
                    expires_at=row.expires_at,
                    user_agent=row.user_agent,
                    ip=row.ip,
                    current=row.id == current_session_id,
                )
                for row in rows
            ]

    def reap_expired_sessions(self) -> int:
        """Hard-delete every expired session row."""
        with self.rw_uow() as uow:
            removed = uow.sessions.delete_expired_sessions(self.now_utc())

        log.info("auth.sessions_reaped", extra={"count": removed})
        return removed
