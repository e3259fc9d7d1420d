"""Session ledger: login sessions keyed by id, user and refresh-token digest."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult

from licensegate.models.session import PENDING_REFRESH_TOKEN_HASH, UserSession
from licensegate.repositories.base import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    """Persistence-only repository for :class:`UserSession`.

    Every ``*_valid_*`` lookup applies ``expires_at > now``; an expired row is
    indistinguishable from a missing one. Deletion is always a hard delete.
    """

    model = UserSession

    def _filterable_fields(self):
        return {"user_id": UserSession.user_id}

    # ---------------------------- Creation ----------------------------

    def create_session(
        self,
        user_id: str,
        expires_at: datetime,
        *,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> UserSession:
        """Insert a session in the pending state and flush to obtain its id.

        The refresh-token digest is written later with
        :meth:`set_refresh_token_hash`, once the token embedding this id exists.
        """
        session_row = UserSession(
            user_id=user_id,
            expires_at=expires_at,
            refresh_token_hash=PENDING_REFRESH_TOKEN_HASH,
            user_agent=user_agent[:512] if user_agent else None,
            ip=ip,
        )
        return self.add(session_row)

    # ---------------------------- Lookups ----------------------------

    def get_session(self, session_id: str) -> UserSession | None:
        """Return the row regardless of expiry (admin/debug use)."""
        return self.get(session_id)

    def get_valid_session(self, session_id: str, now: datetime) -> UserSession | None:
        """Return the session when it exists and has not expired."""
        stmt = select(UserSession).where(
            UserSession.id == session_id,
            UserSession.expires_at > now,
        )
        return cast(UserSession | None, self.session.execute(stmt).scalars().first())

    def find_by_user_id(self, user_id: str) -> list[UserSession]:
        return self.list(filters={"user_id": user_id}, order_by=(UserSession.created_at.desc(),))

    def find_valid_sessions_by_user_id(self, user_id: str, now: datetime) -> list[UserSession]:
        """Return the user's unexpired sessions, newest first."""
        stmt = (
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.expires_at > now)
            .order_by(UserSession.created_at.desc(), UserSession.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def find_valid_session_by_hash(self, digest: str, now: datetime) -> UserSession | None:
        """Return the unexpired session currently holding ``digest``."""
        stmt = select(UserSession).where(
            UserSession.refresh_token_hash == digest,
            UserSession.expires_at > now,
        )
        return cast(UserSession | None, self.session.execute(stmt).scalars().first())

    # ---------------------------- Updates ----------------------------

    def set_refresh_token_hash(self, session_row: UserSession, digest: str) -> UserSession:
        """Move a pending session to active by storing its first digest."""
        session_row.refresh_token_hash = digest
        self.flush()
        return session_row

    def rotate_refresh_token_hash(
        self,
        session_id: str,
        *,
        expected_hash: str,
        new_hash: str,
        expires_at: datetime,
    ) -> bool:
        """Compare-and-set the digest of one session row.

        :returns: ``False`` when another rotation already replaced
            ``expected_hash`` (or the row is gone).
        :rtype: bool
        """
        stmt = (
            update(UserSession)
            .where(
                UserSession.id == session_id,
                UserSession.refresh_token_hash == expected_hash,
            )
            .values(refresh_token_hash=new_hash, expires_at=expires_at)
            .execution_options(synchronize_session="fetch")
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount == 1

    # ---------------------------- Deletion ----------------------------

    def delete_session(self, session_id: str) -> bool:
        """Hard-delete one session. Returns ``True`` when a row was removed."""
        stmt = (
            delete(UserSession)
            .where(UserSession.id == session_id)
            .execution_options(synchronize_session="fetch")
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount > 0

    def delete_user_sessions(self, user_id: str) -> int:
        """Hard-delete every session of a user; returns the number removed."""
        stmt = (
            delete(UserSession)
            .where(UserSession.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)

    def delete_expired_sessions(self, now: datetime) -> int:
        """Hard-delete sessions whose ``expires_at`` is not after ``now``."""
        stmt = (
            delete(UserSession)
            .where(UserSession.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)
