"""Server-side login session bound to the current refresh-token digest."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from licensegate.core.extensions import db

from .base import ID_LENGTH, PKMixin, ReprMixin, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from .user import User

# Digest written at creation, before the refresh token exists.
PENDING_REFRESH_TOKEN_HASH = "pending"


class UserSession(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    One login of one user.

    Rotation rewrites ``refresh_token_hash`` and ``expires_at`` on this same
    row; sign-out deletes the row. Rows whose ``expires_at`` has passed are
    treated as absent by every repository lookup.
    """

    __tablename__ = "sessions"

    user_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    refresh_token_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, default=PENDING_REFRESH_TOKEN_HASH
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped[User] = relationship("User")

    __table_args__ = (
        Index("ix_sessions_user_id", "user_id"),
        Index("ix_sessions_refresh_token_hash", "refresh_token_hash"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    @property
    def is_pending(self) -> bool:
        return self.refresh_token_hash == PENDING_REFRESH_TOKEN_HASH
