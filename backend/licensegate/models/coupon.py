"""Coupon model for the two-stage license activation chain."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from licensegate.core.extensions import db

from .base import ID_LENGTH, PKMixin, ReprMixin, SoftDeleteMixin, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from .user import User

REVOKE_REASON_MAX_LENGTH = 300


class CouponStatus:
    """Row-level status labels used by listings and exports."""

    VALID = "valid"
    REDEEMED = "redeemed"
    REVOKED = "revoked"


class Coupon(PKMixin, ReprMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    """
    One code of a first/second coupon pair.

    A first coupon (``is_first_code``) grants nothing and only proves
    possession. Its second coupon points back through ``first_coupon_id`` and
    carries the ``duration`` in days. ``expires_at`` is the license end
    computed when the second coupon is redeemed.

    Terminal states: redeemed, revoked (optionally replaced through
    ``reissued_to_coupon_id``) or soft-deleted.
    """

    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_by: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_first_code: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    first_coupon_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )

    is_redeemed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    redeemed_by: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    redeemed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    is_revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    revoke_reason: Mapped[str | None] = mapped_column(
        String(REVOKE_REASON_MAX_LENGTH), nullable=True
    )

    reissued_from_coupon_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )
    reissued_to_coupon_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )

    issuer: Mapped[User] = relationship("User", foreign_keys=[issued_by])
    redeemer: Mapped[User | None] = relationship("User", foreign_keys=[redeemed_by])
    revoker: Mapped[User | None] = relationship("User", foreign_keys=[revoked_by])

    __table_args__ = (
        UniqueConstraint("code", name="uq_coupons_code"),
        CheckConstraint("duration >= 0", name="duration_non_negative"),
        CheckConstraint(
            "NOT (is_redeemed AND reissued_to_coupon_id IS NOT NULL)",
            name="redeemed_or_reissued",
        ),
        Index("ix_coupons_first_coupon_id", "first_coupon_id"),
        Index("ix_coupons_created_at", "created_at"),
        Index("ix_coupons_redeemed_by", "redeemed_by"),
    )

    @property
    def status(self) -> str:
        """Return the row status label (revoked wins over redeemed)."""
        if self.is_revoked:
            return CouponStatus.REVOKED
        if self.is_redeemed:
            return CouponStatus.REDEEMED
        return CouponStatus.VALID
