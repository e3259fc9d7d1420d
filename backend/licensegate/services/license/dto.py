# licensegate/services/license/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from licensegate.models.coupon import Coupon
from licensegate.repositories.coupon import STATUS_ALL, CouponAdminRow

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class CouponAdminQueryIn:
    """
    Admin listing/export query.

    Date bounds are inclusive; ``None`` leaves a bound open.

    :param status: ``all`` | ``valid`` | ``invalid`` | ``redeemed`` | ``revoked``.
    :type status: str
    :param search: Free text matched against code and issuer/redeemer identity.
    :type search: str | None
    :param page: 1-based page number (clamped).
    :type page: int
    :param limit: Page size (clamped to ``1..100``).
    :type limit: int
    """

    status: str = STATUS_ALL
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    redeemed_from: datetime | None = None
    redeemed_to: datetime | None = None
    expires_from: datetime | None = None
    expires_to: datetime | None = None
    page: int = 1
    limit: int = 20


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class CouponOut:
    """Full public view of one coupon."""

    id: str
    code: str
    issued_by: str
    duration: int
    is_first_code: bool
    first_coupon_id: str | None
    is_redeemed: bool
    redeemed_by: str | None
    redeemed_at: datetime | None
    expires_at: datetime | None
    is_revoked: bool
    revoked_at: datetime | None
    revoked_by: str | None
    revoke_reason: str | None
    reissued_from_coupon_id: str | None
    reissued_to_coupon_id: str | None
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, coupon: Coupon) -> CouponOut:
        return cls(
            id=coupon.id,
            code=coupon.code,
            issued_by=coupon.issued_by,
            duration=coupon.duration,
            is_first_code=coupon.is_first_code,
            first_coupon_id=coupon.first_coupon_id,
            is_redeemed=coupon.is_redeemed,
            redeemed_by=coupon.redeemed_by,
            redeemed_at=coupon.redeemed_at,
            expires_at=coupon.expires_at,
            is_revoked=coupon.is_revoked,
            revoked_at=coupon.revoked_at,
            revoked_by=coupon.revoked_by,
            revoke_reason=coupon.revoke_reason,
            reissued_from_coupon_id=coupon.reissued_from_coupon_id,
            reissued_to_coupon_id=coupon.reissued_to_coupon_id,
            status=coupon.status,
            created_at=coupon.created_at,
            updated_at=coupon.updated_at,
        )


@dataclass(frozen=True, slots=True)
class CouponPairOut:
    """First coupon (proves possession) and its linked second coupon."""

    first_coupon: CouponOut
    second_coupon: CouponOut


@dataclass(frozen=True, slots=True)
class RedeemOut:
    """
    Redemption result.

    A first code yields only ``message``; a second code yields the signed
    ``license`` and its ``expires_at``.
    """

    message: str | None = None
    license: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReissueOut:
    old_coupon: CouponOut
    new_coupon: CouponOut


@dataclass(frozen=True, slots=True)
class DeleteOut:
    deleted: bool


@dataclass(frozen=True, slots=True)
class CouponAdminUserOut:
    id: str
    name: str | None
    email: str | None


@dataclass(frozen=True, slots=True)
class CouponAdminItemOut:
    """One admin listing row with issuer, redeemer and revoker identity."""

    id: str
    code: str
    duration: int
    status: str
    is_redeemed: bool
    is_revoked: bool
    is_first_code: bool
    first_coupon_id: str | None
    created_at: datetime
    redeemed_at: datetime | None
    expires_at: datetime | None
    revoked_at: datetime | None
    revoke_reason: str | None
    issued_by: CouponAdminUserOut | None
    redeemed_by: CouponAdminUserOut | None
    revoked_by: CouponAdminUserOut | None

    @classmethod
    def from_row(cls, row: CouponAdminRow) -> CouponAdminItemOut:
        coupon = row.coupon

        def _user(user_id: str | None, name: str | None, email: str | None):
            if user_id is None:
                return None
            return CouponAdminUserOut(id=user_id, name=name, email=email)

        return cls(
            id=coupon.id,
            code=coupon.code,
            duration=coupon.duration,
            status=coupon.status,
            is_redeemed=coupon.is_redeemed,
            is_revoked=coupon.is_revoked,
            is_first_code=coupon.is_first_code,
            first_coupon_id=coupon.first_coupon_id,
            created_at=coupon.created_at,
            redeemed_at=coupon.redeemed_at,
            expires_at=coupon.expires_at,
            revoked_at=coupon.revoked_at,
            revoke_reason=coupon.revoke_reason,
            issued_by=_user(coupon.issued_by, row.issued_by_name, row.issued_by_email),
            redeemed_by=_user(coupon.redeemed_by, row.redeemed_by_name, row.redeemed_by_email),
            revoked_by=_user(coupon.revoked_by, row.revoked_by_name, row.revoked_by_email),
        )


@dataclass(frozen=True, slots=True)
class CouponAdminListOut:
    """Paginated admin listing: ``{items, total, page, limit, total_pages}``."""

    items: list[CouponAdminItemOut]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class CouponStatsOut:
    """Dashboard counts; each one comes from its own query."""

    total_coupons: int
    valid_coupons: int
    invalid_coupons: int
    redeemed_coupons: int
    revoked_coupons: int
    available_coupons: int
    active_licenses: int
    expired_licenses: int
