"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ProfileSchema,
    SessionSchema,
    SignInSchema,
    SignUpSchema,
    TokenResponseSchema,
)
from .common import DateOrDateTime
from .license import (
    CouponAdminItemSchema,
    CouponAdminListSchema,
    CouponAdminQuerySchema,
    CouponPairSchema,
    CouponReasonSchema,
    CouponSchema,
    CouponStatsSchema,
    CreateCouponSchema,
    DeleteResultSchema,
    RedeemCouponSchema,
    RedeemResultSchema,
    ReissueResultSchema,
)

__all__ = [
    "SignUpSchema",
    "SignInSchema",
    "TokenResponseSchema",
    "ProfileSchema",
    "SessionSchema",
    "DateOrDateTime",
    "CreateCouponSchema",
    "RedeemCouponSchema",
    "CouponReasonSchema",
    "CouponAdminQuerySchema",
    "CouponSchema",
    "CouponPairSchema",
    "RedeemResultSchema",
    "ReissueResultSchema",
    "DeleteResultSchema",
    "CouponAdminItemSchema",
    "CouponAdminListSchema",
    "CouponStatsSchema",
]
