from licensegate.models.coupon import Coupon, CouponStatus
from licensegate.models.session import PENDING_REFRESH_TOKEN_HASH, UserSession
from licensegate.models.user import AuthProvider, User, UserAuthMethod, UserRole

__all__ = [
    "AuthProvider",
    "Coupon",
    "CouponStatus",
    "PENDING_REFRESH_TOKEN_HASH",
    "User",
    "UserAuthMethod",
    "UserRole",
    "UserSession",
]
