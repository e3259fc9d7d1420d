"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from licensegate.repositories.base import (
    BaseRepository,
    Page,
    Pagination,
    paginate_select,
)
from licensegate.repositories.coupon import CouponAdminFilter, CouponAdminRow, CouponRepository
from licensegate.repositories.session import SessionRepository
from licensegate.repositories.user import UserRepository

__all__ = [
    # Base
    "BaseRepository",
    "Page",
    "Pagination",
    "paginate_select",
    # Domain
    "CouponAdminFilter",
    "CouponAdminRow",
    "CouponRepository",
    "SessionRepository",
    "UserRepository",
]
