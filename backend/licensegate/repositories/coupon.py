"""Coupon ledger: coupon persistence, admin listing and dashboard counts."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from sqlalchemy import ColumnElement, Select, and_, or_, select, true, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.orm import aliased

from licensegate.models.base import utcnow
from licensegate.models.coupon import Coupon
from licensegate.models.user import User
from licensegate.repositories.base import BaseRepository, Page, Pagination, paginate_select

STATUS_ALL = "all"
STATUS_VALID = "valid"
STATUS_INVALID = "invalid"
STATUS_REDEEMED = "redeemed"
STATUS_REVOKED = "revoked"
STATUSES = (STATUS_ALL, STATUS_VALID, STATUS_INVALID, STATUS_REDEEMED, STATUS_REVOKED)


def status_clause(status: str) -> ColumnElement[bool]:
    """Return the predicate selecting coupons in ``status``.

    ``valid`` means still redeemable (neither redeemed nor revoked);
    ``invalid`` is its complement.

    :raises ValueError: On an unknown status.
    """
    if status == STATUS_ALL:
        return true()
    if status == STATUS_VALID:
        return and_(Coupon.is_redeemed.is_(False), Coupon.is_revoked.is_(False))
    if status == STATUS_INVALID:
        return or_(Coupon.is_redeemed.is_(True), Coupon.is_revoked.is_(True))
    if status == STATUS_REDEEMED:
        return Coupon.is_redeemed.is_(True)
    if status == STATUS_REVOKED:
        return Coupon.is_revoked.is_(True)
    raise ValueError(f"Unknown coupon status: {status!r}")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True, slots=True)
class CouponAdminFilter:
    """
    Admin listing filter.

    Range bounds are inclusive; ``None`` leaves a bound open.

    :param status: One of :data:`STATUSES`.
    :type status: str
    :param search: Case-insensitive substring over code and issuer/redeemer
        name and email.
    :type search: str | None
    """

    status: str = STATUS_ALL
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    redeemed_from: datetime | None = None
    redeemed_to: datetime | None = None
    expires_from: datetime | None = None
    expires_to: datetime | None = None


@dataclass(frozen=True, slots=True)
class CouponAdminRow:
    """A coupon joined with issuer, redeemer and revoker identity."""

    coupon: Coupon
    issued_by_name: str | None
    issued_by_email: str | None
    redeemed_by_name: str | None
    redeemed_by_email: str | None
    revoked_by_name: str | None
    revoked_by_email: str | None


class CouponRepository(BaseRepository[Coupon]):
    """Persistence-only repository for :class:`Coupon`.

    Soft-deleted coupons are invisible to lookups, listings and counts.
    """

    model = Coupon

    def _visible_clause(self) -> ColumnElement[bool]:
        return Coupon.deleted_at.is_(None)

    def _filterable_fields(self):
        return {
            "code": Coupon.code,
            "first_coupon_id": Coupon.first_coupon_id,
        }

    def _soft_delete(self, instance: Coupon) -> bool:
        instance.deleted_at = utcnow()
        return True

    # ---------------------------- Lookups ----------------------------

    def get_by_code(self, code: str) -> Coupon | None:
        """Return the visible coupon holding ``code``."""
        return self.find_one(code=code)

    def code_exists(self, code: str) -> bool:
        """Return ``True`` if any row, deleted or not, holds ``code``."""
        stmt = select(Coupon.id).where(Coupon.code == code)
        return self.session.execute(stmt.limit(1)).first() is not None

    def find_valid_coupons(self) -> list[Coupon]:
        """Return visible coupons that are still unredeemed."""
        stmt = self._select().where(Coupon.is_redeemed.is_(False))
        stmt = stmt.order_by(Coupon.created_at.desc(), Coupon.id.asc())
        return list(self.session.execute(stmt).scalars().all())

    def find_second_coupon(self, first_coupon_id: str) -> Coupon | None:
        return self.find_one(first_coupon_id=first_coupon_id)

    # ---------------------------- Writers ----------------------------

    def create_coupon(
        self,
        *,
        code: str,
        issued_by: str,
        duration: int,
        is_first_code: bool,
        first_coupon_id: str | None = None,
        reissued_from_coupon_id: str | None = None,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            issued_by=issued_by,
            duration=duration,
            is_first_code=is_first_code,
            first_coupon_id=first_coupon_id,
            reissued_from_coupon_id=reissued_from_coupon_id,
            is_redeemed=False,
            is_revoked=False,
        )
        return self.add(coupon)

    def mark_redeemed(
        self,
        coupon_id: str,
        *,
        user_id: str,
        redeemed_at: datetime,
        expires_at: datetime | None = None,
    ) -> bool:
        """Compare-and-set a coupon from redeemable to redeemed.

        The ``UPDATE`` only matches while the row is unredeemed, unrevoked and
        not deleted, so of two racing transactions exactly one sees a match.

        :returns: ``True`` when this call performed the transition.
        :rtype: bool
        """
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                Coupon.is_redeemed.is_(False),
                Coupon.is_revoked.is_(False),
                Coupon.deleted_at.is_(None),
            )
            .values(
                is_redeemed=True,
                redeemed_by=user_id,
                redeemed_at=redeemed_at,
                expires_at=expires_at,
                updated_at=redeemed_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount == 1

    def mark_revoked(
        self,
        coupon: Coupon,
        *,
        admin_id: str,
        reason: str | None,
        revoked_at: datetime,
        reissued_to_coupon_id: str | None = None,
    ) -> Coupon:
        coupon.is_revoked = True
        coupon.revoked_at = revoked_at
        coupon.revoked_by = admin_id
        coupon.revoke_reason = reason
        if reissued_to_coupon_id is not None:
            coupon.reissued_to_coupon_id = reissued_to_coupon_id
        self.flush()
        return coupon

    # ---------------------------- Admin listing ----------------------------

    def _admin_select(self, filters: CouponAdminFilter) -> Select[Any]:
        issuer = aliased(User, name="issuer")
        redeemer = aliased(User, name="redeemer")
        revoker = aliased(User, name="revoker")

        stmt = (
            select(
                Coupon,
                issuer.name,
                issuer.email,
                redeemer.name,
                redeemer.email,
                revoker.name,
                revoker.email,
            )
            .outerjoin(issuer, issuer.id == Coupon.issued_by)
            .outerjoin(redeemer, redeemer.id == Coupon.redeemed_by)
            .outerjoin(revoker, revoker.id == Coupon.revoked_by)
            .where(self._visible_clause(), status_clause(filters.status))
        )

        ranges = (
            (Coupon.created_at, filters.created_from, filters.created_to),
            (Coupon.redeemed_at, filters.redeemed_from, filters.redeemed_to),
            (Coupon.expires_at, filters.expires_from, filters.expires_to),
        )
        for column, lower, upper in ranges:
            if lower is not None:
                stmt = stmt.where(column >= lower)
            if upper is not None:
                stmt = stmt.where(column <= upper)

        term = (filters.search or "").strip()
        if term:
            pattern = f"%{_escape_like(term)}%"
            stmt = stmt.where(
                or_(
                    Coupon.code.ilike(pattern, escape="\\"),
                    issuer.name.ilike(pattern, escape="\\"),
                    issuer.email.ilike(pattern, escape="\\"),
                    redeemer.name.ilike(pattern, escape="\\"),
                    redeemer.email.ilike(pattern, escape="\\"),
                )
            )

        return stmt.order_by(Coupon.created_at.desc(), Coupon.id.asc())

    @staticmethod
    def _to_rows(raw: Sequence[Any]) -> list[CouponAdminRow]:
        return [CouponAdminRow(*row) for row in raw]

    def list_for_admin(
        self, filters: CouponAdminFilter, pagination: Pagination
    ) -> Page[CouponAdminRow]:
        """Return one page of joined admin rows, newest first."""
        page = paginate_select(
            self.session, self._admin_select(filters), pagination, scalars=False
        )
        page.items = self._to_rows(page.items)
        return page

    def list_all_for_admin(self, filters: CouponAdminFilter) -> list[CouponAdminRow]:
        """Return every matching joined admin row (CSV export)."""
        return self._to_rows(self.session.execute(self._admin_select(filters)).all())

    # ---------------------------- Dashboard counts ----------------------------

    def count_by_status(self, status: str) -> int:
        return self.count(status_clause(status))

    def count_available(self) -> int:
        """Second coupons that can still be cashed in for license time."""
        return self.count(status_clause(STATUS_VALID), Coupon.is_first_code.is_(False))

    def count_all(self) -> int:
        return self.count()
