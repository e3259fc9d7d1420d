# licensegate/services/license/service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta

from licensegate.core.config import Settings
from licensegate.models.coupon import Coupon
from licensegate.repositories.coupon import (
    STATUS_INVALID,
    STATUS_REDEEMED,
    STATUS_REVOKED,
    STATUS_VALID,
    STATUSES,
    CouponAdminFilter,
)
from licensegate.services._shared.base import BaseService
from licensegate.services._shared.errors import BadRequestError, ConflictError, NotFoundError
from licensegate.services._shared.ports.token_codec import TokenCodec
from licensegate.services.license import csv_export
from licensegate.services.license.dto import (
    CouponAdminItemOut,
    CouponAdminListOut,
    CouponAdminQueryIn,
    CouponOut,
    CouponPairOut,
    CouponStatsOut,
    DeleteOut,
    RedeemOut,
    ReissueOut,
)
from licensegate.uow.sqlalchemy_uow import (
    SQLAlchemyRepositoryContainer,
    SQLAlchemyUnitOfWork,
    current_engine,
    isolated_repositories,
)

log = logging.getLogger(__name__)

MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 100
DEFAULT_DURATION_DAYS = 30
DEFAULT_REISSUE_REASON = "Reissued"
FIRST_CODE_ACCEPTED = "First code accepted"

StatQuery = Callable[[SQLAlchemyRepositoryContainer], int]


def compute_license_expiry(
    current: datetime | None, duration_days: int, now: datetime
) -> datetime:
    """
    Return the license end after granting ``duration_days``.

    An unexpired license is extended (stacking); otherwise a fresh window
    starts at ``now``.
    """
    base = current if current is not None and current > now else now
    return base + timedelta(days=duration_days)


class LicenseService(BaseService):
    """
    Coupon issuance, chained redemption and admin coupon management.

    Coupons come in pairs: the first code grants nothing and only proves
    possession; the second code, redeemable solely by whoever redeemed the
    first, extends the user's ``license_expires_at`` by its duration. The
    redemption runs in one read-write Unit of Work and claims each coupon with
    a compare-and-set update, so two racing redemptions of one code yield
    exactly one success.
    """

    def __init__(self, *, codec: TokenCodec, settings: Settings) -> None:
        """
        :param codec: Code generator and license-token signer.
        :param settings: Code length, retry bound, signing key, stats workers.
        """
        super().__init__()
        self.codec = codec
        self.settings = settings

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def _unique_code(self, uow: SQLAlchemyUnitOfWork) -> str:
        """Draw random codes until one is unused, up to the configured bound."""
        for _ in range(self.settings.coupon_code_max_attempts):
            code = self.codec.generate_code(self.settings.coupon_code_bytes)
            if not uow.coupons.code_exists(code):
                return code
        raise ConflictError("Coupon", "Could not generate a unique coupon code")

    def create_coupon(self, duration: int, issuer_id: str) -> CouponPairOut:
        """
        Issue a first/second coupon pair.

        :param duration: Days granted by the second coupon (``1..100``).
        :param issuer_id: Admin issuing the pair.
        :returns: Both coupons.
        :raises BadRequestError: On an out-of-range duration.
        """
        if not MIN_DURATION_DAYS <= int(duration) <= MAX_DURATION_DAYS:
            raise BadRequestError(
                f"Duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days"
            )

        with self.rw_uow() as uow:
            first = uow.coupons.create_coupon(
                code=self._unique_code(uow),
                issued_by=issuer_id,
                duration=0,
                is_first_code=True,
            )
            second = uow.coupons.create_coupon(
                code=self._unique_code(uow),
                issued_by=issuer_id,
                duration=int(duration),
                is_first_code=False,
                first_coupon_id=first.id,
            )
            out = CouponPairOut(
                first_coupon=CouponOut.from_model(first),
                second_coupon=CouponOut.from_model(second),
            )

        log.info(
            "license.coupon_created",
            extra={"coupon_id": out.second_coupon.id, "admin_id": issuer_id},
        )
        return out

    # ------------------------------------------------------------------ #
    # Redemption
    # ------------------------------------------------------------------ #

    @staticmethod
    def _ensure_redeemable(coupon: Coupon) -> None:
        if coupon.is_redeemed:
            raise BadRequestError("Coupon already redeemed")
        if coupon.is_revoked:
            raise BadRequestError("Coupon has been revoked")

    @staticmethod
    def _ensure_chain(first: Coupon | None, user_id: str) -> None:
        if first is None:
            raise BadRequestError("First coupon not found")
        if not first.is_redeemed:
            raise BadRequestError("First code must be redeemed first")
        if first.redeemed_by != user_id:
            raise BadRequestError("First code was redeemed by another user")

    @staticmethod
    def _claim(
        uow: SQLAlchemyUnitOfWork,
        coupon: Coupon,
        user_id: str,
        now: datetime,
        expires_at: datetime | None = None,
    ) -> None:
        claimed = uow.coupons.mark_redeemed(
            coupon.id, user_id=user_id, redeemed_at=now, expires_at=expires_at
        )
        if not claimed:
            # Lost the race against a concurrent redemption.
            raise BadRequestError("Coupon already redeemed")

    def redeem_coupon(self, code: str, user_id: str) -> RedeemOut:
        """
        Redeem one code of a pair.

        Steps (single transaction)
        --------------------------
        1. Load the coupon by code; ``NotFoundError`` if absent.
        2. Reject redeemed or revoked coupons.
        3. First code: claim it and return ``"First code accepted"``.
        4. Second code: the linked first code must exist and have been
           redeemed by this same user.
        5. Extend (or start) the license by ``duration`` days.
        6. Claim the coupon and store the new expiry on the user.
        7. Sign the license token; a signing failure aborts the grant.

        :raises NotFoundError: Unknown code or user.
        :raises BadRequestError: Any redemption rule violation.
        """
        with self.rw_uow() as uow:
            coupon = uow.coupons.get_by_code((code or "").strip())
            if coupon is None:
                raise NotFoundError("Coupon", code)
            self._ensure_redeemable(coupon)

            user = uow.users.get_for_update(user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            now = self.now_utc()
            if coupon.is_first_code:
                self._claim(uow, coupon, user.id, now)
                result = RedeemOut(message=FIRST_CODE_ACCEPTED)
            else:
                if coupon.first_coupon_id:
                    self._ensure_chain(uow.coupons.get(coupon.first_coupon_id), user.id)

                expires_at = compute_license_expiry(user.license_expires_at, coupon.duration, now)
                self._claim(uow, coupon, user.id, now, expires_at)
                uow.users.set_license_expiry(user, expires_at)

                license_token = self.codec.issue_license_token(
                    {"id": user.id, "expiresAt": expires_at},
                    self.settings.license_private_key,
                )
                result = RedeemOut(license=license_token, expires_at=expires_at)
            coupon_id = coupon.id

        log.info(
            "license.coupon_redeemed",
            extra={"coupon_id": coupon_id, "user_id": user_id},
        )
        return result

    # ------------------------------------------------------------------ #
    # Admin commands
    # ------------------------------------------------------------------ #

    def _load_for_admin(self, uow: SQLAlchemyUnitOfWork, coupon_id: str) -> Coupon:
        self.ensure_id(coupon_id, label="coupon")
        coupon = uow.coupons.get_for_update(coupon_id, include_hidden=True)
        if coupon is None:
            raise NotFoundError("Coupon", coupon_id)
        if coupon.is_deleted:
            raise BadRequestError("Coupon has been deleted")
        return coupon

    def revoke_coupon_for_admin(
        self, coupon_id: str, admin_id: str, reason: str | None = None
    ) -> CouponOut:
        """
        Revoke an unredeemed coupon.

        :raises BadRequestError: If the coupon is redeemed, revoked or deleted.
        """
        with self.rw_uow() as uow:
            coupon = self._load_for_admin(uow, coupon_id)
            if coupon.is_redeemed:
                raise BadRequestError("Cannot revoke a redeemed coupon")
            if coupon.is_revoked:
                raise BadRequestError("Coupon already revoked")

            uow.coupons.mark_revoked(
                coupon, admin_id=admin_id, reason=reason, revoked_at=self.now_utc()
            )
            out = CouponOut.from_model(coupon)

        log.info("license.coupon_revoked", extra={"coupon_id": coupon_id, "admin_id": admin_id})
        return out

    def reissue_coupon_for_admin(
        self, coupon_id: str, admin_id: str, reason: str | None = None
    ) -> ReissueOut:
        """
        Replace a second coupon with a fresh code.

        The new coupon keeps the old ``duration`` and ``first_coupon_id``;
        the old one is revoked and points to its replacement.

        :raises BadRequestError: If the coupon is redeemed, revoked, deleted
            or a first code.
        """
        with self.rw_uow() as uow:
            old = self._load_for_admin(uow, coupon_id)
            if old.is_redeemed:
                raise BadRequestError("Cannot reissue a redeemed coupon")
            if old.is_revoked:
                raise BadRequestError("Cannot reissue a revoked coupon")
            if old.is_first_code:
                raise BadRequestError("Cannot reissue a first coupon")

            new = uow.coupons.create_coupon(
                code=self._unique_code(uow),
                issued_by=admin_id,
                duration=old.duration,
                is_first_code=False,
                first_coupon_id=old.first_coupon_id,
                reissued_from_coupon_id=old.id,
            )
            uow.coupons.mark_revoked(
                old,
                admin_id=admin_id,
                reason=reason or DEFAULT_REISSUE_REASON,
                revoked_at=self.now_utc(),
                reissued_to_coupon_id=new.id,
            )
            out = ReissueOut(
                old_coupon=CouponOut.from_model(old), new_coupon=CouponOut.from_model(new)
            )

        log.info(
            "license.coupon_reissued",
            extra={"coupon_id": coupon_id, "admin_id": admin_id},
        )
        return out

    def delete_coupon_for_admin(self, coupon_id: str) -> DeleteOut:
        """
        Soft-delete a coupon that was neither redeemed nor reissued.

        :raises BadRequestError: If the coupon is redeemed, reissued or
            already deleted.
        """
        with self.rw_uow() as uow:
            self.ensure_id(coupon_id, label="coupon")
            coupon = uow.coupons.get_for_update(coupon_id, include_hidden=True)
            if coupon is None:
                raise NotFoundError("Coupon", coupon_id)
            if coupon.is_deleted:
                raise BadRequestError("Coupon already deleted")
            if coupon.is_redeemed:
                raise BadRequestError("Cannot delete a redeemed coupon")
            if coupon.reissued_to_coupon_id:
                raise BadRequestError("Cannot delete a reissued coupon")

            uow.coupons.delete(coupon)

        log.info("license.coupon_deleted", extra={"coupon_id": coupon_id})
        return DeleteOut(deleted=True)

    # ------------------------------------------------------------------ #
    # Admin queries
    # ------------------------------------------------------------------ #

    @staticmethod
    def _to_filter(query: CouponAdminQueryIn) -> CouponAdminFilter:
        if query.status not in STATUSES:
            raise BadRequestError("Invalid status")
        ranges = (
            (query.created_from, query.created_to),
            (query.redeemed_from, query.redeemed_to),
            (query.expires_from, query.expires_to),
        )
        for lower, upper in ranges:
            if lower is not None and upper is not None and lower > upper:
                raise BadRequestError("Invalid date range")
        return CouponAdminFilter(
            status=query.status,
            search=query.search,
            created_from=query.created_from,
            created_to=query.created_to,
            redeemed_from=query.redeemed_from,
            redeemed_to=query.redeemed_to,
            expires_from=query.expires_from,
            expires_to=query.expires_to,
        )

    def list_coupons_for_admin(self, query: CouponAdminQueryIn) -> CouponAdminListOut:
        """Return one page of coupons with issuer/redeemer/revoker identity."""
        filters = self._to_filter(query)
        pagination = self.ensure_pagination(page=query.page, limit=query.limit)

        with self.ro_uow() as uow:
            page = uow.coupons.list_for_admin(filters, pagination)
            return CouponAdminListOut(
                items=[CouponAdminItemOut.from_row(row) for row in page.items],
                total=page.total,
                page=page.page,
                limit=page.limit,
                total_pages=page.total_pages,
            )

    def list_redeemed_coupons_for_admin(self, query: CouponAdminQueryIn) -> CouponAdminListOut:
        """Same as :meth:`list_coupons_for_admin` with the status forced to redeemed."""
        return self.list_coupons_for_admin(replace(query, status=STATUS_REDEEMED))

    def _stat_queries(self, now: datetime) -> dict[str, StatQuery]:
        return {
            "total_coupons": lambda repos: repos.coupons.count_all(),
            "valid_coupons": lambda repos: repos.coupons.count_by_status(STATUS_VALID),
            "invalid_coupons": lambda repos: repos.coupons.count_by_status(STATUS_INVALID),
            "redeemed_coupons": lambda repos: repos.coupons.count_by_status(STATUS_REDEEMED),
            "revoked_coupons": lambda repos: repos.coupons.count_by_status(STATUS_REVOKED),
            "available_coupons": lambda repos: repos.coupons.count_available(),
            "active_licenses": lambda repos: repos.users.count_active_licenses(now),
            "expired_licenses": lambda repos: repos.users.count_expired_licenses(now),
        }

    def get_coupon_stats_for_admin(self) -> CouponStatsOut:
        """
        Compute dashboard counts.

        Each count is an independent read. With ``stats_max_workers > 1`` they
        run concurrently, each on its own session; the totals may therefore
        straddle a concurrent write.
        """
        queries = self._stat_queries(self.now_utc())
        workers = min(self.settings.stats_max_workers, len(queries))

        if workers <= 1:
            with self.ro_uow() as uow:
                counts = {key: query(uow) for key, query in queries.items()}
            return CouponStatsOut(**counts)

        engine = current_engine()

        def _run(query: StatQuery) -> int:
            with isolated_repositories(engine) as repos:
                return query(repos)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {key: executor.submit(_run, query) for key, query in queries.items()}
            counts = {key: future.result() for key, future in futures.items()}
        return CouponStatsOut(**counts)

    # ------------------------------------------------------------------ #
    # CSV exports
    # ------------------------------------------------------------------ #

    def export_coupons_csv_for_admin(self, query: CouponAdminQueryIn) -> str:
        """Render every coupon matching ``query`` (pagination ignored) as CSV."""
        filters = self._to_filter(query)
        with self.ro_uow() as uow:
            rows = uow.coupons.list_all_for_admin(filters)
            return csv_export.coupons_to_csv(rows)

    def export_coupon_stats_csv_for_admin(self) -> str:
        """Render the dashboard counts as ``metric,value`` CSV lines."""
        return csv_export.stats_to_csv(self.get_coupon_stats_for_admin())
