"""CSV rendering for admin coupon exports."""

from __future__ import annotations

import csv
from collections.abc import Iterable
from datetime import datetime
from io import StringIO
from typing import Any

from licensegate.repositories.coupon import CouponAdminRow
from licensegate.services.license.dto import CouponStatsOut

COUPON_COLUMNS = (
    "couponId",
    "code",
    "status",
    "durationDays",
    "isFirstCode",
    "createdAt",
    "redeemedAt",
    "expiresAt",
    "issuedByName",
    "issuedByEmail",
    "redeemedByName",
    "redeemedByEmail",
    "revokedAt",
    "revokedByName",
    "revokedByEmail",
    "revokeReason",
)

STATS_COLUMNS = ("metric", "value")

STATS_LABELS = (
    ("totalCoupons", "total_coupons"),
    ("validCoupons", "valid_coupons"),
    ("invalidCoupons", "invalid_coupons"),
    ("redeemedCoupons", "redeemed_coupons"),
    ("revokedCoupons", "revoked_coupons"),
    ("availableCoupons", "available_coupons"),
    ("activeLicenses", "active_licenses"),
    ("expiredLicenses", "expired_licenses"),
)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _render(header: Iterable[str], rows: Iterable[Iterable[Any]]) -> str:
    # QUOTE_ALL quotes every field; embedded quotes are doubled by csv itself.
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(list(header))
    for row in rows:
        writer.writerow([_cell(value) for value in row])
    return output.getvalue()


def coupons_to_csv(rows: Iterable[CouponAdminRow]) -> str:
    """Render admin rows as CSV, one line per coupon after the header."""
    return _render(
        COUPON_COLUMNS,
        (
            (
                row.coupon.id,
                row.coupon.code,
                row.coupon.status,
                row.coupon.duration,
                row.coupon.is_first_code,
                row.coupon.created_at,
                row.coupon.redeemed_at,
                row.coupon.expires_at,
                row.issued_by_name,
                row.issued_by_email,
                row.redeemed_by_name,
                row.redeemed_by_email,
                row.coupon.revoked_at,
                row.revoked_by_name,
                row.revoked_by_email,
                row.coupon.revoke_reason,
            )
            for row in rows
        ),
    )


def stats_to_csv(stats: CouponStatsOut) -> str:
    """Render dashboard counts as ``metric,value`` lines."""
    return _render(
        STATS_COLUMNS,
        ((label, getattr(stats, attr)) for label, attr in STATS_LABELS),
    )
