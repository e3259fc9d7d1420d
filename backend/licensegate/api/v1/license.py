"""Coupon redemption and admin coupon management endpoints."""

from __future__ import annotations

from flask import Blueprint, Response, request

from licensegate.api.deps import current_user, envelope, require_auth, require_roles, timing
from licensegate.core.container import current_services
from licensegate.models.user import UserRole
from licensegate.schemas import (
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

bp = Blueprint("license", __name__, url_prefix="/license")

create_schema = CreateCouponSchema()
redeem_schema = RedeemCouponSchema()
reason_schema = CouponReasonSchema()
admin_query_schema = CouponAdminQuerySchema()
coupon_schema = CouponSchema()
pair_schema = CouponPairSchema()
redeem_result_schema = RedeemResultSchema()
reissue_result_schema = ReissueResultSchema()
delete_result_schema = DeleteResultSchema()
admin_list_schema = CouponAdminListSchema()
stats_schema = CouponStatsSchema()


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ------------------------------ User flows -------------------------------- #


@bp.post("/create-coupon")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def create_coupon():
    """Issue a first/second coupon pair."""

    data = create_schema.load(request.get_json(silent=True) or {})
    pair = current_services().license.create_coupon(data["duration"], current_user().id)
    return envelope("Coupon created successfully", pair_schema.dump(pair), status=201)


@bp.post("/redeem-coupon")
@require_auth
@timing
def redeem_coupon():
    """Redeem a first or second code for the caller."""

    data = redeem_schema.load(request.get_json(silent=True) or {})
    result = current_services().license.redeem_coupon(data["code"], current_user().id)
    return envelope("Coupon redeemed successfully", redeem_result_schema.dump(result))


# ------------------------------ Admin queries ----------------------------- #


@bp.get("/admin/coupons")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def list_coupons():
    """Return a filtered page of coupons."""

    query = admin_query_schema.load(request.args)
    page = current_services().license.list_coupons_for_admin(query)
    return envelope("Coupons fetched successfully", admin_list_schema.dump(page))


@bp.get("/admin/coupons/redeemed")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def list_redeemed_coupons():
    """Return a filtered page of redeemed coupons."""

    query = admin_query_schema.load(request.args)
    page = current_services().license.list_redeemed_coupons_for_admin(query)
    return envelope("Redeemed coupons fetched successfully", admin_list_schema.dump(page))


@bp.get("/admin/coupons/stats")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def coupon_stats():
    stats = current_services().license.get_coupon_stats_for_admin()
    return envelope("Coupon stats fetched successfully", stats_schema.dump(stats))


@bp.get("/admin/coupons/export/csv")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def export_coupons_csv():
    """Download every coupon matching the filters as CSV."""

    query = admin_query_schema.load(request.args)
    body = current_services().license.export_coupons_csv_for_admin(query)
    return _csv_response(body, "coupons-export.csv")


@bp.get("/admin/coupons/stats/export/csv")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def export_coupon_stats_csv():
    body = current_services().license.export_coupon_stats_csv_for_admin()
    return _csv_response(body, "coupon-stats-export.csv")


# ----------------------------- Admin commands ----------------------------- #


@bp.patch("/admin/coupons/<coupon_id>/revoke")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def revoke_coupon(coupon_id: str):
    data = reason_schema.load(request.get_json(silent=True) or {})
    coupon = current_services().license.revoke_coupon_for_admin(
        coupon_id, current_user().id, data["reason"]
    )
    return envelope("Coupon revoked successfully", coupon_schema.dump(coupon))


@bp.post("/admin/coupons/<coupon_id>/reissue")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def reissue_coupon(coupon_id: str):
    """Revoke a second coupon and issue its replacement."""

    data = reason_schema.load(request.get_json(silent=True) or {})
    result = current_services().license.reissue_coupon_for_admin(
        coupon_id, current_user().id, data["reason"]
    )
    return envelope("Coupon reissued successfully", reissue_result_schema.dump(result))


@bp.delete("/admin/coupons/<coupon_id>")
@require_auth
@require_roles(UserRole.ADMIN)
@timing
def delete_coupon(coupon_id: str):
    result = current_services().license.delete_coupon_for_admin(coupon_id)
    return envelope("Coupon deleted successfully", delete_result_schema.dump(result))
