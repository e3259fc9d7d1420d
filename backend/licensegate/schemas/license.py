"""Coupon and license Marshmallow schemas.

Outbound payloads use camelCase keys; Python attributes stay snake_case.
"""

from __future__ import annotations

from typing import Any

from marshmallow import EXCLUDE, Schema, fields, post_load, validate

from licensegate.models.coupon import REVOKE_REASON_MAX_LENGTH
from licensegate.repositories.coupon import STATUS_ALL
from licensegate.schemas.common import DateOrDateTime
from licensegate.services.license.dto import CouponAdminQueryIn
from licensegate.services.license.service import (
    DEFAULT_DURATION_DAYS,
    MAX_DURATION_DAYS,
    MIN_DURATION_DAYS,
)

# ------------------------------- Inputs ----------------------------------- #


class CreateCouponSchema(Schema):
    duration = fields.Integer(
        load_default=DEFAULT_DURATION_DAYS,
        strict=True,
        validate=validate.Range(
            min=MIN_DURATION_DAYS,
            max=MAX_DURATION_DAYS,
            error="Duration must be between 1 and 100 days",
        ),
    )


class RedeemCouponSchema(Schema):
    code = fields.String(required=True, validate=validate.Length(min=1, max=128))


class CouponReasonSchema(Schema):
    """Optional free-text reason for revoke and reissue."""

    reason = fields.String(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=REVOKE_REASON_MAX_LENGTH),
    )


class CouponAdminQuerySchema(Schema):
    """
    Query string of the admin listing and export endpoints.

    Status and range checks are left to the service so that both the HTTP
    and CLI paths report the same errors.
    """

    class Meta:
        unknown = EXCLUDE

    status = fields.String(load_default=STATUS_ALL)
    search = fields.String(load_default=None)
    created_from = DateOrDateTime(data_key="createdFrom", load_default=None)
    created_to = DateOrDateTime(data_key="createdTo", end_of_day=True, load_default=None)
    redeemed_from = DateOrDateTime(data_key="redeemedFrom", load_default=None)
    redeemed_to = DateOrDateTime(data_key="redeemedTo", end_of_day=True, load_default=None)
    expires_from = DateOrDateTime(data_key="expiresFrom", load_default=None)
    expires_to = DateOrDateTime(data_key="expiresTo", end_of_day=True, load_default=None)
    page = fields.Integer(load_default=1)
    limit = fields.Integer(load_default=20)

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> CouponAdminQueryIn:
        search = data.get("search")
        data["search"] = search.strip() or None if search else None
        data["status"] = (data.get("status") or STATUS_ALL).strip().lower()
        return CouponAdminQueryIn(**data)


# ------------------------------- Outputs ---------------------------------- #


class CouponSchema(Schema):
    id = fields.String()
    code = fields.String()
    issued_by = fields.String(data_key="issuedBy")
    duration = fields.Integer()
    is_first_code = fields.Boolean(data_key="isFirstCode")
    first_coupon_id = fields.String(allow_none=True, data_key="firstCouponId")
    is_redeemed = fields.Boolean(data_key="isRedeemed")
    redeemed_by = fields.String(allow_none=True, data_key="redeemedBy")
    redeemed_at = fields.DateTime(allow_none=True, data_key="redeemedAt")
    expires_at = fields.DateTime(allow_none=True, data_key="expiresAt")
    is_revoked = fields.Boolean(data_key="isRevoked")
    revoked_at = fields.DateTime(allow_none=True, data_key="revokedAt")
    revoked_by = fields.String(allow_none=True, data_key="revokedBy")
    revoke_reason = fields.String(allow_none=True, data_key="revokeReason")
    reissued_from_coupon_id = fields.String(allow_none=True, data_key="reissuedFromCouponId")
    reissued_to_coupon_id = fields.String(allow_none=True, data_key="reissuedToCouponId")
    status = fields.String()
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class CouponPairSchema(Schema):
    first_coupon = fields.Nested(CouponSchema, data_key="firstCoupon")
    second_coupon = fields.Nested(CouponSchema, data_key="secondCoupon")


class RedeemResultSchema(Schema):
    """Either ``{message}`` for a first code or ``{license, expiresAt}``."""

    message = fields.String()
    license = fields.String()
    expires_at = fields.DateTime(data_key="expiresAt")

    def dump(self, obj: Any, *, many: bool | None = None) -> Any:
        payload = super().dump(obj, many=many)
        if many:
            return payload
        return {key: value for key, value in payload.items() if value is not None}


class ReissueResultSchema(Schema):
    old_coupon = fields.Nested(CouponSchema, data_key="oldCoupon")
    new_coupon = fields.Nested(CouponSchema, data_key="newCoupon")


class DeleteResultSchema(Schema):
    deleted = fields.Boolean()


class CouponAdminUserSchema(Schema):
    id = fields.String()
    name = fields.String(allow_none=True)
    email = fields.String(allow_none=True)


class CouponAdminItemSchema(Schema):
    id = fields.String()
    code = fields.String()
    duration = fields.Integer()
    status = fields.String()
    is_redeemed = fields.Boolean(data_key="isRedeemed")
    is_revoked = fields.Boolean(data_key="isRevoked")
    is_first_code = fields.Boolean(data_key="isFirstCode")
    first_coupon_id = fields.String(allow_none=True, data_key="firstCouponId")
    created_at = fields.DateTime(data_key="createdAt")
    redeemed_at = fields.DateTime(allow_none=True, data_key="redeemedAt")
    expires_at = fields.DateTime(allow_none=True, data_key="expiresAt")
    revoked_at = fields.DateTime(allow_none=True, data_key="revokedAt")
    revoke_reason = fields.String(allow_none=True, data_key="revokeReason")
    issued_by = fields.Nested(CouponAdminUserSchema, allow_none=True, data_key="issuedBy")
    redeemed_by = fields.Nested(CouponAdminUserSchema, allow_none=True, data_key="redeemedBy")
    revoked_by = fields.Nested(CouponAdminUserSchema, allow_none=True, data_key="revokedBy")


class CouponAdminListSchema(Schema):
    items = fields.List(fields.Nested(CouponAdminItemSchema))
    total = fields.Integer()
    page = fields.Integer()
    limit = fields.Integer()
    total_pages = fields.Integer(data_key="totalPages")


class CouponStatsSchema(Schema):
    total_coupons = fields.Integer(data_key="totalCoupons")
    valid_coupons = fields.Integer(data_key="validCoupons")
    invalid_coupons = fields.Integer(data_key="invalidCoupons")
    redeemed_coupons = fields.Integer(data_key="redeemedCoupons")
    revoked_coupons = fields.Integer(data_key="revokedCoupons")
    available_coupons = fields.Integer(data_key="availableCoupons")
    active_licenses = fields.Integer(data_key="activeLicenses")
    expired_licenses = fields.Integer(data_key="expiredLicenses")
