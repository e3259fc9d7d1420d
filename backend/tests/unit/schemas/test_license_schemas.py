from __future__ import annotations

from datetime import UTC, datetime, time

import pytest
from marshmallow import ValidationError

from licensegate.schemas import (
    CouponAdminQuerySchema,
    CreateCouponSchema,
    RedeemResultSchema,
    SignUpSchema,
)
from licensegate.services.license.dto import CouponAdminQueryIn, RedeemOut


# ------------------------------ Admin query ------------------------------- #
def test_admin_query_expands_bare_dates():
    dto = CouponAdminQuerySchema().load(
        {"createdFrom": "2024-01-01", "createdTo": "2024-01-31", "status": " Redeemed "}
    )

    assert isinstance(dto, CouponAdminQueryIn)
    assert dto.created_from == datetime(2024, 1, 1, tzinfo=UTC)
    assert dto.created_to == datetime.combine(datetime(2024, 1, 31).date(), time.max, tzinfo=UTC)
    assert dto.status == "redeemed"
    assert (dto.page, dto.limit) == (1, 20)


def test_admin_query_normalizes_datetimes_and_search():
    dto = CouponAdminQuerySchema().load(
        {
            "expiresTo": "2024-05-01T10:00:00+02:00",
            "redeemedFrom": "2024-05-01T08:00",
            "search": "  ",
        }
    )

    assert dto.expires_to == datetime(2024, 5, 1, 8, 0, tzinfo=UTC)
    assert dto.redeemed_from == datetime(2024, 5, 1, 8, 0, tzinfo=UTC)
    assert dto.search is None


def test_admin_query_ignores_unknown_keys_and_rejects_bad_dates():
    assert CouponAdminQuerySchema().load({"sort": "code"}).status == "all"
    with pytest.raises(ValidationError) as exc:
        CouponAdminQuerySchema().load({"createdFrom": "yesterday"})
    assert exc.value.messages == {"createdFrom": ["Not a valid ISO date or datetime."]}


# -------------------------------- Coupons --------------------------------- #
def test_create_coupon_duration():
    assert CreateCouponSchema().load({}) == {"duration": 30}
    with pytest.raises(ValidationError, match="between 1 and 100 days"):
        CreateCouponSchema().load({"duration": 101})
    with pytest.raises(ValidationError):
        CreateCouponSchema().load({"duration": "7"})


def test_redeem_result_omits_absent_license():
    dumped = RedeemResultSchema().dump(RedeemOut(message="First code accepted"))
    assert dumped == {"message": "First code accepted"}


# -------------------------------- Sign-up --------------------------------- #
@pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "NoSpecial123", "NoDigits!!aa"])
def test_sign_up_rejects_weak_passwords(password):
    payload = {
        "name": "Some One",
        "email": "some@example.com",
        "password": password,
        "whatsapp_number": "+201000000000",
    }
    with pytest.raises(ValidationError) as exc:
        SignUpSchema().load(payload)
    assert "password" in exc.value.messages


def test_sign_up_strips_email_and_defaults_lists():
    dto = SignUpSchema().load(
        {
            "name": "Some One",
            "email": "  some@example.com ",
            "password": "Str0ng!pass",
            "whatsapp_number": "+201000000000",
        }
    )
    assert dto.email == "some@example.com"
    assert dto.subjects == [] and dto.governorate is None
