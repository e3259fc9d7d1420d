# tests/unit/models/test_model_coupon.py
from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from licensegate.models.base import utcnow
from licensegate.models.coupon import CouponStatus
from tests.factories.coupon import CouponFactory, coupon_pair


def test_pair_links_second_to_first(session):
    first, second = coupon_pair(duration=10)

    assert first.is_first_code is True and first.duration == 0
    assert second.is_first_code is False and second.duration == 10
    assert second.first_coupon_id == first.id
    assert first.issued_by == second.issued_by


def test_status_label_prefers_revoked(session):
    coupon = CouponFactory()
    assert coupon.status == CouponStatus.VALID

    coupon.is_redeemed = True
    assert coupon.status == CouponStatus.REDEEMED

    coupon.is_revoked = True
    assert coupon.status == CouponStatus.REVOKED


def test_code_is_unique(session):
    CouponFactory(code="abc123")
    with pytest.raises(IntegrityError):
        CouponFactory(code="abc123")
    session.rollback()


def test_negative_duration_is_rejected(session):
    with pytest.raises(IntegrityError):
        CouponFactory(duration=-1)
    session.rollback()


def test_redeemed_coupon_cannot_point_to_a_replacement(session):
    replacement = CouponFactory()
    with pytest.raises(IntegrityError):
        CouponFactory(
            is_redeemed=True,
            redeemed_at=utcnow(),
            reissued_to_coupon_id=replacement.id,
        )
    session.rollback()
