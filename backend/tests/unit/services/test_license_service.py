# tests/unit/services/test_license_service.py
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt as pyjwt
import pytest
from sqlalchemy import update

from licensegate.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
from licensegate.models.base import utcnow
from licensegate.models.coupon import Coupon
from licensegate.models.user import User
from licensegate.repositories import CouponRepository
from licensegate.services._shared.errors import BadRequestError, ConflictError, NotFoundError
from licensegate.services.license.service import (
    FIRST_CODE_ACCEPTED,
    LicenseService,
    compute_license_expiry,
)
from tests.factories.coupon import CouponFactory, coupon_pair
from tests.factories.user import AdminFactory, UserFactory

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def service(services, db) -> LicenseService:
    return services.license


@pytest.fixture()
def frozen_now(monkeypatch):
    """Pin the service clock to :data:`NOW`."""
    monkeypatch.setattr(LicenseService, "now_utc", staticmethod(lambda: NOW))
    return NOW


def _reload(session, model, entity_id):
    session.expire_all()
    return session.get(model, entity_id)


# --------------------------- Expiry arithmetic ---------------------------- #
@pytest.mark.parametrize(
    ("current", "expected"),
    [
        (None, NOW + timedelta(days=30)),
        (NOW - timedelta(days=1), NOW + timedelta(days=30)),
        (NOW, NOW + timedelta(days=30)),
        (NOW + timedelta(days=10), NOW + timedelta(days=40)),
    ],
)
def test_compute_license_expiry(current, expected):
    assert compute_license_expiry(current, 30, NOW) == expected


# ------------------------------- Issuance --------------------------------- #
def test_create_coupon_issues_a_linked_pair(service):
    admin = AdminFactory()

    pair = service.create_coupon(45, admin.id)

    first, second = pair.first_coupon, pair.second_coupon
    assert first.is_first_code and first.duration == 0
    assert not second.is_first_code and second.duration == 45
    assert second.first_coupon_id == first.id
    assert first.issued_by == second.issued_by == admin.id
    assert len(first.code) == len(second.code) == 30
    assert first.code != second.code
    assert first.status == second.status == "valid"


@pytest.mark.parametrize("duration", [0, 101, -5])
def test_create_coupon_rejects_out_of_range_duration(service, duration):
    admin = AdminFactory()
    with pytest.raises(BadRequestError, match="Duration must be between 1 and 100 days"):
        service.create_coupon(duration, admin.id)


def test_create_coupon_retries_on_code_collision(service, monkeypatch):
    admin = AdminFactory()
    CouponFactory(code="taken")
    codes = iter(["taken", "fresh-1", "fresh-2"])
    monkeypatch.setattr(PyJWTTokenCodec, "generate_code", lambda self, n: next(codes))

    pair = service.create_coupon(30, admin.id)

    assert (pair.first_coupon.code, pair.second_coupon.code) == ("fresh-1", "fresh-2")


def test_create_coupon_gives_up_after_bounded_attempts(service, session, monkeypatch):
    admin = AdminFactory()
    CouponFactory(code="taken")
    monkeypatch.setattr(PyJWTTokenCodec, "generate_code", lambda self, n: "taken")

    with pytest.raises(ConflictError, match="unique coupon code"):
        service.create_coupon(30, admin.id)
    assert session.query(Coupon).count() == 1


# ------------------------------ Redemption -------------------------------- #
def test_first_code_is_accepted_without_granting_time(service, session, frozen_now):
    user = UserFactory()
    first, second = coupon_pair()

    result = service.redeem_coupon(first.code, user.id)

    assert result.message == FIRST_CODE_ACCEPTED
    assert result.license is None
    first = _reload(session, Coupon, first.id)
    assert first.is_redeemed and first.redeemed_by == user.id
    assert first.redeemed_at == frozen_now
    assert _reload(session, User, user.id).license_expires_at is None


def test_second_code_grants_a_signed_license(service, session, frozen_now, license_public_key):
    user = UserFactory()
    first, second = coupon_pair(duration=30)
    service.redeem_coupon(first.code, user.id)

    result = service.redeem_coupon(second.code, user.id)

    expected = frozen_now + timedelta(days=30)
    assert result.expires_at == expected
    claims = pyjwt.decode(result.license, license_public_key, algorithms=["RS256"])
    assert claims["id"] == user.id
    assert claims["expiresAt"] == expected.isoformat()
    assert _reload(session, User, user.id).license_expires_at == expected
    second = _reload(session, Coupon, second.id)
    assert second.is_redeemed and second.expires_at == expected


def test_licenses_stack_on_an_active_window(service, session, frozen_now):
    user = UserFactory()
    a_first, a_second = coupon_pair(duration=10)
    b_first, b_second = coupon_pair(duration=5)

    for code in (a_first.code, a_second.code, b_first.code):
        service.redeem_coupon(code, user.id)
    result = service.redeem_coupon(b_second.code, user.id)

    assert result.expires_at == frozen_now + timedelta(days=15)
    assert _reload(session, User, user.id).license_expires_at == frozen_now + timedelta(days=15)


def test_expired_license_restarts_from_now(service, session, frozen_now):
    user = UserFactory(license_expires_at=frozen_now - timedelta(days=3))
    first, second = coupon_pair(duration=7)
    service.redeem_coupon(first.code, user.id)

    result = service.redeem_coupon(second.code, user.id)

    assert result.expires_at == frozen_now + timedelta(days=7)


def test_second_code_before_first_changes_nothing(service, session):
    user = UserFactory()
    first, second = coupon_pair()

    with pytest.raises(BadRequestError, match="First code must be redeemed first"):
        service.redeem_coupon(second.code, user.id)

    assert not _reload(session, Coupon, second.id).is_redeemed
    assert _reload(session, User, user.id).license_expires_at is None


def test_second_code_needs_the_same_redeemer(service, session):
    owner, thief = UserFactory(), UserFactory()
    first, second = coupon_pair()
    service.redeem_coupon(first.code, owner.id)

    with pytest.raises(BadRequestError, match="redeemed by another user"):
        service.redeem_coupon(second.code, thief.id)

    assert not _reload(session, Coupon, second.id).is_redeemed
    assert _reload(session, User, thief.id).license_expires_at is None


def test_second_code_with_deleted_first(service, session):
    user = UserFactory()
    first, second = coupon_pair()
    first.deleted_at = utcnow()
    session.commit()

    with pytest.raises(BadRequestError, match="First coupon not found"):
        service.redeem_coupon(second.code, user.id)


def test_unknown_code(service, db):
    user = UserFactory()
    with pytest.raises(NotFoundError, match="Coupon not found"):
        service.redeem_coupon("does-not-exist", user.id)


def test_code_redeems_once(service):
    user, other = UserFactory(), UserFactory()
    first, _ = coupon_pair()
    service.redeem_coupon(first.code, user.id)

    with pytest.raises(BadRequestError, match="Coupon already redeemed"):
        service.redeem_coupon(first.code, other.id)


def test_revoked_code_is_refused(service):
    user = UserFactory()
    coupon = CouponFactory(is_revoked=True, revoked_at=utcnow())

    with pytest.raises(BadRequestError, match="Coupon has been revoked"):
        service.redeem_coupon(coupon.code, user.id)


def test_concurrent_redemption_has_one_winner(service, session, monkeypatch):
    """A rival transaction claims the row between our read and our write."""
    user, rival = UserFactory(), UserFactory()
    first, _ = coupon_pair()
    original = CouponRepository.get_by_code

    def racing_get_by_code(self, code):
        coupon = original(self, code)
        self.session.execute(
            update(Coupon)
            .where(Coupon.id == coupon.id)
            .values(is_redeemed=True, redeemed_by=rival.id, redeemed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return coupon

    monkeypatch.setattr(CouponRepository, "get_by_code", racing_get_by_code)

    with pytest.raises(BadRequestError, match="Coupon already redeemed"):
        service.redeem_coupon(first.code, user.id)


def test_signing_failure_rolls_back_the_grant(service, session, monkeypatch):
    user = UserFactory()
    first, second = coupon_pair()
    service.redeem_coupon(first.code, user.id)

    def boom(self, claims, signing_key):
        raise RuntimeError("hsm offline")

    monkeypatch.setattr(PyJWTTokenCodec, "issue_license_token", boom)

    with pytest.raises(RuntimeError):
        service.redeem_coupon(second.code, user.id)

    assert not _reload(session, Coupon, second.id).is_redeemed
    assert _reload(session, User, user.id).license_expires_at is None
