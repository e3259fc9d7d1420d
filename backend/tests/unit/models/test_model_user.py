# tests/unit/models/test_model_user.py
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from licensegate.models.base import is_valid_id, utcnow
from licensegate.models.user import AuthProvider, User, UserRole
from tests.factories.user import DEFAULT_PASSWORD, UserFactory


def test_user_defaults_and_normalization(session):
    user = UserFactory(email="  Mixed.Case@Example.COM ", name="  Jane Doe  ")

    assert is_valid_id(user.id)
    assert user.email == "mixed.case@example.com"
    assert user.name == "Jane Doe"
    assert user.role is UserRole.USER
    assert user.license_expires_at is None
    assert user.subjects == [] and user.grades == []
    assert user.created_at.tzinfo is not None


def test_password_is_hashed_write_only(session):
    user = UserFactory()

    method = user.local_auth_method
    assert method is not None
    assert method.provider is AuthProvider.LOCAL
    assert method.password_hash != DEFAULT_PASSWORD
    assert user.verify_password(DEFAULT_PASSWORD) is True
    assert user.verify_password("wrong") is False
    with pytest.raises(AttributeError):
        _ = user.password


def test_changing_password_reuses_local_method(session):
    user = UserFactory()
    user.password = "N3w-Secret!"
    session.commit()

    assert len(user.auth_methods) == 1
    assert user.verify_password("N3w-Secret!") is True


@pytest.mark.parametrize("bad", ["", "no-at-sign", "a@nodot"])
def test_invalid_email_is_rejected(bad):
    with pytest.raises(ValueError):
        User(email=bad, name="x")


def test_blank_whatsapp_number_becomes_null(session):
    user = UserFactory(whatsapp_number="   ")
    assert user.whatsapp_number is None


def test_email_is_unique(session):
    UserFactory(email="dup@example.com")
    with pytest.raises(IntegrityError):
        UserFactory(email="dup@example.com")
    session.rollback()


def test_has_active_license(session):
    now = utcnow()
    user = UserFactory(license_expires_at=now + timedelta(days=1))

    assert user.has_active_license(now) is True
    assert user.has_active_license(now + timedelta(days=2)) is False
    assert UserFactory().has_active_license(now) is False
