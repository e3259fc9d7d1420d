# tests/unit/repositories/test_repository_session.py
from __future__ import annotations

from datetime import timedelta

import pytest

from licensegate.models.base import utcnow
from licensegate.models.session import PENDING_REFRESH_TOKEN_HASH
from licensegate.repositories import SessionRepository
from tests.factories.session import UserSessionFactory
from tests.factories.user import UserFactory


@pytest.fixture()
def repo(session) -> SessionRepository:
    return SessionRepository(session=session)


def test_create_session_starts_pending(repo, session):
    user = UserFactory()
    row = repo.create_session(
        user.id, utcnow() + timedelta(days=7), user_agent="x" * 600, ip="10.0.0.1"
    )

    assert row.id
    assert row.is_pending
    assert row.refresh_token_hash == PENDING_REFRESH_TOKEN_HASH
    assert len(row.user_agent) == 512

    repo.set_refresh_token_hash(row, "a" * 64)
    session.commit()
    assert repo.get_session(row.id).is_pending is False


def test_expired_session_is_invisible_to_valid_lookups(repo):
    now = utcnow()
    live = UserSessionFactory()
    dead = UserSessionFactory(user=live.user, expires_at=now - timedelta(seconds=1))

    assert repo.get_valid_session(live.id, now) is not None
    assert repo.get_valid_session(dead.id, now) is None
    assert repo.get_session(dead.id) is not None
    assert repo.find_valid_session_by_hash(dead.refresh_token_hash, now) is None
    assert [s.id for s in repo.find_valid_sessions_by_user_id(live.user_id, now)] == [live.id]


def test_rotation_is_compare_and_set(repo, session):
    row = UserSessionFactory(refresh_token_hash="old")
    new_expiry = utcnow() + timedelta(days=7)

    assert repo.rotate_refresh_token_hash(
        row.id, expected_hash="old", new_hash="new", expires_at=new_expiry
    )
    assert not repo.rotate_refresh_token_hash(
        row.id, expected_hash="old", new_hash="newer", expires_at=new_expiry
    )
    session.commit()
    assert repo.get_session(row.id).refresh_token_hash == "new"


def test_deletes_are_hard_and_scoped(repo, session):
    now = utcnow()
    a = UserSessionFactory()
    b = UserSessionFactory(user=a.user)
    other = UserSessionFactory()
    UserSessionFactory(user=other.user, expires_at=now - timedelta(minutes=1))
    a_id, b_id, owner_id = a.id, b.id, a.user_id
    other_id, other_user_id = other.id, other.user_id

    assert repo.delete_session(a_id) is True
    assert repo.delete_session(a_id) is False
    assert repo.delete_user_sessions(owner_id) == 1
    assert repo.delete_expired_sessions(now) == 1
    session.commit()

    assert repo.get_session(a_id) is None
    assert repo.get_session(b_id) is None
    assert [s.id for s in repo.find_by_user_id(other_user_id)] == [other_id]
