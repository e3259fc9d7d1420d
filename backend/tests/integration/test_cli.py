from __future__ import annotations

from datetime import timedelta

from licensegate.models.base import utcnow
from licensegate.models.user import User, UserRole
from tests.factories.session import UserSessionFactory


def test_create_admin_command(app, db, session):
    runner = app.test_cli_runner()

    result = runner.invoke(
        args=["users", "create-admin", "ops@example.com", "Ops Team", "--password", "Adm1n!pass"]
    )

    assert result.exit_code == 0, result.output
    assert "Admin created" in result.output
    assert session.query(User).filter_by(email="ops@example.com").one().role is UserRole.ADMIN

    again = runner.invoke(
        args=["users", "create-admin", "ops@example.com", "Ops Team", "--password", "Adm1n!pass"]
    )
    assert again.exit_code == 1
    assert "User already exists" in again.output


def test_reap_sessions_command(app, db):
    UserSessionFactory(expires_at=utcnow() - timedelta(minutes=1))
    UserSessionFactory()

    result = app.test_cli_runner().invoke(args=["sessions", "reap"])

    assert result.exit_code == 0
    assert "Expired sessions removed: 1" in result.output
