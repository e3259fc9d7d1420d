"""User repository for persistence and credential lookups."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from sqlalchemy import ColumnElement, select

from licensegate.models.base import utcnow
from licensegate.models.user import User, UserRole
from licensegate.repositories.base import BaseRepository

PROFILE_FIELDS = frozenset(
    {
        "whatsapp_number",
        "governorate",
        "education_administration",
        "subjects",
        "schools",
        "grades",
    }
)


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Soft-deleted users are invisible to every lookup. It NEVER handles JWT or
    session creation.
    """

    model = User

    def _visible_clause(self) -> ColumnElement[bool]:
        return User.deleted_at.is_(None)

    def _soft_delete(self, instance: User) -> bool:
        instance.deleted_at = utcnow()
        return True

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a visible user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = self._select().where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when any user row (deleted or not) owns ``email``.

        Soft-deleted rows still hold the unique constraint, so sign-up must
        see them.
        """
        stmt = select(User.id).where(User.email == email.lower().strip())
        return self.session.execute(stmt).first() is not None

    def exists_by_whatsapp_number(self, number: str) -> bool:
        """Return ``True`` when any user row owns the WhatsApp number."""
        stmt = select(User.id).where(User.whatsapp_number == number.strip())
        return self.session.execute(stmt).first() is not None

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user when ``password`` matches its local credential.

        "No such user" and "wrong password" both yield ``None``.
        """
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user

    # ---------------------------- Writers ----------------------------

    def create_user(
        self,
        *,
        email: str,
        name: str,
        password: str | None = None,
        role: UserRole = UserRole.USER,
        **profile: Any,
    ) -> User:
        """Create a user (optionally with a local password) and flush."""
        user = User(email=email, name=name, role=role)
        unknown = sorted(set(profile) - PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown}")
        for key, value in profile.items():
            setattr(user, key, value)
        if password is not None:
            user.password = password
        return self.add(user)

    def set_license_expiry(self, user: User, expires_at: datetime) -> User:
        """Write the license window end and flush."""
        user.license_expires_at = expires_at
        self.flush()
        return user

    # ---------------------------- Dashboard counts ----------------------------

    def count_active_licenses(self, now: datetime) -> int:
        return self.count(User.license_expires_at > now)

    def count_expired_licenses(self, now: datetime) -> int:
        return self.count(User.license_expires_at <= now)
