"""User and authentication-method models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from licensegate.core.extensions import db

from .base import (
    ID_LENGTH,
    PKMixin,
    ReprMixin,
    SoftDeleteMixin,
    TimestampMixin,
    UTCDateTime,
    utcnow,
)


class UserRole(str, Enum):
    """Roles understood by the authorization policy."""

    USER = "USER"
    ADMIN = "ADMIN"


class AuthProvider(str, Enum):
    """Supported credential providers."""

    LOCAL = "local"
    GOOGLE = "google"


class User(PKMixin, ReprMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    """
    Account identity, credentials and license entitlement.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    name : str
        Display name.
    whatsapp_number : str | None
        Optional contact number, unique when present.
    role : UserRole
        ``USER`` or ``ADMIN``.
    license_expires_at : datetime | None
        End of the paid license window; only the license service writes it.
    auth_methods : list[UserAuthMethod]
        Credentials attached to the account (local password, OAuth ids).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    whatsapp_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role", native_enum=False, length=16),
        nullable=False,
        default=UserRole.USER,
    )
    license_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Profile
    governorate: Mapped[str | None] = mapped_column(String(100), nullable=True)
    education_administration: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    schools: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    grades: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    auth_methods: Mapped[list[UserAuthMethod]] = relationship(
        "UserAuthMethod",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("whatsapp_number", name="uq_users_whatsapp_number"),
        Index("ix_users_license_expires_at", "license_expires_at"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash ``raw`` into the local auth method, creating it when missing.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        method = self.local_auth_method
        if method is None:
            method = UserAuthMethod(provider=AuthProvider.LOCAL)
            self.auth_methods.append(method)
        method.password_hash = generate_password_hash(raw)

    @property
    def local_auth_method(self) -> UserAuthMethod | None:
        """Return the password-based auth method, if any."""
        for method in self.auth_methods:
            if method.provider == AuthProvider.LOCAL:
                return method
        return None

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored local credential.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        method = self.local_auth_method
        if method is None or not method.password_hash:
            return False
        return bool(check_password_hash(method.password_hash, raw))

    # -------------------- License --------------------
    def has_active_license(self, now: datetime | None = None) -> bool:
        """Return ``True`` when the license window ends after ``now``."""
        if self.license_expires_at is None:
            return False
        return self.license_expires_at > (now or utcnow())

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("name")
    def _normalize_name(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Name is required.")
        return value.strip()

    @validates("whatsapp_number")
    def _normalize_whatsapp(self, key: str, value: str | None) -> str | None:
        if value is None:
            return None
        v = value.strip()
        return v or None


class UserAuthMethod(PKMixin, ReprMixin, db.Model):
    """One credential attached to a user (password hash or OAuth provider id)."""

    __tablename__ = "user_auth_methods"

    user_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[AuthProvider] = mapped_column(
        SAEnum(AuthProvider, name="auth_provider", native_enum=False, length=16),
        nullable=False,
        default=AuthProvider.LOCAL,
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="auth_methods")

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_auth_methods_user_provider"),
        Index("ix_user_auth_methods_user_id", "user_id"),
    )
