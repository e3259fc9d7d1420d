"""Factory Boy definitions for :class:`licensegate.models.user.User`."""

from __future__ import annotations

import factory

from licensegate.models.user import User, UserRole
from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """Build persisted users with a local password credential."""

    class Meta:
        model = User

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = factory.Faker("name")
    whatsapp_number = factory.Sequence(lambda n: f"+2010{n:08d}")
    role = UserRole.USER
    governorate = factory.Faker("city")
    # Goes through the model's write-only setter, which hashes it.
    password = DEFAULT_PASSWORD


class AdminFactory(UserFactory):
    email = factory.Sequence(lambda n: f"admin{n}@example.com")
    role = UserRole.ADMIN
