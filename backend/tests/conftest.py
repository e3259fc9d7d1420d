"""Pytest fixtures building the app against a fresh in-memory SQLite schema.

Services commit through their Unit of Work, so each test gets its own
``create_all``/``drop_all`` cycle instead of a rolled-back transaction.
"""

from __future__ import annotations

import base64
import os

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy.pool import StaticPool

from licensegate.core.config import TestingConfig
from licensegate.core.extensions import db as _db
from licensegate.factory import create_app

_LICENSE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
LICENSE_PRIVATE_PEM = _LICENSE_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
).decode("utf-8")
LICENSE_PUBLIC_PEM = (
    _LICENSE_KEY.public_key()
    .public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    .decode("utf-8")
)


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses one shared in-memory SQLite connection (``StaticPool``).
    - Distinct access/refresh secrets and a throwaway RSA key.
    - Counts run sequentially so they share the test connection.
    """

    SECRET_KEY = "test-secret-key"
    JWT_ACCESS_SECRET = "test-access-secret"
    JWT_REFRESH_SECRET = "test-refresh-secret"
    JWT_ACCESS_EXPIRES_IN = 900
    JWT_REFRESH_EXPIRES_IN = 7 * 24 * 60 * 60
    LICENSE_PRIVATE_KEY = base64.b64encode(LICENSE_PRIVATE_PEM.encode("utf-8")).decode("ascii")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    STATS_MAX_WORKERS = 1
    COOKIE_SECURE = False
    USE_PROXYFIX = False
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Create the application once for the whole run.

    Yields
    ------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    yield create_app(TestConfig, instance_relative_config=False)


@pytest.fixture(autouse=True)
def _app_context(app):
    """Give every test its own app context so ``flask.g`` starts empty."""
    with app.app_context():
        yield


@pytest.fixture()
def db(app):
    """Create every table before the test and drop them afterwards."""
    _db.create_all()
    try:
        yield _db
    finally:
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def session(db):
    """Return the scoped session the services use."""
    return db.session


@pytest.fixture()
def client(app, db):
    return app.test_client()


@pytest.fixture()
def services(app):
    """Services wired by the app factory."""
    from licensegate.core.container import current_services

    return current_services()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture(scope="session")
def license_public_key() -> str:
    return LICENSE_PUBLIC_PEM


# -- Hook up Factory Boy to the scoped session ---------------------------------
@pytest.fixture(autouse=True)
def _factories_session(request, _app_context):
    """Wire Factory Boy's session helper to the session of DB-backed tests."""
    if "db" not in request.fixturenames:
        yield
        return
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(_db.session)
    yield
    SQLAlchemySession.set(None)
