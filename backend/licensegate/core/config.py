"""Environment-driven config classes and the frozen settings services receive."""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

# Selects the config class below.
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

PLACEHOLDER_SECRETS: Final[frozenset[str]] = frozenset(
    {"CHANGE_ME", "CHANGE_ME_ACCESS", "CHANGE_ME_REFRESH"}
)

# Local runs read .env; a missing file is ignored.
load_dotenv()


_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "y", "on"})


def env_bool(name: str, default: bool = False) -> bool:
    """Read a yes/no flag; unset means ``default``, unrecognised text means ``False``."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def env_int(name: str, default: int) -> int:
    """Read an integer; unset or blank means ``default``."""
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


class BaseConfig:
    """Settings every environment starts from, read once at import time.

    Token settings
        ``JWT_ACCESS_SECRET``/``JWT_REFRESH_SECRET`` are distinct HS256
        secrets; ``*_EXPIRES_IN`` are lifetimes in seconds (the refresh
        lifetime is also the session lifetime). ``LICENSE_PRIVATE_KEY`` is
        the base64 (or raw PEM) RSA key that signs licenses.
    Coupon settings
        ``COUPON_CODE_BYTES`` random bytes per code (hex, so twice as many
        characters) and ``COUPON_CODE_MAX_ATTEMPTS`` tries before a
        collision is reported. ``STATS_MAX_WORKERS`` threads compute the
        dashboard counts; ``1`` keeps them on the caller's session.
    HTTP settings
        ``API_BASE_PREFIX``, ``CORS_ORIGINS`` (comma separated),
        ``COOKIE_SECURE``, and ``USE_PROXYFIX``/``PROXY_HOPS``.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "CHANGE_ME_ACCESS")
    JWT_ACCESS_EXPIRES_IN = env_int("JWT_ACCESS_EXPIRES_IN", 15 * 60)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "CHANGE_ME_REFRESH")
    JWT_REFRESH_EXPIRES_IN = env_int("JWT_REFRESH_EXPIRES_IN", 7 * 24 * 60 * 60)
    LICENSE_PRIVATE_KEY = os.getenv("LICENSE_PRIVATE_KEY", "")

    # Coupons
    COUPON_CODE_BYTES = env_int("COUPON_CODE_BYTES", 15)
    COUPON_CODE_MAX_ATTEMPTS = env_int("COUPON_CODE_MAX_ATTEMPTS", 5)
    STATS_MAX_WORKERS = env_int("STATS_MAX_WORKERS", 4)

    # Cookies
    COOKIE_SECURE = env_bool("COOKIE_SECURE", False)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS & proxy
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXY_HOPS = env_int("PROXY_HOPS", 1)

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    APP_ENV = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Runs dashboard counts sequentially so they share the test connection.
    """

    APP_ENV = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROPAGATE_EXCEPTIONS = True
    STATS_MAX_WORKERS = 1


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Secure cookies are forced on; :func:`ensure_production_secrets` refuses
    to boot with placeholder secrets.
    """

    APP_ENV = "production"
    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    COOKIE_SECURE = True


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


def decode_private_key(raw: str) -> str:
    """Return the PEM text of a base64-encoded private key.

    A value that already looks like PEM is returned unchanged.

    :param raw: Base64 payload or PEM text.
    :type raw: str
    :returns: PEM text, or an empty string when ``raw`` is empty.
    :rtype: str
    :raises ValueError: If ``raw`` is neither PEM nor valid base64.
    """
    value = (raw or "").strip()
    if not value or value.startswith("-----BEGIN"):
        return value
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError("LICENSE_PRIVATE_KEY is not valid base64") from exc


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Immutable runtime settings handed to services at construction time.

    :param access_secret: HMAC secret for access tokens.
    :type access_secret: str
    :param refresh_secret: HMAC secret for refresh tokens.
    :type refresh_secret: str
    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token and session lifetime.
    :type refresh_expires: timedelta
    :param license_private_key: PEM private key for license tokens.
    :type license_private_key: str
    :param coupon_code_bytes: Random bytes per coupon code.
    :type coupon_code_bytes: int
    :param coupon_code_max_attempts: Collision retry bound.
    :type coupon_code_max_attempts: int
    :param stats_max_workers: Dashboard count concurrency.
    :type stats_max_workers: int
    :param cookie_secure: Whether auth cookies carry ``Secure``.
    :type cookie_secure: bool
    """

    access_secret: str
    refresh_secret: str
    access_expires: timedelta
    refresh_expires: timedelta
    license_private_key: str
    coupon_code_bytes: int = 15
    coupon_code_max_attempts: int = 5
    stats_max_workers: int = 1
    cookie_secure: bool = False

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> Settings:
        """Build settings from a Flask config mapping."""
        access_secret = str(cfg.get("JWT_ACCESS_SECRET") or "")
        refresh_secret = str(cfg.get("JWT_REFRESH_SECRET") or "")
        if not access_secret or not refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET are required")
        if access_secret == refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return cls(
            access_secret=access_secret,
            refresh_secret=refresh_secret,
            access_expires=timedelta(seconds=int(cfg.get("JWT_ACCESS_EXPIRES_IN", 900))),
            refresh_expires=timedelta(seconds=int(cfg.get("JWT_REFRESH_EXPIRES_IN", 604800))),
            license_private_key=decode_private_key(str(cfg.get("LICENSE_PRIVATE_KEY") or "")),
            coupon_code_bytes=int(cfg.get("COUPON_CODE_BYTES", 15)),
            coupon_code_max_attempts=max(1, int(cfg.get("COUPON_CODE_MAX_ATTEMPTS", 5))),
            stats_max_workers=max(1, int(cfg.get("STATS_MAX_WORKERS", 1))),
            cookie_secure=bool(cfg.get("COOKIE_SECURE", False)),
        )


def ensure_production_secrets(cfg: Mapping[str, Any]) -> None:
    """Refuse to run production with placeholder secrets.

    :raises RuntimeError: If any secret still holds its development default.
    """
    for key in ("SECRET_KEY", "JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET"):
        if str(cfg.get(key, "")) in PLACEHOLDER_SECRETS:
            raise RuntimeError(f"{key} must be configured in production")
    if not cfg.get("LICENSE_PRIVATE_KEY"):
        raise RuntimeError("LICENSE_PRIVATE_KEY must be configured in production")
