"""Explicit wiring of the token codec and orchestrators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import cast

from flask import Flask, current_app

from licensegate.core.config import Settings
from licensegate.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
from licensegate.services.auth.service import AuthService
from licensegate.services.license.service import LicenseService

EXTENSION_KEY = "licensegate.services"


@dataclass(frozen=True, slots=True)
class Services:
    """Process-wide service instances built once from :class:`Settings`."""

    settings: Settings
    codec: PyJWTTokenCodec
    auth: AuthService
    license: LicenseService


def build_services(settings: Settings) -> Services:
    """Construct the codec and both orchestrators over ``settings``."""
    codec = PyJWTTokenCodec(settings)
    return Services(
        settings=settings,
        codec=codec,
        auth=AuthService(codec=codec, settings=settings),
        license=LicenseService(codec=codec, settings=settings),
    )


def init_app(app: Flask) -> None:
    """Freeze the app config into :class:`Settings` and store the services."""
    app.extensions[EXTENSION_KEY] = build_services(Settings.from_mapping(app.config))


def current_services() -> Services:
    """Return the services of the active Flask app."""
    return cast(Services, current_app.extensions[EXTENSION_KEY])
