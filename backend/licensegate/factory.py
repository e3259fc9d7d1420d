"""Application factory wiring Flask extensions, services and blueprints."""

from __future__ import annotations

from flask import Flask

from licensegate.core.config import BaseConfig, ensure_production_secrets, get_config
from licensegate.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    if app.config.get("APP_ENV") == "production":
        ensure_production_secrets(app.config)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from licensegate.core import proxy

    proxy.init_app(app)

    from licensegate.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from licensegate.core import cors

    cors.init_app(app)

    # Services read the frozen settings, so they are built after config loads.
    from licensegate.core import container

    container.init_app(app)

    from licensegate.api import init_app as init_api

    init_api(app)

    from licensegate.core import errors

    errors.init_app(app)

    from licensegate import cli

    cli.init_app(app)

    return app
