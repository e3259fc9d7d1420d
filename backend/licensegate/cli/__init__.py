"""Command-line interface registration for the Flask application."""

from __future__ import annotations

from flask import Flask

from .manage import db_cli, sessions_cli, users_cli


def init_app(app: Flask) -> None:
    """Register application-specific CLI command groups.

    Parameters
    ----------
    app:
        Flask application instance whose CLI registry receives the
        ``db-tools``, ``users`` and ``sessions`` groups.
    """
    app.cli.add_command(db_cli)
    app.cli.add_command(users_cli)
    app.cli.add_command(sessions_cli)
