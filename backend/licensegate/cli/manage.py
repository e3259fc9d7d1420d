"""Flask CLI commands for schema bootstrap, admin provisioning and session cleanup."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from licensegate.core.container import current_services
from licensegate.core.extensions import db
from licensegate.services._shared.errors import ServiceError

LOGGER = logging.getLogger(__name__)


@click.group("db-tools")
def db_cli() -> None:
    """Schema helpers for local and test databases."""


@db_cli.command("create-all")
@with_appcontext
def create_all_command() -> None:
    """Create every table that does not exist yet."""
    db.create_all()
    LOGGER.info("Database schema created")
    click.echo("Schema created.")


@click.group("users")
def users_cli() -> None:
    """User administration commands."""


@users_cli.command("create-admin")
@click.argument("email")
@click.argument("name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin_command(email: str, name: str, password: str) -> None:
    """Create an administrator account able to issue coupons."""
    try:
        user_id = current_services().auth.create_admin(email, name, password)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Admin created: {user_id}")


@click.group("sessions")
def sessions_cli() -> None:
    """Session maintenance commands."""


@sessions_cli.command("reap")
@with_appcontext
def reap_command() -> None:
    """Delete expired login sessions."""
    removed = current_services().auth.reap_expired_sessions()
    click.echo(f"Expired sessions removed: {removed}")
