"""Database and migration extension singletons."""

from __future__ import annotations

import logging

from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData, text
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger(__name__)

# Deterministic constraint names keep Alembic autogenerate diffs stable.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Services flush explicitly inside their Unit of Work.
db: SQLAlchemy = SQLAlchemy(
    metadata=MetaData(naming_convention=NAMING_CONVENTION),
    session_options={"autoflush": False},
)
# Batch mode lets SQLite ALTER the coupons/sessions tables.
migrate = Migrate(render_as_batch=True)


def init_app(app: Flask) -> None:
    """Bind SQLAlchemy and Flask-Migrate to ``app``.

    The model package is imported here so ``users``, ``sessions`` and
    ``coupons`` are all registered on the metadata before ``flask db`` or
    ``create_all`` look at it.
    """
    db.init_app(app)

    from licensegate import models as _models  # noqa: F401

    migrate.init_app(app, db)


def ping_database() -> bool:
    """Return ``True`` when the bound database answers ``SELECT 1``."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        log.exception("database.ping_failed")
        db.session.rollback()
        return False
    return True
