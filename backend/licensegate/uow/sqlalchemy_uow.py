"""Units of work over SQLAlchemy sessions, plus per-thread repository sets."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager, suppress

from sqlalchemy import event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from licensegate.core.extensions import db
from licensegate.repositories import CouponRepository, SessionRepository, UserRepository
from licensegate.uow.base import UnitOfWork

log = logging.getLogger(__name__)


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.sessions = SessionRepository(session=self.session)
        self.coupons = CouponRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-write UoW using the Flask-scoped session (or an explicit one).

    Commits when the block exits cleanly; rolls back and re-raises otherwise,
    so the transaction handle is released on every exit path.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session=session if session is not None else db.session())

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # The session begins lazily on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


# Statements whose leading keyword marks them as writes.
WRITE_KEYWORDS = frozenset(
    {"insert", "update", "delete", "merge", "alter", "drop", "truncate", "create", "replace"}
)

# Dialects understanding ``SET TRANSACTION`` inside an open transaction.
_SET_TRANSACTION_DIALECTS = frozenset({"postgresql", "mysql", "mariadb"})


def _leading_keyword(statement: str) -> str:
    words = statement.split(None, 1)
    return words[0].lower() if words else ""


class _WriteGuard:
    """Event listeners that turn any write on a session into ``RuntimeError``."""

    def __init__(self, session: Session, target: Connection | Engine) -> None:
        self.session = session
        self.target = target

    def _on_flush(self, session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError("Read-only UnitOfWork: ORM flush blocked")

    def _on_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        keyword = _leading_keyword(statement or "")
        if keyword in WRITE_KEYWORDS:
            raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {keyword.upper()}")

    def attach(self) -> None:
        event.listen(self.session, "before_flush", self._on_flush)
        event.listen(self.target, "before_cursor_execute", self._on_execute)

    def detach(self) -> None:
        with suppress(InvalidRequestError):
            event.remove(self.session, "before_flush", self._on_flush)
        with suppress(InvalidRequestError):
            event.remove(self.target, "before_cursor_execute", self._on_execute)


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    A unit of work that may only read.

    Writes are refused client-side for the whole block: a flush with pending
    changes and any DML/DDL statement raise ``RuntimeError``. On PostgreSQL
    and MySQL the transaction it opens is also marked ``READ ONLY`` at the
    requested isolation level. Exiting always rolls back what it opened.

    Parameters
    ----------
    isolation_level:
        Isolation requested for a transaction this unit opens itself.
    enforce_db_readonly:
        Also ask the database for ``SET TRANSACTION READ ONLY``.
    session:
        Session to use instead of Flask-SQLAlchemy's scoped session.
    """

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
        session: Session | None = None,
    ) -> None:
        super().__init__(session=session if session is not None else db.session())
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._transaction: SessionTransaction | None = None
        self._guard: _WriteGuard | None = None

    def _begin(self) -> None:
        # A session already inside a transaction (autobegun by an earlier
        # statement) is joined rather than restarted.
        try:
            self._transaction = self.session.begin()
        except InvalidRequestError:
            self._transaction = None

    def _set_transaction(self, connection: Connection) -> None:
        if self._transaction is None or connection.dialect.name not in _SET_TRANSACTION_DIALECTS:
            return
        directives = []
        if self.isolation_level:
            directives.append(f"ISOLATION LEVEL {self.isolation_level.strip().upper()}")
        if self.enforce_db_readonly:
            directives.append("READ ONLY")
        try:
            for directive in directives:
                self.session.execute(text(f"SET TRANSACTION {directive}"))
        except SQLAlchemyError as exc:
            log.warning("SET TRANSACTION rejected, relying on write guards: %s", exc)

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._begin()
        connection = self.session.connection()
        self._guard = _WriteGuard(self.session, connection)
        self._guard.attach()
        self._set_transaction(connection)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._transaction is not None:
                with suppress(SQLAlchemyError):
                    self.session.rollback()
        finally:
            self._transaction = None
            if self._guard is not None:
                self._guard.detach()
                self._guard = None

    def commit(self) -> None:
        """:raises RuntimeError: always."""
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()


def current_engine() -> Engine:
    """Return the engine bound to the current Flask app (needs an app context)."""
    return db.engine


@contextmanager
def isolated_repositories(engine: Engine) -> Iterator[SQLAlchemyRepositoryContainer]:
    """
    Yield repositories on a private, short-lived session.

    Worker threads cannot share the request's scoped session; each one opens
    its own connection from ``engine`` and closes it on exit. Nothing is
    committed.
    """
    with Session(engine) as session:
        yield SQLAlchemyRepositoryContainer(session=session)
