"""Shared persistence plumbing for the ledger repositories.

Repositories translate ledger questions into SQLAlchemy 2.x statements and
nothing else: they flush but never commit, and they never raise HTTP or
service errors. Transactions belong to the unit of work driving them.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from licensegate.core.extensions import db

E = TypeVar("E")
T = TypeVar("T")

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True, slots=True)
class Pagination:
    """A 1-based page window.

    :param page: Page number, at least 1.
    :param limit: Rows per page, between 1 and the cap used to build it.
    """

    page: int
    limit: int

    @classmethod
    def clamped(
        cls, page: int | None, limit: int | None, *, max_limit: int = MAX_PAGE_SIZE
    ) -> Pagination:
        """Clamp caller input into a usable window; only ``None`` takes a default."""
        page = 1 if page is None else int(page)
        limit = DEFAULT_PAGE_SIZE if limit is None else int(limit)
        return cls(page=max(1, page), limit=min(max(1, limit), max_limit))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class Page(Generic[T]):
    """One window of a listing plus the size of the whole listing."""

    items: Sequence[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 1
        return math.ceil(self.total / self.limit)


def paginate_select(
    session: Session,
    stmt: Select[Any],
    pagination: Pagination,
    *,
    scalars: bool = True,
) -> Page[Any]:
    """Run ``stmt`` for one window and count every row it would return.

    The count runs over the statement with its ordering removed.

    :param session: Session to execute on.
    :param stmt: Filtered and ordered select.
    :param pagination: Window to fetch.
    :param scalars: Yield the first column (entities) instead of whole rows.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int(session.execute(count_stmt).scalar_one())

    result = session.execute(stmt.limit(pagination.limit).offset(pagination.offset))
    items = list(result.scalars().all()) if scalars else list(result.all())
    return Page(items=items, total=total, page=pagination.page, limit=pagination.limit)


class BaseRepository(Generic[E]):
    """Lookups and writes for one mapped model.

    Subclasses set ``model`` and may override ``_visible_clause`` (rows the
    generic lookups should not see), ``_soft_delete`` and
    ``_filterable_fields``.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        """The injected session, or Flask-SQLAlchemy's scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ------------------------------- Hooks -------------------------------

    def _visible_clause(self) -> ColumnElement[bool] | None:
        return None

    def _soft_delete(self, instance: E) -> bool:
        """Mark ``instance`` deleted in place; ``False`` means hard delete."""
        return False

    def _filterable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        return {}

    # ----------------------------- Internals -----------------------------

    def _pk(self) -> InstrumentedAttribute[Any]:
        return cast(InstrumentedAttribute[Any], self.model.id)  # type: ignore[attr-defined]

    def _select(self, *, include_hidden: bool = False) -> Select[Any]:
        stmt: Select[Any] = select(self.model)
        visible = self._visible_clause()
        if visible is not None and not include_hidden:
            stmt = stmt.where(visible)
        return stmt

    def _where_equal(self, stmt: Select[Any], filters: Mapping[str, Any]) -> Select[Any]:
        """Add ``column == value`` for each key.

        :raises ValueError: On a key missing from ``_filterable_fields``.
        """
        columns = self._filterable_fields()
        for name, value in filters.items():
            if name not in columns:
                raise ValueError(f"{self.model.__name__} cannot be filtered by '{name}'")
            stmt = stmt.where(columns[name] == value)
        return stmt

    def _first(self, stmt: Select[Any]) -> E | None:
        return cast(E | None, self.session.execute(stmt).scalars().first())

    # ------------------------------ Reads --------------------------------

    def get(self, entity_id: Any, *, include_hidden: bool = False) -> E | None:
        stmt = self._select(include_hidden=include_hidden).where(self._pk() == entity_id)
        return self._first(stmt)

    def get_for_update(self, entity_id: Any, *, include_hidden: bool = False) -> E | None:
        """Like :meth:`get`, but row-locked and refreshed from the database.

        SQLite has no ``FOR UPDATE``; callers pair this with compare-and-set
        writes so the lock is an optimisation there, not a requirement.
        """
        stmt = (
            self._select(include_hidden=include_hidden)
            .where(self._pk() == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._first(stmt)

    def find_one(self, **filters: Any) -> E | None:
        return self._first(self._where_equal(self._select(), filters))

    def count(self, *clauses: ColumnElement[bool]) -> int:
        """Visible rows satisfying every clause."""
        stmt = select(func.count()).select_from(self.model)
        visible = self._visible_clause()
        if visible is not None:
            stmt = stmt.where(visible)
        return int(self.session.execute(stmt.where(*clauses)).scalar_one())

    def list(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[ColumnElement[Any]] = (),
        limit: int | None = None,
    ) -> list[E]:
        """Visible rows in ``order_by`` order, ties broken by primary key."""
        stmt = self._where_equal(self._select(), filters or {})
        stmt = stmt.order_by(*order_by, self._pk().asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    # ------------------------------ Writes -------------------------------

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so defaults and the id are populated."""
        self.session.add(instance)
        self.flush()
        return instance

    def delete(self, instance: E) -> None:
        if not self._soft_delete(instance):
            self.session.delete(instance)
        self.flush()

    def flush(self) -> None:
        self.session.flush()
