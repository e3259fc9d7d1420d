# licensegate/services/_shared/base.py
from __future__ import annotations

from datetime import datetime

from licensegate.models.base import is_valid_id, utcnow
from licensegate.repositories.base import MAX_PAGE_SIZE, Pagination
from licensegate.services._shared.errors import BadRequestError
from licensegate.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


class BaseService:
    """
    Shared plumbing for :class:`AuthService` and :class:`LicenseService`.

    Each public method is one use case and opens exactly one unit of work:
    :meth:`rw_uow` for anything that writes (committed on success, rolled
    back on error) and :meth:`ro_uow` for pure reads. Failures are raised as
    :mod:`licensegate.services._shared.errors` types, never HTTP errors.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    # ---------------------------- Transactions ------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Open a unit of work that refuses writes.

        :param isolation: Isolation level requested when the unit opens its own
            transaction; defaults to :attr:`DEFAULT_READ_ISOLATION`.
        :param enforce_db_readonly: Also mark the transaction ``READ ONLY`` on
            databases that support it.
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION,
            enforce_db_readonly=enforce_db_readonly,
        )

    # ------------------------------- Inputs ---------------------------------

    def ensure_pagination(self, *, page: int | None, limit: int | None) -> Pagination:
        """
        Clamp caller paging input to ``page >= 1`` and ``1 <= limit <= MAX_PAGE_SIZE``.

        :param page: 1-based page number; ``None`` means the first page.
        :param limit: Page size; ``None`` means the default size.
        :rtype: Pagination
        """
        return Pagination.clamped(page, limit, max_limit=MAX_PAGE_SIZE)

    @staticmethod
    def ensure_id(value: str, *, label: str) -> str:
        """
        Reject identifiers that cannot name a stored entity.

        :raises BadRequestError: ``"Invalid <label> id"``.
        """
        if not is_valid_id(value):
            raise BadRequestError(f"Invalid {label} id")
        return value

    # --------------------------- Clock ---------------------------------------

    @staticmethod
    def now_utc() -> datetime:
        return utcnow()
