"""SQLAlchemy Unit of Work implementation"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.logging_config import get_logger
from domain.common.exceptions import StorageConflictError, StorageError
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import get_session_factory
from infrastructure.repositories.item_repository import SQLAlchemyItemRepository


logger = get_logger(__name__)


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """Unit of Work backed by one AsyncSession per request."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._external_session = session
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            factory = self._session_factory or get_session_factory()
            self.session = factory()
        self.item_repository = SQLAlchemyItemRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self.item_repository = None  # type: ignore[assignment]

    async def commit(self) -> None:
        if self._readonly:
            self._committed = True
            return
        try:
            await self.session.commit()
        except StaleDataError as exc:
            await self.rollback()
            logger.warning("uow_commit_conflict", error=str(exc))
            raise StorageConflictError(str(exc)) from exc
        except SQLAlchemyError as exc:
            await self.rollback()
            logger.error("uow_commit_failed", error=str(exc))
            raise StorageError(str(exc)) from exc
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
