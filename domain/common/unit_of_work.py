"""Unit of Work abstraction"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.item.repository import ItemRepository


class AbstractUnitOfWork(ABC):
    """Request-scoped transaction boundary.

    Changes staged through `item_repository` are applied atomically by
    `commit()`. Leaving the context without committing rolls everything back,
    so a failed request never leaves partial state behind.
    """

    item_repository: ItemRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.item_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc or not self._committed:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Flush staged changes.

        Raises StorageConflictError on an optimistic concurrency violation and
        StorageError on any other storage failure.
        """

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged changes."""
