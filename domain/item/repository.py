"""
Item repository interface - what the service layer may ask of storage.
"""
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from domain.common.pagination import Page, PageRequest
from .entity import Item


class ItemRepository(ABC):
    """Storage contract for items.

    Mutating calls only stage changes; nothing is persisted until the owning
    unit of work commits.
    """

    @abstractmethod
    async def save(self, item: Item) -> Item:
        """Stage an insert. Assigns `id` and `created_at`."""

    @abstractmethod
    async def find_by_id(self, item_id: UUID) -> Optional[Item]:
        """Return the item or None."""

    @abstractmethod
    async def find_page(self, page_request: PageRequest) -> Page[Item]:
        """Return one window ordered by creation time, with the total count."""

    @abstractmethod
    async def update(self, item: Item) -> Item:
        """Stage an update. Stamps `updated_at`."""

    @abstractmethod
    async def delete(self, item: Item) -> None:
        """Stage a delete."""

    @abstractmethod
    async def count(self) -> int:
        """Count all stored items."""
