"""
Item repository implementation - SQLAlchemy data access.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import StorageConflictError, StorageError
from domain.common.pagination import Page, PageRequest
from domain.item.entity import Item
from domain.item.repository import ItemRepository
from infrastructure.models.item import ItemModel


logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyItemRepository(ItemRepository):
    """SQLAlchemy implementation of the item repository.

    Loaded rows stay in the session identity map, so `update`/`delete` operate
    on the same instance `find_by_id` returned and SQLAlchemy's version
    counter guards the write.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ItemModel) -> Item:
        return Item(
            id=model.id,
            name=model.name,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
            version=model.version,
        )

    async def _load(self, item_id: uuid.UUID) -> ItemModel:
        model = await self.session.get(ItemModel, item_id)
        if model is None:
            raise StorageError(f"Item {item_id} is not present in the store")
        return model

    async def save(self, item: Item) -> Item:
        item.id = uuid.uuid4()
        item.created_at = _utcnow()
        item.updated_at = None
        self.session.add(
            ItemModel(id=item.id, name=item.name, created_at=item.created_at, updated_at=None)
        )
        return item

    async def find_by_id(self, item_id: uuid.UUID) -> Optional[Item]:
        model = await self.session.get(ItemModel, item_id)
        return self._to_entity(model) if model else None

    async def find_page(self, page_request: PageRequest) -> Page[Item]:
        stmt = (
            select(ItemModel)
            .order_by(ItemModel.created_at.asc(), ItemModel.id.asc())
            .offset(page_request.offset)
            .limit(page_request.page_size)
        )
        result = await self.session.execute(stmt)
        items = [self._to_entity(m) for m in result.scalars().all()]
        total = await self.count()
        return Page(items=items, total_elements=total)

    async def update(self, item: Item) -> Item:
        model = await self._load(item.id)
        if item.version is not None and model.version != item.version:
            raise StorageConflictError(
                f"Item {item.id} changed since it was read (version {item.version} != {model.version})"
            )
        item.updated_at = _utcnow()
        model.name = item.name
        model.updated_at = item.updated_at
        return item

    async def delete(self, item: Item) -> None:
        model = await self._load(item.id)
        await self.session.delete(model)

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(ItemModel.id)))
        return int(result.scalar_one())
