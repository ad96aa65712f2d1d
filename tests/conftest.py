"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-item-service-0123456789")
os.environ.setdefault("ENVIRONMENT", "test")

# Compile grpc_app/protos before anything imports the stubs
from grpc_app.codegen import ensure_generated  # noqa: E402

ensure_generated()

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from functools import partial  # noqa: E402
from typing import Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402

from core.metrics import MetricsCollector  # noqa: E402
from domain.common.pagination import Page, PageRequest  # noqa: E402
from domain.common.unit_of_work import AbstractUnitOfWork  # noqa: E402
from domain.item.entity import Item  # noqa: E402
from domain.item.repository import ItemRepository  # noqa: E402
from infrastructure.database import create_engine, create_session_factory, create_tables  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


SECRET_KEY = os.environ["SECRET_KEY"]


class InMemoryItemRepository(ItemRepository):
    """Records every call so tests can assert which storage operations ran."""

    def __init__(self) -> None:
        self.rows: Dict[uuid.UUID, Item] = {}
        self.calls: List[Tuple[str, object]] = []
        self.fail_with: Optional[BaseException] = None

    def _record(self, name: str, arg: object = None) -> None:
        self.calls.append((name, arg))
        if self.fail_with is not None:
            raise self.fail_with

    @property
    def writes(self) -> List[Tuple[str, object]]:
        return [c for c in self.calls if c[0] in {"save", "update", "delete"}]

    async def save(self, item: Item) -> Item:
        self._record("save", item.name)
        item.id = uuid.uuid4()
        item.created_at = datetime.now(timezone.utc)
        self.rows[item.id] = Item(name=item.name, id=item.id, created_at=item.created_at)
        return item

    async def find_by_id(self, item_id: uuid.UUID) -> Optional[Item]:
        self._record("find_by_id", item_id)
        row = self.rows.get(item_id)
        if row is None:
            return None
        return Item(name=row.name, id=row.id, created_at=row.created_at, updated_at=row.updated_at)

    async def find_page(self, page_request: PageRequest) -> Page[Item]:
        self._record("find_page", page_request)
        ordered = sorted(self.rows.values(), key=lambda i: i.created_at)
        window = ordered[page_request.offset:page_request.offset + page_request.page_size]
        return Page(items=list(window), total_elements=len(ordered))

    async def update(self, item: Item) -> Item:
        self._record("update", item.id)
        item.updated_at = datetime.now(timezone.utc)
        self.rows[item.id] = Item(name=item.name, id=item.id, created_at=item.created_at, updated_at=item.updated_at)
        return item

    async def delete(self, item: Item) -> None:
        self._record("delete", item.id)
        self.rows.pop(item.id, None)

    async def count(self) -> int:
        self._record("count")
        return len(self.rows)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, repository: InMemoryItemRepository, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self.item_repository = repository
        self.commits = 0
        self.commit_error: Optional[BaseException] = None

    async def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._committed = False


class InMemoryStore:
    """Factory handed to services; remembers every unit of work it opened."""

    def __init__(self) -> None:
        self.repository = InMemoryItemRepository()
        self.units: List[InMemoryUnitOfWork] = []
        self.commit_error: Optional[BaseException] = None

    def __call__(self, *, readonly: bool = False) -> InMemoryUnitOfWork:
        uow = InMemoryUnitOfWork(self.repository, readonly=readonly)
        uow.commit_error = self.commit_error
        self.units.append(uow)
        return uow

    @property
    def commits(self) -> int:
        return sum(u.commits for u in self.units)


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
async def engine(tmp_path):
    """A file-backed SQLite database per test, schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{(tmp_path / 'items.db').as_posix()}")
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory):
    return partial(SQLAlchemyUnitOfWork, session_factory)
