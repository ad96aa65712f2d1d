"""
Database engine and session management.
"""
from typing import Any, Dict, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import DatabaseSettings, settings
from core.logging_config import get_logger
from infrastructure.models import Base


logger = get_logger(__name__)


def build_async_url(database_url: str) -> str:
    """Make sure the URL points at an async driver."""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"Unsupported database driver: {drivername}. Use an async driver or update DATABASE__URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


def _engine_options(url: str, db: DatabaseSettings) -> Dict[str, Any]:
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        # aiosqlite uses a static pool for in-memory databases; pool sizing does not apply
        return {"connect_args": {"timeout": db.command_timeout}}
    return {
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_pre_ping": True,
        "connect_args": {"command_timeout": db.command_timeout},
    }


def create_engine(url: Optional[str] = None, db: Optional[DatabaseSettings] = None) -> AsyncEngine:
    db = db or settings.database
    async_url = build_async_url(url or db.url)
    return create_async_engine(
        async_url,
        echo=db.echo,
        **_engine_options(async_url, db),
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def init_database(url: Optional[str] = None) -> AsyncEngine:
    """Create the process-wide engine and session factory.

    Called once at boot; `url` overrides `settings.database.url` (ephemeral mode).
    """
    global engine, AsyncSessionLocal
    engine = create_engine(url)
    AsyncSessionLocal = create_session_factory(engine)
    logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))
    return engine


def get_engine() -> AsyncEngine:
    if engine is None:
        return init_database()
    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if AsyncSessionLocal is None:
        init_database()
    return AsyncSessionLocal  # type: ignore[return-value]


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Create every mapped table that does not exist yet."""
    async with (bind or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    Drop every mapped table.

    Test and ephemeral environments only: all data is lost!
    """
    async with (bind or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose() -> None:
    """Release pooled connections; safe to call when no engine was created."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
        logger.info("database_disposed")
    engine = None
    AsyncSessionLocal = None
