import asyncio
import signal
from functools import partial
from typing import Optional

import uvicorn
from sqlalchemy.exc import InterfaceError, OperationalError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from api.app import create_ops_app
from application.services.health_service import (
    DatabaseHealthCheck,
    HealthService,
    SelfCheck,
    ServiceHealthCheck,
)
from application.services.item_service import ItemApplicationService
from core.config import Settings, settings
from core.logging_config import get_logger
from core.metrics import MetricsCollector
from core.tracing import setup_tracing, shutdown_tracing
from grpc_app.server import create_server
from infrastructure import database
from infrastructure.ephemeral import EphemeralDatabase
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


async def _apply_schema(cfg: Settings, recreate: bool) -> None:
    if recreate or cfg.database.drop_create:
        logger.info("database_schema_recreate")
        await database.drop_tables()
        await database.create_tables()
    elif cfg.database.enable_migrations:
        await database.create_tables()
        logger.info("database_schema_ready")


async def prepare_schema(cfg: Settings, recreate: bool) -> None:
    """Apply the schema once at boot, retrying while the database is unreachable."""
    db = cfg.database
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, db.connect_retries)),
        wait=wait_exponential(multiplier=db.connect_retry_backoff, min=0.05, max=5.0),
        retry=retry_if_exception_type((OperationalError, InterfaceError, OSError)),
        before_sleep=lambda state: logger.warning(
            "database_not_ready",
            attempt=state.attempt_number,
            error=str(state.outcome.exception()),
        ),
        reraise=True,
    ):
        with attempt:
            await _apply_schema(cfg, recreate)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def main(cfg: Settings = settings, stop: Optional[asyncio.Event] = None) -> None:
    setup_tracing(cfg)

    ephemeral: Optional[EphemeralDatabase] = None
    database_url: Optional[str] = None
    if cfg.is_ephemeral:
        ephemeral = EphemeralDatabase(cfg.ephemeral)
        database_url = ephemeral.start()

    database.init_database(database_url)
    await prepare_schema(cfg, recreate=ephemeral is not None)

    metrics = MetricsCollector()
    uow_factory = partial(SQLAlchemyUnitOfWork, database.get_session_factory())
    item_service = ItemApplicationService(uow_factory, metrics=metrics)
    health_service = HealthService([SelfCheck(), DatabaseHealthCheck(uow_factory), ServiceHealthCheck()])

    grpc_server = await create_server(item_service, metrics, cfg=cfg)

    http_server: Optional[uvicorn.Server] = None
    http_task: Optional[asyncio.Task] = None
    if cfg.http.enabled:
        ops_app = create_ops_app(health_service, metrics, grpc_server)
        http_server = uvicorn.Server(
            uvicorn.Config(ops_app, host=cfg.http.host, port=cfg.http.port, log_config=None, lifespan="off")
        )

    stop = stop or asyncio.Event()
    _install_signal_handlers(stop)

    await grpc_server.server.start()
    logger.info("grpc_started", port=grpc_server.port, environment=cfg.ENVIRONMENT)
    if http_server is not None:
        http_task = asyncio.create_task(http_server.serve())
        logger.info("ops_http_started", host=cfg.http.host, port=cfg.http.port)

    try:
        await stop.wait()
    finally:
        grace = cfg.grpc.shutdown_grace_seconds
        logger.info("grpc_stopping", grace_seconds=grace)
        await grpc_server.health.enter_graceful_shutdown()
        await grpc_server.server.stop(grace)
        if http_server is not None and http_task is not None:
            http_server.should_exit = True
            await http_task
        await database.dispose()
        if ephemeral is not None:
            ephemeral.stop()
        shutdown_tracing()
        logger.info("grpc_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
