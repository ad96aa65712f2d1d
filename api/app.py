"""
Ops HTTP application: health probes and Prometheus scrape, served next to
the gRPC server.
"""
from typing import Optional

from fastapi import FastAPI

from api.routes import health, metrics
from application.services.health_service import HealthService
from core.config import settings
from core.metrics import MetricsCollector


def create_ops_app(
    health_service: HealthService,
    collector: MetricsCollector,
    grpc_server: Optional[object] = None,
) -> FastAPI:
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} (ops)",
        version=settings.VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.health_service = health_service
    app.state.metrics = collector
    app.state.grpc_server = grpc_server

    app.include_router(health.router)
    app.include_router(metrics.router)
    return app
