"""
API dependencies - collaborators the ops app was created with.
"""
from typing import Optional

from fastapi import Request

from application.services.health_service import HealthService
from core.metrics import MetricsCollector


def get_health_service(request: Request) -> HealthService:
    return request.app.state.health_service


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_grpc_server(request: Request) -> Optional[object]:
    """The running gRPC server (a `grpc_app.server.GrpcServer`), if attached."""
    return getattr(request.app.state, "grpc_server", None)
