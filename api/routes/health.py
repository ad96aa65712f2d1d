"""Liveness and readiness probes."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_grpc_server, get_health_service
from application.services.health_service import LIVE, READY, HealthService


router = APIRouter(prefix="/health", tags=["Health"])


def _respond(report) -> JSONResponse:
    return JSONResponse(
        status_code=200 if report.is_available else 503,
        content=report.to_dict(),
    )


@router.get("/live", summary="Liveness probe")
async def live(health: HealthService = Depends(get_health_service)) -> JSONResponse:
    return _respond(await health.check(LIVE))


@router.get("/ready", summary="Readiness probe")
async def ready(
    health: HealthService = Depends(get_health_service),
    grpc_server=Depends(get_grpc_server),
) -> JSONResponse:
    report = await health.check(READY)
    if grpc_server is not None:
        await grpc_server.set_serving(report.is_available)
    return _respond(report)
