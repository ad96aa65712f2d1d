"""Prometheus scrape endpoint."""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from api.dependencies import get_metrics
from core.metrics import MetricsCollector


router = APIRouter(tags=["Metrics"])


@router.get("/metrics", summary="Prometheus metrics")
async def metrics(collector: MetricsCollector = Depends(get_metrics)) -> Response:
    return Response(content=collector.generate_latest(), media_type=collector.content_type())
