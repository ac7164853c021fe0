"""Metrics router for Vertex Relay."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST

from services import HealthMetricsService
from .health import get_health_service

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=Response)
def prometheus_metrics(
    health_service: HealthMetricsService = Depends(get_health_service),
) -> Response:
    """Get Prometheus metrics in text format."""
    return Response(content=health_service.get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
