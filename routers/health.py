"""Liveness probe router for Vertex Relay."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from services import HealthMetricsService

router = APIRouter(tags=["health"])


def get_health_service(request: Request) -> HealthMetricsService:
    """Dependency to get health service from application state."""
    return request.app.state.health_metrics  # type: ignore[no-any-return]


@router.api_route("/health", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"], response_class=PlainTextResponse)
def health_check(
    health_service: HealthMetricsService = Depends(get_health_service),
) -> PlainTextResponse:
    """Report whether the quota database answers."""
    status = health_service.check_liveness()
    if not status["healthy"]:
        return PlainTextResponse("Database connection failed", status_code=503)
    return PlainTextResponse("OK")
