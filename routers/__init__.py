"""API routers for Vertex Relay."""

from .health import router as health_router
from .metrics import router as metrics_router
from .relay import router as relay_router

__all__ = ["health_router", "metrics_router", "relay_router"]
