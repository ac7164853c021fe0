"""HTTP middleware for Vertex Relay."""

from .correlation import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]
