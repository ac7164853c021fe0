"""Enumeration types for Vertex Relay models."""

from enum import Enum


class RelayOutcome(str, Enum):
    """Terminal state of one relayed request, used as a metrics label."""

    STREAMED = "streamed"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    MISSING_KEY = "missing_key"
    UNAUTHORIZED = "unauthorized"
    QUOTA_EXHAUSTED = "quota_exhausted"
    BAD_REQUEST = "bad_request"
    UPSTREAM_FAILED = "upstream_failed"


class TokenRefreshStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
