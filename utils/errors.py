"""Error taxonomy for Vertex Relay.

Every error carries the HTTP status and the client-safe message the gateway
renders for it. Messages passed to the constructor are for logs only and never
reach the client.
"""

from typing import Dict, Optional


class RelayError(Exception):
    """Base exception for the relay."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.public_message
        self.headers = headers or {}
        super().__init__(self.message)


# --- Startup failures (fatal) ---

class ConfigError(RelayError):
    """Missing or invalid startup configuration."""


class CredentialError(RelayError):
    """The service-account private key or identity is unusable."""


class TokenExchangeError(RelayError):
    """The OAuth2 token endpoint did not return a usable access token."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.upstream_status = status_code
        self.body = body


# --- Per-request failures ---

class StorageError(RelayError):
    """The quota ledger's backing store failed."""

    status_code = 401
    public_message = "Invalid or expired API key"


class KeyNotFound(RelayError):
    status_code = 401
    public_message = "Invalid or expired API key"


class QuotaExhausted(RelayError):
    status_code = 403
    public_message = "API key has no remaining calls"


class MissingApiKey(RelayError):
    status_code = 401
    public_message = "API key is required"


class MethodNotAllowed(RelayError):
    status_code = 405
    public_message = "Method not allowed"


class RequestBodyTooLarge(RelayError):
    status_code = 413
    public_message = "Request body too large"


class RequestBodyUnreadable(RelayError):
    status_code = 400
    public_message = "Error reading request body"


class UpstreamTransportError(RelayError):
    status_code = 500
    public_message = "Upstream request failed"


class StreamInterrupted(RelayError):
    """Reading the upstream body failed after streaming had started."""
