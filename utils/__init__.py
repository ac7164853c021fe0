"""Utility modules for Vertex Relay."""

from .errors import (
    ConfigError,
    CredentialError,
    KeyNotFound,
    MethodNotAllowed,
    MissingApiKey,
    QuotaExhausted,
    RelayError,
    RequestBodyTooLarge,
    RequestBodyUnreadable,
    StorageError,
    StreamInterrupted,
    TokenExchangeError,
    UpstreamTransportError,
)
from .logging import (
    clear_correlation_id,
    configure_logging,
    create_contextual_logger,
    get_correlation_id,
    get_logger,
    log_exception,
    set_correlation_id,
)

__all__ = [
    "ConfigError",
    "CredentialError",
    "KeyNotFound",
    "MethodNotAllowed",
    "MissingApiKey",
    "QuotaExhausted",
    "RelayError",
    "RequestBodyTooLarge",
    "RequestBodyUnreadable",
    "StorageError",
    "StreamInterrupted",
    "TokenExchangeError",
    "UpstreamTransportError",
    "clear_correlation_id",
    "configure_logging",
    "create_contextual_logger",
    "get_correlation_id",
    "get_logger",
    "log_exception",
    "set_correlation_id",
]
