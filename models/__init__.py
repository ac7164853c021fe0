"""Data models for Vertex Relay.

This module contains the Pydantic models shared by the services, ensuring
runtime validation of ledger rows and token values."""

from .enums import RelayOutcome, TokenRefreshStatus
from .quota import QuotaRecord
from .token import BearerToken, SignedAssertion

__all__ = [
    # Enums
    "RelayOutcome",
    "TokenRefreshStatus",
    # Quota models
    "QuotaRecord",
    # Token models
    "BearerToken",
    "SignedAssertion",
]
