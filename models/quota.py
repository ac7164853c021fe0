"""Quota ledger models for Vertex Relay."""

from pydantic import BaseModel, Field


class QuotaRecord(BaseModel):
    """One row of the api_keys table."""

    key: str = Field(..., min_length=1, description="Opaque API key supplied by the caller")
    remaining_calls: int = Field(..., ge=0, description="Calls left before the key is exhausted")
