"""Service-account token models for Vertex Relay."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SignedAssertion(BaseModel):
    """A signed JWT assertion ready for the jwt-bearer grant."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1, description="Compact-serialized RS256 JWT")
    issued_at: datetime = Field(..., description="iat claim")
    expires_at: datetime = Field(..., description="exp claim")


class BearerToken(BaseModel):
    """An OAuth2 access token and the moment it stops being valid."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1, repr=False)
    expires_at: datetime = Field(..., description="UTC expiry time")

    def seconds_remaining(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.seconds_remaining(now) <= 0

    def expires_within(self, margin_seconds: float, now: Optional[datetime] = None) -> bool:
        """True when the token expires in less than ``margin_seconds``."""
        return self.seconds_remaining(now) < margin_seconds

    @classmethod
    def from_lifetime(cls, access_token: str, lifetime_seconds: int, now: Optional[datetime] = None) -> "BearerToken":
        now = now or datetime.now(timezone.utc)
        return cls(access_token=access_token, expires_at=now + timedelta(seconds=lifetime_seconds))
