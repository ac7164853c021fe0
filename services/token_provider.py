"""Process-wide bearer token slot for Vertex Relay.

The provider is primed once at startup. Afterwards every request reads the
current token without locking. When the token is about to expire the first
caller refreshes it; callers that queued on the lock meanwhile reuse the
outcome of that attempt, whether it succeeded or failed. After a failure no
new exchange is tried until the retry window has passed.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from models import BearerToken, TokenRefreshStatus
from utils import RelayError, TokenExchangeError, create_contextual_logger, log_exception
from .credential_signer import CredentialSigner
from .health_metrics import token_refreshes
from .token_exchange import TokenExchanger


class TokenProvider:
    """Holds the shared access token and refreshes it before expiry."""

    def __init__(
        self,
        signer: CredentialSigner,
        exchanger: TokenExchanger,
        refresh_margin_seconds: int = 300,
        refresh_enabled: bool = True,
        refresh_retry_seconds: int = 10,
    ) -> None:
        self.signer = signer
        self.exchanger = exchanger
        self.refresh_margin_seconds = refresh_margin_seconds
        self.refresh_enabled = refresh_enabled
        self.refresh_retry_seconds = refresh_retry_seconds
        self.logger = create_contextual_logger(__name__, service="token_provider")

        self._token: Optional[BearerToken] = None
        self._refresh_lock = threading.Lock()
        self._attempts = 0
        self._retry_after: Optional[datetime] = None
        self._last_error: Optional[RelayError] = None
        self._warned_stale = False

    def prime(self) -> BearerToken:
        """Obtain the first token. Failures propagate and abort startup."""
        with self._refresh_lock:
            self._token = self._fetch()
        return self._token

    def get_token(self, now: Optional[datetime] = None) -> str:
        """Return an access token suitable for an upstream call right now."""
        now = now or datetime.now(timezone.utc)
        token = self._token
        if token is None:
            raise TokenExchangeError("token provider used before prime()")

        if not self.refresh_enabled:
            if token.is_expired(now) and not self._warned_stale:
                self._warned_stale = True
                self.logger.warning(
                    "Access token is past expiry and refresh is disabled",
                    expired_at=token.expires_at.isoformat(),
                )
            return token.access_token

        if not token.expires_within(self.refresh_margin_seconds, now):
            return token.access_token
        if self._backing_off(now):
            return self._fallback(token, now)

        attempts_seen = self._attempts
        with self._refresh_lock:
            token = self._token
            if not token.expires_within(self.refresh_margin_seconds, now):
                return token.access_token
            # An attempt finished while we waited, or a failure is still cooling down.
            if self._attempts != attempts_seen or self._backing_off(now):
                return self._fallback(token, now)

            try:
                self._token = self._fetch()
            except RelayError as e:
                self._retry_after = now + timedelta(seconds=self.refresh_retry_seconds)
                self._last_error = e
                if token.is_expired(now):
                    raise
                log_exception(
                    self.logger,
                    e,
                    "Token refresh failed, keeping current token",
                    expires_at=token.expires_at.isoformat(),
                    retry_after=self._retry_after.isoformat(),
                )
                return token.access_token

        return self._token.access_token

    def _backing_off(self, now: datetime) -> bool:
        return self._retry_after is not None and now < self._retry_after

    def _fallback(self, token: BearerToken, now: datetime) -> str:
        """The token to use when this caller must not start its own exchange."""
        if not token.is_expired(now):
            return token.access_token
        reason = self._last_error.message if self._last_error else "refresh in progress failed"
        raise TokenExchangeError(f"access token expired and refresh failed: {reason}")

    def _fetch(self) -> BearerToken:
        self._attempts += 1
        try:
            assertion = self.signer.sign()
            token = self.exchanger.exchange(assertion.token)
        except RelayError:
            token_refreshes.labels(status=TokenRefreshStatus.FAILURE.value).inc()
            raise

        token_refreshes.labels(status=TokenRefreshStatus.SUCCESS.value).inc()
        self._retry_after = None
        self._last_error = None
        self._warned_stale = False
        return token
