"""OAuth2 jwt-bearer token exchange for Vertex Relay.

This module trades a signed assertion for a short-lived access token.
"""

from datetime import datetime
from typing import Optional

import requests

from models import BearerToken
from utils import TokenExchangeError, create_contextual_logger

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
DEFAULT_TOKEN_LIFETIME = 3600


class TokenExchanger:
    """Client for the token endpoint. One POST per exchange, no retry."""

    def __init__(self, token_url: str, timeout: float = 30) -> None:
        self.token_url = token_url
        self.timeout = timeout
        self.logger = create_contextual_logger(__name__, service="token_exchanger")

    def exchange(self, assertion: str, now: Optional[datetime] = None) -> BearerToken:
        """Exchange ``assertion`` for a bearer token.

        Raises:
            TokenExchangeError: on transport failure, a non-200 status, or a
                body that is not JSON carrying ``access_token``.
        """
        try:
            response = requests.post(
                self.token_url,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            self.logger.error("Token exchange request failed", error=str(e))
            raise TokenExchangeError(f"sending request: {e}") from e

        if response.status_code != requests.codes.ok:
            self.logger.error(
                "Token endpoint rejected assertion",
                status_code=response.status_code,
            )
            raise TokenExchangeError(
                f"token exchange failed: status={response.status_code}, body={response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                f"parsing response: {e}", status_code=response.status_code, body=response.text
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise TokenExchangeError(
                "parsing response: access_token missing",
                status_code=response.status_code,
                body=response.text,
            )

        lifetime = payload.get("expires_in", DEFAULT_TOKEN_LIFETIME)
        try:
            lifetime = int(lifetime)
        except (TypeError, ValueError):
            lifetime = DEFAULT_TOKEN_LIFETIME

        token = BearerToken.from_lifetime(access_token, lifetime, now=now)
        self.logger.info("Obtained access token", expires_at=token.expires_at.isoformat())
        return token
