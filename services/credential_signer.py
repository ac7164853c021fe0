"""Service-account assertion signing for Vertex Relay.

Builds the RS256 JWT assertion that the Google OAuth2 token endpoint accepts
for the jwt-bearer grant.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from models import SignedAssertion
from utils import CredentialError, create_contextual_logger

TOKEN_AUDIENCE = "https://www.googleapis.com/oauth2/v4/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
ASSERTION_LIFETIME = timedelta(hours=1)


def load_rsa_private_key(private_key_pem: str) -> RSAPrivateKey:
    """Parse an unencrypted PEM private key, insisting on RSA."""
    try:
        key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CredentialError(f"parsing private key: {e}") from e

    if not isinstance(key, RSAPrivateKey):
        raise CredentialError(f"private key must be RSA, got {type(key).__name__}")
    return key


class CredentialSigner:
    """Signs assertions for one service account."""

    def __init__(self, client_email: str, private_key_pem: str, private_key_id: str) -> None:
        if not client_email:
            raise CredentialError("client email is required")
        if not private_key_id:
            raise CredentialError("private key id is required")

        self.client_email = client_email
        self.private_key_id = private_key_id
        self._private_key = load_rsa_private_key(private_key_pem)
        self.logger = create_contextual_logger(__name__, service="credential_signer")

    def sign(self, now: Optional[datetime] = None) -> SignedAssertion:
        """Create a fresh assertion valid for one hour from ``now``."""
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + ASSERTION_LIFETIME
        claims = {
            "iss": self.client_email,
            "aud": TOKEN_AUDIENCE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "scope": CLOUD_PLATFORM_SCOPE,
        }

        try:
            token = jwt.encode(
                claims,
                self._private_key,
                algorithm="RS256",
                headers={"kid": self.private_key_id},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise CredentialError(f"generating JWT: {e}") from e

        self.logger.debug(
            "Signed service account assertion",
            issuer=self.client_email,
            key_id=self.private_key_id,
            expires_at=expires_at.isoformat(),
        )
        return SignedAssertion(token=token, issued_at=issued_at, expires_at=expires_at)
