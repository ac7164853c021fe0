"""Service layer for Vertex Relay."""

from .credential_signer import CredentialSigner
from .health_metrics import HealthMetricsService
from .quota_ledger import QuotaLedger, create_ledger_engine
from .relay import ForwardingGateway
from .token_exchange import TokenExchanger
from .token_provider import TokenProvider
from .upstream_client import UpstreamClient

__all__ = [
    "CredentialSigner",
    "ForwardingGateway",
    "HealthMetricsService",
    "QuotaLedger",
    "TokenExchanger",
    "TokenProvider",
    "UpstreamClient",
    "create_ledger_engine",
]
