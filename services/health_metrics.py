"""Health and metrics service for Vertex Relay.

This service answers the liveness probe and renders Prometheus metrics.
"""

from typing import TYPE_CHECKING, Any, Dict

from prometheus_client import Counter, generate_latest

from utils import StorageError, create_contextual_logger

if TYPE_CHECKING:
    from .quota_ledger import QuotaLedger

relay_requests = Counter(
    "relay_requests_total",
    "Relayed requests by terminal outcome",
    ["outcome"],
)

stream_lines = Counter(
    "relay_stream_lines_total",
    "Lines copied from upstream responses to clients",
)

stream_interruptions = Counter(
    "relay_stream_interruptions_total",
    "Upstream streams that ended early because of a read or write failure",
)

token_refreshes = Counter(
    "token_refreshes_total",
    "Service account token exchanges",
    ["status"],
)


class HealthMetricsService:
    """Liveness and metrics for the relay."""

    def __init__(self, ledger: "QuotaLedger") -> None:
        self.ledger = ledger
        self.logger = create_contextual_logger(__name__, service="health_metrics")

    def check_liveness(self) -> Dict[str, Any]:
        """Ping the ledger's database.

        Returns a dict with ``healthy`` and, on failure, the ``error`` seen.
        """
        try:
            self.ledger.ping()
        except StorageError as e:
            self.logger.warning("Liveness check failed", error=e.message)
            return {"healthy": False, "error": e.message}
        return {"healthy": True}

    def get_prometheus_metrics(self) -> bytes:
        return generate_latest()
