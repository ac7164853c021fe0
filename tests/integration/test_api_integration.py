"""Integration tests for the relay's HTTP surface."""

from unittest.mock import Mock, patch

import pytest
import requests
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from conftest import build_test_app, seed_keys

RELAY_BODY = b'{"anthropic_version": "vertex-2023-10-16", "messages": [], "stream": true}'


class TestApiIntegration:
    """Status codes, headers and bodies for every rejection path."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    async def test_non_post_is_rejected(self, test_client: AsyncClient, method: str) -> None:
        response = await test_client.request(method, "/", headers={"x-api-key": "abc"})

        assert response.status_code == 405
        assert response.text == "Method not allowed"
        assert response.headers["allow"] == "POST"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND"])
    async def test_unrouted_method_is_rejected_as_text(self, test_client: AsyncClient, method: str) -> None:
        labels = {"outcome": "method_not_allowed"}
        before = REGISTRY.get_sample_value("relay_requests_total", labels) or 0.0

        response = await test_client.request(method, "/", headers={"x-api-key": "abc"})

        assert response.status_code == 405
        assert response.text == "Method not allowed"
        assert response.headers["allow"] == "POST"
        assert REGISTRY.get_sample_value("relay_requests_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_router_errors_are_plain_text(self, test_client: AsyncClient) -> None:
        response = await test_client.post("/metrics")

        assert response.status_code == 405
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_missing_key_does_not_touch_ledger(
        self, mock_config, mock_token_provider, upstream_client
    ) -> None:
        ledger = Mock()
        app = build_test_app(mock_config, ledger, mock_token_provider, upstream_client)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/", content=RELAY_BODY)

        assert response.status_code == 401
        assert response.text == "API key is required"
        ledger.try_consume.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_key(self, test_client: AsyncClient) -> None:
        response = await test_client.post("/", content=RELAY_BODY, headers={"x-api-key": "nope"})

        assert response.status_code == 401
        assert response.text == "Invalid or expired API key"
        assert "x-ratelimit-remaining" not in response.headers

    @pytest.mark.asyncio
    async def test_exhausted_key(self, test_client: AsyncClient, ledger) -> None:
        seed_keys(ledger, spent=0)

        response = await test_client.post("/", content=RELAY_BODY, headers={"x-api-key": "spent"})

        assert response.status_code == 403
        assert response.text == "API key has no remaining calls"
        assert ledger.get_record("spent").remaining_calls == 0

    @pytest.mark.asyncio
    async def test_unreachable_store_denies_and_fails_health(
        self, mock_config, unreachable_ledger, mock_token_provider, upstream_client
    ) -> None:
        app = build_test_app(mock_config, unreachable_ledger, mock_token_provider, upstream_client)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            relayed = await client.post("/", content=RELAY_BODY, headers={"x-api-key": "abc"})
            health = await client.get("/health")

        assert relayed.status_code == 401
        assert relayed.text == "Invalid or expired API key"
        assert health.status_code == 503
        assert health.text == "Database connection failed"
        mock_token_provider.get_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_ok(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.text == "OK"

    @pytest.mark.asyncio
    async def test_metrics(self, test_client: AsyncClient) -> None:
        await test_client.get("/")

        response = await test_client.get("/metrics")

        assert response.status_code == 200
        assert "relay_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_oversized_body(self, test_client: AsyncClient, ledger, mock_config) -> None:
        seed_keys(ledger, abc=5)
        mock_config.max_request_body_bytes = 16

        response = await test_client.post("/", content=b"x" * 64, headers={"x-api-key": "abc"})

        assert response.status_code == 413
        assert response.headers["x-ratelimit-remaining"] == "4"

    @pytest.mark.asyncio
    async def test_upstream_transport_error(self, test_client: AsyncClient, ledger) -> None:
        seed_keys(ledger, abc=2)

        with patch("services.upstream_client.requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("refused")
            response = await test_client.post("/", content=RELAY_BODY, headers={"x-api-key": "abc"})

        assert response.status_code == 500
        assert response.text == "Upstream request failed"
        assert response.headers["x-ratelimit-remaining"] == "1"
        assert "refused" not in response.text

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["x-correlation-id"] == "req-123"

    @pytest.mark.asyncio
    async def test_correlation_id_generated(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health")

        assert response.headers["x-correlation-id"]
