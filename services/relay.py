"""Forwarding gateway for Vertex Relay.

Runs one inbound request through method check, key validation, quota
consumption, upstream forwarding and line-by-line streaming of the answer.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Optional

import requests
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect

from config import ApplicationConfig
from models import RelayOutcome
from utils import (
    KeyNotFound,
    MethodNotAllowed,
    MissingApiKey,
    QuotaExhausted,
    RelayError,
    RequestBodyTooLarge,
    RequestBodyUnreadable,
    StorageError,
    StreamInterrupted,
    UpstreamTransportError,
    create_contextual_logger,
    log_exception,
)
from .health_metrics import relay_requests, stream_interruptions, stream_lines
from .quota_ledger import QuotaLedger
from .token_provider import TokenProvider
from .upstream_client import UpstreamClient

ACCEPTED_METHOD = "POST"
REMAINING_HEADER = "X-RateLimit-Remaining"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_OUTCOMES = {
    MethodNotAllowed: RelayOutcome.METHOD_NOT_ALLOWED,
    MissingApiKey: RelayOutcome.MISSING_KEY,
    KeyNotFound: RelayOutcome.UNAUTHORIZED,
    StorageError: RelayOutcome.UNAUTHORIZED,
    QuotaExhausted: RelayOutcome.QUOTA_EXHAUSTED,
    RequestBodyTooLarge: RelayOutcome.BAD_REQUEST,
    RequestBodyUnreadable: RelayOutcome.BAD_REQUEST,
}


class ForwardingGateway:
    """Quota-checked streaming relay to the configured model endpoint."""

    def __init__(
        self,
        config: ApplicationConfig,
        ledger: QuotaLedger,
        token_provider: TokenProvider,
        upstream: UpstreamClient,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.token_provider = token_provider
        self.upstream = upstream
        self.executor = executor
        self.logger = create_contextual_logger(__name__, service="forwarding_gateway")

    async def handle(self, request: Request) -> StreamingResponse:
        """Relay ``request`` or raise the RelayError describing why not."""
        try:
            if request.method != ACCEPTED_METHOD:
                raise MethodNotAllowed(headers={"Allow": ACCEPTED_METHOD})

            api_key = request.headers.get(self.config.api_key_header)
            if not api_key:
                raise MissingApiKey()

            remaining = await self.authorize(api_key)
            try:
                body = await self.read_body(request)
                response = await self.forward(body)
            except RelayError as e:
                e.headers.setdefault(REMAINING_HEADER, str(remaining))
                raise
        except RelayError as e:
            self.record_rejection(e)
            raise

        relay_requests.labels(outcome=RelayOutcome.STREAMED.value).inc()
        headers = {**STREAM_HEADERS, REMAINING_HEADER: str(remaining)}
        return StreamingResponse(
            self.relay_stream(response),
            status_code=response.status_code,
            media_type="text/event-stream",
            headers=headers,
        )

    def record_rejection(self, error: RelayError) -> None:
        """Count and log a request that ends with ``error`` instead of a stream."""
        outcome = _OUTCOMES.get(type(error), RelayOutcome.UPSTREAM_FAILED)
        relay_requests.labels(outcome=outcome.value).inc()
        self.logger.info(
            "Relay request rejected",
            outcome=outcome.value,
            status_code=error.status_code,
            reason=error.message,
        )

    async def authorize(self, api_key: str) -> int:
        """Consume one call for ``api_key`` and return the calls left.

        Ledger failures deny the request.
        """
        try:
            remaining = await self._run_blocking(self.ledger.try_consume, api_key)
        except StorageError as e:
            self.logger.error("Quota ledger unavailable, denying request", error=e.message)
            raise

        if remaining is None:
            raise QuotaExhausted()
        return remaining

    async def read_body(self, request: Request) -> bytes:
        """Read the whole request body, refusing anything over the configured bound."""
        limit = self.config.max_request_body_bytes

        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError as e:
                raise RequestBodyUnreadable(f"invalid Content-Length {declared!r}") from e
            if declared_size > limit:
                raise RequestBodyTooLarge(f"declared body of {declared_size} bytes exceeds {limit}")

        body = bytearray()
        try:
            async for chunk in request.stream():
                body.extend(chunk)
                if len(body) > limit:
                    raise RequestBodyTooLarge(f"body exceeds {limit} bytes")
        except ClientDisconnect as e:
            raise RequestBodyUnreadable("client disconnected while sending body") from e

        self.logger.info("Request body received", size_bytes=len(body))
        self.logger.debug("Request body", body=body.decode("utf-8", errors="replace"))
        return bytes(body)

    async def forward(self, body: bytes) -> requests.Response:
        """Send ``body`` upstream with the current access token."""
        access_token = await self._run_blocking(self.token_provider.get_token)
        try:
            return await self._run_blocking(self.upstream.open_stream, body, access_token)
        except UpstreamTransportError as e:
            log_exception(self.logger, e, "Upstream call failed", url=self.upstream.url)
            raise

    def relay_stream(self, response: requests.Response) -> Iterator[bytes]:
        """Copy the upstream body to the client one line per chunk.

        Each yielded line becomes its own ASGI body message, so the server
        sends it immediately instead of waiting for the full response.
        """
        lines = 0
        completed = False
        interrupted = False
        try:
            for line in self.upstream.iter_lines(response):
                yield line
                lines += 1
                stream_lines.inc()
            completed = True
        except StreamInterrupted as e:
            interrupted = True
            stream_interruptions.inc()
            log_exception(self.logger, e, "Upstream stream interrupted", lines_relayed=lines)
        finally:
            response.close()
            if not completed and not interrupted:
                stream_interruptions.inc()
                self.logger.warning("Client went away before stream ended", lines_relayed=lines)
            self.logger.info("Stream finished", lines_relayed=lines, completed=completed)

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)
