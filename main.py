"""Main application entry point for Vertex Relay."""

import sys
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import ApplicationConfig, load_config
from middleware import CorrelationMiddleware
from routers import health_router, metrics_router, relay_router
from services import (
    CredentialSigner,
    ForwardingGateway,
    HealthMetricsService,
    QuotaLedger,
    TokenExchanger,
    TokenProvider,
    UpstreamClient,
    create_ledger_engine,
)
from services.relay import ACCEPTED_METHOD
from utils import ConfigError, MethodNotAllowed, RelayError, configure_logging, get_logger, log_exception

logger = get_logger(__name__)


def build_token_provider(config: ApplicationConfig) -> TokenProvider:
    signer = CredentialSigner(config.gc_client_email, config.gc_private_key, config.gc_private_key_id)
    exchanger = TokenExchanger(config.token_url, timeout=config.token_timeout)
    return TokenProvider(
        signer,
        exchanger,
        refresh_margin_seconds=config.token_refresh_margin,
        refresh_retry_seconds=config.token_refresh_retry,
        refresh_enabled=config.token_refresh_enabled,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build every service before serving; any failure aborts startup."""
    config = load_config()
    configure_logging(config.log_level, json_output=config.log_json)

    # Blocking ledger and upstream calls run here, off the event loop.
    executor = ThreadPoolExecutor(max_workers=config.worker_threads, thread_name_prefix="relay_worker")
    ledger = QuotaLedger(create_ledger_engine(config))

    try:
        logger.info("Starting services...")
        ledger.ping()
        ledger.ensure_schema()

        token_provider = build_token_provider(config)
        token = token_provider.prime()
        logger.info("Service account token ready", expires_at=token.expires_at.isoformat())

        upstream = UpstreamClient(
            config.upstream_url,
            connect_timeout=config.upstream_connect_timeout,
            read_timeout=config.upstream_read_timeout,
        )
        app.state.config = config
        app.state.gateway = ForwardingGateway(config, ledger, token_provider, upstream, executor)
        app.state.health_metrics = HealthMetricsService(ledger)
        logger.info("Server is ready", port=config.server_port, upstream=config.upstream_url)
    except RelayError as e:
        log_exception(logger, e, "Startup failed")
        executor.shutdown(wait=False)
        ledger.dispose()
        raise

    try:
        yield
    finally:
        logger.info("Shutting down services...")
        executor.shutdown(wait=True)
        ledger.dispose()
        logger.info("All services stopped successfully.")


async def relay_error_handler(request: Request, exc: RelayError) -> PlainTextResponse:
    return PlainTextResponse(exc.public_message, status_code=exc.status_code, headers=exc.headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    """Render router-level errors as plain text, like every other relay response."""
    if exc.status_code == 405 and request.url.path == "/":
        # Methods the relay route does not list never reach the gateway.
        error = MethodNotAllowed(headers={"Allow": ACCEPTED_METHOD})
        request.app.state.gateway.record_rejection(error)
        return await relay_error_handler(request, error)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    log_exception(logger, exc, "Unhandled error", path=request.url.path)
    return PlainTextResponse("Internal server error", status_code=500)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Vertex Relay",
        description="Quota-checked streaming relay to Vertex AI model endpoints",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(CorrelationMiddleware)
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(relay_router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    try:
        config = load_config()
    except ConfigError as e:
        configure_logging("INFO", json_output=False)
        logger.critical("Failed to load configuration", error=e.message)
        sys.exit(1)

    configure_logging(config.log_level, json_output=config.log_json)
    uvicorn.run(
        app,
        host=config.server_host,
        port=config.server_port,
        timeout_keep_alive=config.server_idle_timeout,
    )


if __name__ == "__main__":
    main()
