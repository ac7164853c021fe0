"""Test utilities and fixtures for Vertex Relay tests."""

import os
import sys
from typing import AsyncGenerator, Iterable, List
from unittest.mock import Mock

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event, insert
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import ApplicationConfig
from main import http_error_handler, relay_error_handler
from middleware import CorrelationMiddleware
from routers import health_router, metrics_router, relay_router
from services import ForwardingGateway, HealthMetricsService, QuotaLedger, UpstreamClient
from services.quota_ledger import api_keys
from utils import RelayError

TEST_ENV = {
    "APP_PORT": "8080",
    "GC_PROJECT_ID": "test-project",
    "GC_CLIENT_EMAIL": "relay@test-project.iam.gserviceaccount.com",
    "GC_PRIVATE_KEY_ID": "test-key-id",
    "GC_PRIVATE_KEY": "placeholder",
    "DB_USER": "relay",
    "DB_PASSWORD": "secret",
    "DB_NAME": "relay",
    "DB_PORT": "5432",
}


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def relay_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> dict:
    """Export a complete configuration and run from an empty directory so no .env leaks in."""
    monkeypatch.chdir(tmp_path)
    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    return dict(TEST_ENV)


@pytest.fixture
def mock_config(relay_env: dict) -> ApplicationConfig:
    return ApplicationConfig()


def _sqlite_engine(path: str) -> Engine:
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30})

    # Take the write lock when the transaction starts, as a row lock would in PostgreSQL.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest.fixture
def ledger(tmp_path) -> QuotaLedger:
    """A ledger backed by a throwaway SQLite file."""
    quota_ledger = QuotaLedger(_sqlite_engine(str(tmp_path / "ledger.db")))
    quota_ledger.ensure_schema()
    yield quota_ledger
    quota_ledger.dispose()


@pytest.fixture
def unreachable_ledger(tmp_path) -> QuotaLedger:
    """A ledger whose database file lives in a directory that does not exist."""
    quota_ledger = QuotaLedger(_sqlite_engine(str(tmp_path / "missing" / "ledger.db")))
    yield quota_ledger
    quota_ledger.dispose()


def seed_keys(quota_ledger: QuotaLedger, **remaining_by_key: int) -> None:
    with quota_ledger.engine.begin() as conn:
        conn.execute(
            insert(api_keys),
            [{"key": key, "remaining_calls": calls} for key, calls in remaining_by_key.items()],
        )


def make_upstream_response(chunks: Iterable[bytes], status_code: int = 200) -> Mock:
    """A stand-in for a streamed requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.iter_content = Mock(return_value=iter(list(chunks)))
    response.close = Mock()
    return response


@pytest.fixture
def mock_token_provider() -> Mock:
    provider = Mock()
    provider.get_token = Mock(return_value="test-access-token")
    return provider


@pytest.fixture
def upstream_client() -> UpstreamClient:
    return UpstreamClient(
        "https://us-east5-aiplatform.googleapis.com/v1/projects/test-project/locations/us-east5"
        "/publishers/anthropic/models/claude-3-5-sonnet@20240620:streamRawPredict",
        connect_timeout=1.0,
        read_timeout=1.0,
    )


def build_test_app(config: ApplicationConfig, quota_ledger: QuotaLedger, token_provider, upstream) -> FastAPI:
    """The production router stack without the startup lifespan."""
    app = FastAPI(title="Vertex Relay")
    app.add_middleware(CorrelationMiddleware)
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(relay_router)
    app.state.config = config
    app.state.gateway = ForwardingGateway(config, quota_ledger, token_provider, upstream)
    app.state.health_metrics = HealthMetricsService(quota_ledger)
    return app


@pytest.fixture
def app_with_services(mock_config, ledger, mock_token_provider, upstream_client) -> FastAPI:
    return build_test_app(mock_config, ledger, mock_token_provider, upstream_client)


@pytest_asyncio.fixture
async def test_client(app_with_services: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app_with_services), base_url="http://test") as client:
        yield client


def sse_lines(*events: str) -> List[bytes]:
    return [f"{event}\n".encode("utf-8") for event in events]
