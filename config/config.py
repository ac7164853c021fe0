"""Configuration classes for Vertex Relay.

This module contains all configuration classes organized by domain.
Configuration is loaded from environment variables and .env files; the
variable names follow the deployment's existing .env layout.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def str_to_bool(value: Any) -> bool:
    """Convert the usual string spellings of a flag to a boolean.

    Examples:
        >>> str_to_bool("true")
        True
        >>> str_to_bool("0")
        False
        >>> str_to_bool("enabled")
        True
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on", "enabled")
    return bool(value)


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    server_port: int = Field(..., alias="APP_PORT", ge=1, le=65535)
    server_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    server_idle_timeout: int = Field(default=60, alias="SERVER_IDLE_TIMEOUT_SECONDS", gt=0)
    worker_threads: int = Field(default=32, alias="WORKER_THREADS", gt=0)


class UpstreamConfig(BaseSettings):
    """Google Cloud service account and Vertex AI endpoint settings."""

    gc_project_id: str = Field(..., alias="GC_PROJECT_ID", min_length=1)
    gc_client_email: str = Field(..., alias="GC_CLIENT_EMAIL", min_length=1)
    gc_private_key_id: str = Field(..., alias="GC_PRIVATE_KEY_ID", min_length=1)
    gc_private_key: str = Field(..., alias="GC_PRIVATE_KEY", min_length=1)

    gc_region: str = Field(default="us-east5", alias="GC_REGION")
    gc_model: str = Field(default="claude-3-5-sonnet@20240620", alias="GC_MODEL")
    gc_publisher: str = Field(default="anthropic", alias="GC_PUBLISHER")

    token_url: str = "https://www.googleapis.com/oauth2/v4/token"
    token_timeout: int = Field(default=30, alias="TOKEN_TIMEOUT_SECONDS", gt=0)
    upstream_connect_timeout: float = Field(default=10.0, alias="UPSTREAM_CONNECT_TIMEOUT_SECONDS", gt=0)
    upstream_read_timeout: float = Field(default=300.0, alias="UPSTREAM_READ_TIMEOUT_SECONDS", gt=0)

    @field_validator("gc_private_key")
    @classmethod
    def normalize_private_key(cls, v: str) -> str:
        """Turn escaped newlines from single-line env values into real ones."""
        return v.replace("\\n", "\n")


class DatabaseConfig(BaseSettings):
    """PostgreSQL connection and pool settings for the quota ledger."""

    db_user: str = Field(..., alias="DB_USER", min_length=1)
    db_password: str = Field(..., alias="DB_PASSWORD", min_length=1)
    db_name: str = Field(..., alias="DB_NAME", min_length=1)
    db_port: int = Field(..., alias="DB_PORT", ge=1, le=65535)
    db_host: str = Field(default="localhost", alias="DB_HOST")
    db_sslmode: str = Field(default="disable", alias="DB_SSLMODE")

    db_pool_size: int = Field(default=25, alias="DB_POOL_SIZE", gt=0)
    db_pool_recycle: int = Field(default=300, alias="DB_POOL_RECYCLE_SECONDS", gt=0)
    db_pool_timeout: int = Field(default=10, alias="DB_POOL_TIMEOUT_SECONDS", gt=0)


class MonitoringConfig(BaseSettings):
    """Logging settings."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_json", mode="before")
    @classmethod
    def validate_log_json(cls, v: Any) -> bool:
        return str_to_bool(v)


class RelayConfig(BaseSettings):
    """Request handling and token lifecycle settings."""

    api_key_header: str = "x-api-key"
    max_request_body_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_REQUEST_BODY_BYTES", gt=0)
    token_refresh_enabled: bool = Field(default=True, alias="TOKEN_REFRESH_ENABLED")
    token_refresh_margin: int = Field(default=300, alias="TOKEN_REFRESH_MARGIN_SECONDS", ge=0)
    token_refresh_retry: int = Field(default=10, alias="TOKEN_REFRESH_RETRY_SECONDS", ge=0)

    @field_validator("token_refresh_enabled", mode="before")
    @classmethod
    def validate_token_refresh_enabled(cls, v: Any) -> bool:
        return str_to_bool(v)


class ApplicationConfig(
    ServerConfig,
    UpstreamConfig,
    DatabaseConfig,
    MonitoringConfig,
    RelayConfig,
    BaseSettings,
):
    """Main application configuration that combines all configuration domains."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def upstream_url(self) -> str:
        """The streamRawPredict endpoint for the configured model."""
        return (
            f"https://{self.gc_region}-aiplatform.googleapis.com/v1"
            f"/projects/{self.gc_project_id}/locations/{self.gc_region}"
            f"/publishers/{self.gc_publisher}/models/{self.gc_model}:streamRawPredict"
        )
