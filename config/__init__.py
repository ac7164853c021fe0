"""Configuration management for Vertex Relay.

Configuration is loaded with Pydantic BaseSettings from environment variables
and .env files. A missing or invalid required value is reported as ConfigError.
"""

from typing import Any

from pydantic import ValidationError

from utils import ConfigError

from .config import (
    ApplicationConfig,
    DatabaseConfig,
    MonitoringConfig,
    RelayConfig,
    ServerConfig,
    UpstreamConfig,
    str_to_bool,
)


def load_config(**overrides: Any) -> ApplicationConfig:
    """Load and validate application configuration.

    Raises:
        ConfigError: naming every missing or invalid setting.
    """
    try:
        return ApplicationConfig(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            problems.append(f"{location}: {error['msg']}")
        raise ConfigError("Invalid configuration: " + "; ".join(problems)) from e


__all__ = [
    "ApplicationConfig",
    "DatabaseConfig",
    "MonitoringConfig",
    "RelayConfig",
    "ServerConfig",
    "UpstreamConfig",
    "load_config",
    "str_to_bool",
]
