"""Configuration system for Query Bridge.

Loads configuration from:
1. JSON file specified by QUERY_BRIDGE_CONFIG env var
2. Environment variable overrides with QUERY_BRIDGE_ prefix
   - Nested keys use double underscore: QUERY_BRIDGE_DATABASE__DSN
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(str, Enum):
    """Supported log renderers."""

    JSON = "json"
    CONSOLE = "console"


class DatabaseConfig(BaseSettings):
    """Configuration for the database each request connects to."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_DATABASE__",
        env_nested_delimiter="__",
    )

    dsn: str | None = Field(
        default=None,
        description="Connection string: DuckDB database path or ':memory:'",
    )
    read_only: bool = Field(default=False, description="Open sessions in read-only mode")


class DuckDBConfig(BaseSettings):
    """Configuration applied to every DuckDB session."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_DUCKDB__",
        env_nested_delimiter="__",
    )

    memory_limit: str = Field(
        default="4GB", description="DuckDB memory limit (e.g., '4GB', '512MB')"
    )
    threads: int = Field(default=4, ge=1, description="Number of DuckDB threads")


class ServerConfig(BaseSettings):
    """Configuration for the HTTP server."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_SERVER__",
        env_nested_delimiter="__",
    )

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")


class LoggingConfig(BaseSettings):
    """Configuration for structured logging."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_LOGGING__",
        env_nested_delimiter="__",
    )

    level: str = Field(default="INFO", description="Root log level")
    format: LogFormat = Field(default=LogFormat.JSON, description="Log renderer")


class OTelConfig(BaseSettings):
    """Configuration for OpenTelemetry."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_OTEL__",
        env_nested_delimiter="__",
    )

    enabled: bool = Field(default=False, description="Enable OpenTelemetry instrumentation")
    endpoint: str = Field(
        default="http://localhost:4317", description="OTLP exporter endpoint"
    )
    insecure: bool = Field(default=True, description="Use an insecure gRPC channel")
    service_name: str = Field(default="query-bridge", description="Service name for traces")


class Settings(BaseSettings):
    """Root configuration for Query Bridge."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_BRIDGE_",
        env_nested_delimiter="__",
        env_file=None,
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    duckdb: DuckDBConfig = Field(default_factory=DuckDBConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    otel: OTelConfig = Field(default_factory=OTelConfig)

    @model_validator(mode="before")
    @classmethod
    def load_from_json_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Load configuration from JSON file if QUERY_BRIDGE_CONFIG is set."""
        import os

        config_path = os.environ.get("QUERY_BRIDGE_CONFIG")
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            with path.open() as f:
                file_config = json.load(f)
            for key, value in file_config.items():
                if key not in data:
                    data[key] = value
                elif isinstance(value, dict) and isinstance(data.get(key), dict):
                    data[key] = {**value, **data[key]}
        return data


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings, optionally from a specific config file.

    Args:
        config_path: Path to JSON config file. If None, uses QUERY_BRIDGE_CONFIG env var.

    Returns:
        Loaded Settings instance.
    """
    import os

    if config_path is not None:
        os.environ["QUERY_BRIDGE_CONFIG"] = str(config_path)

    global _settings
    _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
