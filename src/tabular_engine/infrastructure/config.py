"""Configuration management for the query engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutionConfig(BaseModel):
    """Query execution configuration."""

    batch_size: int = Field(
        default=1024, ge=1, description="Rows per batch passed between operators"
    )
    default_partitions: int = Field(
        default=1, ge=1, description="Row partitions per query when not given"
    )
    max_workers: int = Field(
        default=4, ge=1, le=256, description="Worker threads for partition execution"
    )
    optimize: bool = Field(default=True, description="Run the plan optimizer")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(
        default="tabular_engine", description="Service name for tracing"
    )
    metrics_port: int | None = Field(
        default=None, ge=1, le=65535, description="Prometheus metrics port (None disables)"
    )


class EngineConfig(BaseSettings):
    """Main configuration for the query engine.

    Values come from ``TABULAR_ENGINE_*`` environment variables, with ``__``
    separating nested sections, e.g. ``TABULAR_ENGINE_EXECUTION__BATCH_SIZE``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TABULAR_ENGINE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    return EngineConfig()
