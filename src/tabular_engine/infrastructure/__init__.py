"""Infrastructure layer - cross-cutting concerns."""

from tabular_engine.infrastructure.config import (
    EngineConfig,
    ExecutionConfig,
    ObservabilityConfig,
    get_config,
)
from tabular_engine.infrastructure.logging import (
    get_logger,
    query_logger,
    setup_logging,
)
from tabular_engine.infrastructure.metrics import (
    MetricsRegistry,
    get_metrics,
    setup_metrics,
)
from tabular_engine.infrastructure.tracing import get_tracer, setup_tracing, trace_span

__all__ = [
    "EngineConfig",
    "ExecutionConfig",
    "ObservabilityConfig",
    "get_config",
    "setup_logging",
    "get_logger",
    "query_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
