"""Prometheus metrics for the query engine."""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    start_http_server,
)


class MetricsRegistry:
    """Registry of all query engine metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry.

        Args:
            registry: Collector registry to register with; tests pass a
                private one so registrations do not collide.
        """
        self._registry = registry or REGISTRY

        # Query metrics
        self.queries_total = Counter(
            "tabular_queries_total",
            "Total number of queries executed",
            ["status"],  # success, error
            registry=self._registry,
        )

        self.query_latency_seconds = Histogram(
            "tabular_query_latency_seconds",
            "Query latency in seconds",
            ["query_type"],  # select, aggregate, explain, pivot
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
            registry=self._registry,
        )

        self.query_errors_total = Counter(
            "tabular_query_errors_total",
            "Total number of failed queries by error kind",
            ["error_kind"],  # parse, schema, type, plan, pivot
            registry=self._registry,
        )

        # Execution metrics
        self.rows_scanned_total = Counter(
            "tabular_rows_scanned_total",
            "Total rows read from source tables",
            registry=self._registry,
        )

        self.partitions_executed_total = Counter(
            "tabular_partitions_executed_total",
            "Total partial executions run by worker pools",
            registry=self._registry,
        )

        # Ingestion metrics
        self.ingestion_cell_errors_total = Counter(
            "tabular_ingestion_cell_errors_total",
            "Total values stored as Null because of a type mismatch",
            registry=self._registry,
        )

        # Engine info
        self.info = Info(
            "tabular_engine",
            "Query engine information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(
    port: int | None = None, registry: CollectorRegistry | None = None
) -> MetricsRegistry:
    """
    Set up Prometheus metrics, optionally serving them over HTTP.

    Args:
        port: Port for the metrics HTTP server; None skips the server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from tabular_engine import __version__

    _metrics.info.info({"version": __version__})

    if port is not None:
        start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
