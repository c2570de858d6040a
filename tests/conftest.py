"""Pytest configuration and fixtures for tabular_engine tests."""

from __future__ import annotations

from typing import Any, Generator

import pytest
from prometheus_client import CollectorRegistry

from tabular_engine.adapters.outbound import SerialWorkerPool
from tabular_engine.application import QueryEngine
from tabular_engine.domain.entities import Table
from tabular_engine.infrastructure.config import EngineConfig, ExecutionConfig
from tabular_engine.infrastructure.metrics import MetricsRegistry

SALES_RECORDS: list[dict[str, Any]] = [
    {"category": "Electronics", "sales": 1200, "region": "North"},
    {"category": "Clothing", "sales": 800, "region": "South"},
    {"category": "Electronics", "sales": 1500, "region": "East"},
    {"category": "Food", "sales": 600, "region": "West"},
    {"category": "Clothing", "sales": 950, "region": "North"},
]


@pytest.fixture
def sales_records() -> list[dict[str, Any]]:
    """Provide the five-row sales dataset as plain records."""
    return [dict(r) for r in SALES_RECORDS]


@pytest.fixture
def sales_table(sales_records: list[dict[str, Any]]) -> Table:
    """Provide the sales dataset as a table."""
    return Table.from_records(sales_records)


@pytest.fixture
def test_config() -> EngineConfig:
    """Provide a test configuration with small batches."""
    return EngineConfig(
        execution=ExecutionConfig(
            batch_size=2,  # Exercise multi-batch paths on tiny tables
            default_partitions=1,
            max_workers=2,
        ),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def engine(
    test_config: EngineConfig,
    metrics_registry: MetricsRegistry,
    sales_table: Table,
) -> Generator[QueryEngine, None, None]:
    """Provide a query engine with the sales table registered as ``data``."""
    e = QueryEngine(config=test_config, metrics=metrics_registry)
    e.register_table("data", sales_table)
    yield e
    e.close()


@pytest.fixture
def serial_engine(
    test_config: EngineConfig,
    metrics_registry: MetricsRegistry,
    sales_table: Table,
) -> QueryEngine:
    """Provide a query engine whose partitions run in the calling thread."""
    e = QueryEngine(
        config=test_config, metrics=metrics_registry, worker_pool=SerialWorkerPool()
    )
    e.register_table("data", sales_table)
    return e


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "slow: Slow tests")
