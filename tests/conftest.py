"""
Pytest configuration and shared fixtures

Provides common fixtures for configuration, the metrics registry and a REST
client backed by httpx.MockTransport.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest
from prometheus_client import CollectorRegistry

from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.core.collector_metrics import ExporterMetrics
from ado_exporter.core.registry import MetricsRegistry
from ado_exporter.domain import AgentPool, Project
from ado_exporter.secure_config import AzureDevOpsConfig, ExporterConfig, LimitConfig, resolve_scrape_configs

# ===== Configuration Fixtures =====


@pytest.fixture
def sample_timestamp():
    """Provide a consistent timestamp for testing"""
    return datetime(2026, 2, 7, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def ado_config():
    """Provide a valid Azure DevOps configuration"""
    return AzureDevOpsConfig(organization="test-org", access_token="real-token-value")


@pytest.fixture
def exporter_config(ado_config):
    """Provide an ExporterConfig with every collector enabled"""
    return ExporterConfig(
        azure_devops=ado_config,
        scrape=resolve_scrape_configs(1800, 30, {}, concurrency=4),
    )


# ===== Registry Fixtures =====


@pytest.fixture
def prometheus_registry():
    return CollectorRegistry()


@pytest.fixture
def exporter_metrics(prometheus_registry):
    return ExporterMetrics(prometheus_registry)


@pytest.fixture
def metrics_registry(prometheus_registry):
    return MetricsRegistry(prometheus_registry)


# ===== Resource Fixtures =====


@pytest.fixture
def sample_project(sample_timestamp):
    """Provide a sample Project"""
    return Project(id="p-1", name="Project One", discovered_at=sample_timestamp)


@pytest.fixture
def sample_agent_pool(sample_timestamp):
    """Provide a sample AgentPool"""
    return AgentPool(id=7, name="Default", discovered_at=sample_timestamp, size=2, pool_type="automation")


# ===== REST Client Fixtures =====


@pytest.fixture
def make_client(exporter_metrics) -> Callable[..., AzureDevOpsRESTClient]:
    """
    Factory building a REST client whose requests are answered by `handler`.

    Backoff is disabled by default so retry tests do not sleep.
    """

    def factory(handler, **kwargs) -> AzureDevOpsRESTClient:
        kwargs.setdefault("backoff_base", 0.0)
        kwargs.setdefault("backoff_max", 0.0)
        kwargs.setdefault("limits", LimitConfig())
        kwargs.setdefault("metrics", exporter_metrics)
        return AzureDevOpsRESTClient(
            "test-org",
            "real-token-value",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return factory
