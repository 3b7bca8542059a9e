"""
Base Collector for the Azure DevOps exporter

Provides the plug-in contract every metric collector implements:
- setup(): declare owned metric families once at startup
- reset(): clear owned families in a fresh staging table
- collect(): fetch one resource and push MetricBatch objects to its queue

Plug-ins pick one of a closed set of scopes (organization, project, agent
pool, saved query). The scheduler selects the matching resources from the
current ResourceSnapshot and fans out one collect() call per resource.
Plug-ins never touch the registry after setup; everything they produce goes
through the queue and is applied by the collector's single writer.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.core.registry import MetricsRegistry
from ado_exporter.domain import MetricBatch, MetricFamily, Organization, ResourceSnapshot, SeriesTable
from ado_exporter.secure_config import ExporterConfig


class Scope(Enum):
    ORGANIZATION = "organization"
    PROJECT = "project"
    AGENT_POOL = "agentpool"
    QUERY = "query"


@dataclass(frozen=True)
class CollectorContext:
    """
    Everything a plug-in may use, handed over explicitly.

    Attributes:
        name: Collector name, also the owner of its metric families
        client: Shared REST client (ticket pool, retries, caps)
        registry: Metrics registry (only used during setup)
        config: Complete exporter configuration
        organization: Organization singleton for resource-less collectors
    """

    name: str
    client: AzureDevOpsRESTClient
    registry: MetricsRegistry
    config: ExporterConfig
    organization: Organization


class ApplyQueue:
    """
    Per-resource view of a collector's apply queue.

    Batches pushed here stay private to the collecting task. The scheduler
    hands them to the collector's ordered queue as one unit only if the
    task finishes without raising; otherwise they are discarded.
    """

    def __init__(self, resource_key: str):
        self.resource_key = resource_key
        self.batches: list[MetricBatch] = []

    def push(self, batch: MetricBatch) -> None:
        self.batches.append(batch)

    def new_batch(self) -> MetricBatch:
        """Create a batch that is already queued; fill it in place."""
        batch = MetricBatch()
        self.push(batch)
        return batch

    def __len__(self) -> int:
        return len(self.batches)


class MetricsCollector(ABC):
    """Base class for all metric plug-ins

    Subclasses must implement:
    - setup(): register families through self.register()
    - collect(): produce batches for a single resource

    The default reset() clears every family the plug-in registered.
    """

    scope: ClassVar[Scope]

    def __init__(self):
        self.families: dict[str, MetricFamily] = {}

    def register(self, context: CollectorContext, name: str, help: str, labels: Sequence[str]) -> MetricFamily:
        family = context.registry.register_family(context.name, name, help, labels)
        self.families[name] = family
        return family

    @abstractmethod
    def setup(self, context: CollectorContext) -> None:
        """Declare the metric families this plug-in owns"""

    def reset(self, table: SeriesTable) -> None:
        table.reset(*self.families)

    @abstractmethod
    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Any) -> None:
        """Collect metrics for a single resource

        Args:
            context: Collector context
            logger: Collector logger
            queue: Per-resource queue to push MetricBatch objects to
            resource: Project, AgentPool, QueryTarget or Organization (by scope)

        Raises:
            APIError: Propagated to mark the resource as failed for this cycle
        """


class OrganizationMetricsCollector(MetricsCollector):
    """Resource-less plug-in, called once per cycle with the Organization"""

    scope = Scope.ORGANIZATION


class ProjectMetricsCollector(MetricsCollector):
    """Plug-in called once per discovered project"""

    scope = Scope.PROJECT


class AgentPoolMetricsCollector(MetricsCollector):
    """Plug-in called once per discovered agent pool"""

    scope = Scope.AGENT_POOL


class QueryMetricsCollector(MetricsCollector):
    """Plug-in called once per configured saved query"""

    scope = Scope.QUERY


def select_resources(scope: Scope, snapshot: ResourceSnapshot, organization: Organization) -> tuple[Any, ...]:
    """
    Resources a plug-in of the given scope iterates over.

    Example:
        >>> select_resources(Scope.ORGANIZATION, ResourceSnapshot(), Organization("org"))
        (Organization(name='org'),)
    """
    if scope is Scope.ORGANIZATION:
        return (organization,)
    if scope is Scope.PROJECT:
        return snapshot.projects
    if scope is Scope.AGENT_POOL:
        return snapshot.agent_pools
    if scope is Scope.QUERY:
        return snapshot.queries
    raise ValueError(f"unknown collector scope: {scope}")
