"""
Collector Scheduler

Runs every enabled plug-in on its own fixed-rate timer:

    tick -> select resources -> bounded fan-out -> barrier -> single-writer apply -> publish

Each Collector moves through IDLE -> COLLECTING -> APPLYING -> IDLE. A tick
that fires while a cycle is still active is skipped and counted, never
queued. Per-resource failures never cancel siblings: the failed resource
keeps the series of its last successful cycle and everything else is
replaced. The new table is published in one swap, so a scrape sees either
the previous cycle or the new one.

The set of collectors is the explicit COLLECTOR_TABLE below; the scheduler
owns every instance it builds from it.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.collectors.agentpool import AgentPoolCollector
from ado_exporter.collectors.base import ApplyQueue, CollectorContext, MetricsCollector, select_resources
from ado_exporter.collectors.build import BuildCollector
from ado_exporter.collectors.deployment import DeploymentCollector
from ado_exporter.collectors.discovery import ResourceDiscovery
from ado_exporter.collectors.latestbuild import LatestBuildCollector
from ado_exporter.collectors.project import ProjectCollector
from ado_exporter.collectors.pullrequest import PullRequestCollector
from ado_exporter.collectors.query import QueryCollector
from ado_exporter.collectors.release import ReleaseCollector
from ado_exporter.collectors.repository import RepositoryCollector
from ado_exporter.collectors.resourceusage import ResourceUsageCollector
from ado_exporter.collectors.stats import StatsCollector
from ado_exporter.core import get_logger
from ado_exporter.core.collector_metrics import ExporterMetrics, track_cycle
from ado_exporter.core.exceptions import ApplyError
from ado_exporter.core.registry import MetricsRegistry
from ado_exporter.domain import MetricBatch, Organization
from ado_exporter.secure_config import ExporterConfig, ScrapeConfig
from ado_exporter.utils.error_handling import log_and_continue, log_and_raise

logger = get_logger(__name__)


@dataclass(frozen=True)
class CollectorSpec:
    """One entry of the collector table: name and plug-in class."""

    name: str
    plugin: type[MetricsCollector]


COLLECTOR_TABLE: tuple[CollectorSpec, ...] = (
    CollectorSpec("project", ProjectCollector),
    CollectorSpec("agentpool", AgentPoolCollector),
    CollectorSpec("latestbuild", LatestBuildCollector),
    CollectorSpec("repository", RepositoryCollector),
    CollectorSpec("pullrequest", PullRequestCollector),
    CollectorSpec("build", BuildCollector),
    CollectorSpec("release", ReleaseCollector),
    CollectorSpec("deployment", DeploymentCollector),
    CollectorSpec("resourceusage", ResourceUsageCollector),
    CollectorSpec("query", QueryCollector),
    CollectorSpec("stats", StatsCollector),
)


class CollectorState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    APPLYING = "applying"


class Collector:
    """
    One scheduled plug-in instance.

    Attributes:
        name: Collector name (owner of its metric families)
        plugin: The plug-in doing the actual collection
        scrape: Resolved interval and fan-out limit
        state: Current lifecycle state
    """

    def __init__(
        self,
        plugin: MetricsCollector,
        scrape: ScrapeConfig,
        context: CollectorContext,
        discovery: ResourceDiscovery,
        metrics: ExporterMetrics | None = None,
    ):
        self.name = scrape.name
        self.plugin = plugin
        self.scrape = scrape
        self.context = context
        self.discovery = discovery
        self.metrics = metrics
        self.logger = get_logger(f"ado_exporter.collector.{self.name}")
        self.state = CollectorState.IDLE

        self._fanout = asyncio.Semaphore(scrape.concurrency)
        self._retained: dict[str, list[MetricBatch]] = {}
        self._task: asyncio.Task | None = None

        self.plugin.setup(context)

    @property
    def busy(self) -> bool:
        return self.state is not CollectorState.IDLE or (self._task is not None and not self._task.done())

    async def _collect_resource(self, resource: Any, queue: asyncio.Queue) -> None:
        async with self._fanout:
            view = ApplyQueue(resource.key)
            await self.plugin.collect(self.context, self.logger, view, resource)
        await queue.put((resource.key, view.batches))

    def _apply(self, resources: Sequence[Any], queue: asyncio.Queue) -> bool:
        """
        Single writer: merge the cycle's batches into the retained set and publish.

        Resources that left the snapshot are dropped, resources that succeeded
        replace their batches, failed resources keep what they had.

        Returns:
            True if a new table was published
        """
        current = {resource.key for resource in resources}
        retained = {key: batches for key, batches in self._retained.items() if key in current}

        while not queue.empty():
            key, batches = queue.get_nowait()
            retained[key] = batches

        table = self.context.registry.new_table(self.name)
        try:
            self.plugin.reset(table)
            for batches in retained.values():
                for batch in batches:
                    table.apply_batch(batch)
        except ApplyError as e:
            self.logger.error(
                f"collector[{self.name}]: apply aborted, previous snapshot kept: {e}",
                extra={"collector": self.name, "error_type": "ApplyError"},
            )
            return False

        self.context.registry.publish(self.name, table)
        self._retained = retained
        return True

    async def run_cycle(self) -> bool:
        """
        Run one complete collection cycle.

        Returns:
            True if the cycle published a new snapshot
        """
        if self.state is not CollectorState.IDLE:
            self._skip()
            return False

        self.state = CollectorState.COLLECTING
        try:
            with track_cycle(self.name, self.metrics) as tracker:
                resources = select_resources(self.plugin.scope, self.discovery.snapshot, self.context.organization)
                tracker.resource_count = len(resources)
                queue: asyncio.Queue = asyncio.Queue()

                results = await asyncio.gather(
                    *(self._collect_resource(resource, queue) for resource in resources),
                    return_exceptions=True,
                )

                for resource, result in zip(resources, results):
                    if isinstance(result, Exception):
                        tracker.record_error()
                        log_and_continue(
                            self.logger,
                            result,
                            {"collector": self.name, "resource": resource.key},
                            f"collector[{self.name}] {resource.key}",
                        )
                    elif isinstance(result, BaseException):
                        raise result
                    else:
                        tracker.record_success()

                self.state = CollectorState.APPLYING
                tracker.published = self._apply(resources, queue)
                return tracker.published
        finally:
            self.state = CollectorState.IDLE

    def _skip(self) -> None:
        self.logger.warning(f"collector[{self.name}]: previous cycle still running, skipping tick")
        if self.metrics is not None:
            self.metrics.record_skipped_tick(self.name)

    def tick(self) -> asyncio.Task | None:
        """Start a cycle in the background unless one is already active."""
        if self.busy:
            self._skip()
            return None

        self._task = asyncio.create_task(self._guarded_cycle(), name=f"collector-{self.name}")
        return self._task

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            self.logger.exception(f"collector[{self.name}]: cycle failed unexpectedly")

    async def run(self) -> None:
        """Fire ticks at a fixed rate until cancelled."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            while True:
                self.tick()
                next_tick += self.scrape.interval
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
        finally:
            if self._task is not None and not self._task.done():
                self._task.cancel()


class CollectorScheduler:
    """
    Builds and runs the discovery timer and every enabled collector.

    Example:
        scheduler = CollectorScheduler(config, client, registry, metrics)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        config: ExporterConfig,
        client: AzureDevOpsRESTClient,
        registry: MetricsRegistry,
        metrics: ExporterMetrics | None = None,
        table: Sequence[CollectorSpec] = COLLECTOR_TABLE,
        discovery: ResourceDiscovery | None = None,
    ):
        self.config = config
        self.client = client
        self.registry = registry
        self.metrics = metrics
        self.organization = Organization(config.azure_devops.organization)
        self.discovery = discovery or ResourceDiscovery(
            client, config.azure_devops, config.discovery_interval, metrics=metrics
        )
        self.collectors: list[Collector] = []
        self._tasks: list[asyncio.Task] = []

        for spec in table:
            scrape = config.scrape_config(spec.name)
            if not scrape.enabled:
                logger.info(f"collector[{spec.name}]: disabled (interval 0)")
                continue

            context = CollectorContext(
                name=spec.name,
                client=client,
                registry=registry,
                config=config,
                organization=self.organization,
            )
            try:
                collector = Collector(spec.plugin(), scrape, context, self.discovery, metrics=metrics)
            except ValueError as e:
                log_and_raise(logger, e, {"collector": spec.name}, "Collector setup")
            self.collectors.append(collector)
            logger.info(f"collector[{spec.name}]: enabled, every {scrape.interval:g}s")

    async def start(self) -> None:
        """Run the first discovery, then start the discovery and collector timers."""
        await self.discovery.update()

        self._tasks.append(asyncio.create_task(self.discovery.run(), name="discovery"))
        for collector in self.collectors:
            self._tasks.append(asyncio.create_task(collector.run(), name=f"timer-{collector.name}"))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
