"""
Resource Discovery

Periodically enumerates projects and agent pools and publishes them as an
immutable ResourceSnapshot. A snapshot is replaced only after a fully
successful refresh; on failure the previous snapshot stays in service and
collectors keep working with it.

Usage:
    discovery = ResourceDiscovery(client, config.azure_devops, interval=1800)
    await discovery.update()          # first run, before collectors start
    snapshot = discovery.snapshot
"""

import asyncio
from datetime import UTC, datetime

from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.core import get_logger
from ado_exporter.core.collector_metrics import ExporterMetrics
from ado_exporter.core.exceptions import APIError, DiscoveryError
from ado_exporter.domain import AgentPool, Project, ResourceSnapshot
from ado_exporter.secure_config import AzureDevOpsConfig
from ado_exporter.utils.error_handling import log_and_continue

logger = get_logger(__name__)


class ResourceDiscovery:
    """
    Owner of the current ResourceSnapshot.

    Attributes:
        interval: Seconds between refreshes (0 runs discovery only at startup)
        last_success: When the current snapshot was published (None before the first success)
    """

    def __init__(
        self,
        client: AzureDevOpsRESTClient,
        config: AzureDevOpsConfig,
        interval: float,
        metrics: ExporterMetrics | None = None,
    ):
        self.client = client
        self.config = config
        self.interval = interval
        self.metrics = metrics
        self.last_success: datetime | None = None
        self._snapshot = ResourceSnapshot(queries=config.queries)

    @property
    def snapshot(self) -> ResourceSnapshot:
        return self._snapshot

    def _select_projects(self, records: list[dict], discovered_at: datetime) -> tuple[Project, ...]:
        projects = []
        for record in records:
            project = Project.from_api(record, discovered_at)
            if self.config.project_filter and project.id not in self.config.project_filter:
                continue
            if project.id in self.config.project_blacklist:
                continue
            projects.append(project)
        return tuple(projects)

    def _select_agent_pools(self, records: list[dict], discovered_at: datetime) -> tuple[AgentPool, ...]:
        pools = [AgentPool.from_api(record, discovered_at) for record in records]
        if self.config.agent_pool_ids:
            pools = [pool for pool in pools if pool.id in self.config.agent_pool_ids]
        return tuple(pools)

    async def refresh(self) -> ResourceSnapshot:
        """
        Enumerate resources and build a new snapshot without publishing it.

        Raises:
            DiscoveryError: If any enumeration call fails or returns unusable records
        """
        discovered_at = datetime.now(UTC)
        projects_result, pools_result = await asyncio.gather(
            self.client.list_projects(),
            self.client.list_agent_pools(),
            return_exceptions=True,
        )

        for result in (projects_result, pools_result):
            if isinstance(result, APIError):
                raise DiscoveryError(f"resource discovery failed: {result}") from result
            if isinstance(result, BaseException):
                raise result

        try:
            projects = self._select_projects(projects_result, discovered_at)
            agent_pools = self._select_agent_pools(pools_result, discovered_at)
        except (KeyError, TypeError, ValueError) as e:
            raise DiscoveryError(f"resource discovery returned an unexpected record: {e!r}") from e

        return ResourceSnapshot(
            projects=projects,
            agent_pools=agent_pools,
            queries=self.config.queries,
            discovered_at=discovered_at,
        )

    async def update(self) -> bool:
        """
        Refresh and publish a new snapshot.

        Returns:
            True if a new snapshot was published, False if the previous one was kept
        """
        try:
            snapshot = await self.refresh()
        except DiscoveryError as e:
            log_and_continue(
                logger,
                e,
                {"organization": self.config.organization, "previous_snapshot": self._snapshot.discovered_at.isoformat()},
                "Resource discovery",
            )
            if self.metrics is not None:
                self.metrics.record_discovery(False)
            return False

        self._snapshot = snapshot
        self.last_success = snapshot.discovered_at
        if self.metrics is not None:
            self.metrics.record_discovery(True)

        logger.info(
            f"discovered {len(snapshot.projects)} projects and {len(snapshot.agent_pools)} agent pools",
            extra={"projects": len(snapshot.projects), "agent_pools": len(snapshot.agent_pools)},
        )
        if snapshot.is_empty:
            logger.warning("discovery found no projects, agent pools or queries; check filters and token scopes")
        return True

    async def run(self) -> None:
        """Refresh on a fixed-rate timer until cancelled."""
        if self.interval <= 0:
            return

        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            next_tick += self.interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            await self.update()
