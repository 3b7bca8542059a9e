"""Latest build plug-in: the most recent build of every build definition."""

import logging

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.collectors.build import BUILD_INFO_LABELS, BUILD_STATUS_LABELS, add_build
from ado_exporter.domain import Project


class LatestBuildCollector(ProjectMetricsCollector):
    """Latest build of every build definition of a project."""

    def setup(self, context: CollectorContext) -> None:
        self.register(context, "azure_devops_build_latest_info", "Azure DevOps build (latest)", BUILD_INFO_LABELS)
        self.register(
            context,
            "azure_devops_build_latest_status",
            "Azure DevOps build status (latest)",
            BUILD_STATUS_LABELS,
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        for build in await context.client.list_latest_builds(resource.id):
            add_build(
                queue.new_batch(),
                "azure_devops_build_latest_info",
                "azure_devops_build_latest_status",
                resource,
                build,
            )
