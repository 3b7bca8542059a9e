"""
Resource usage plug-in

Organization-wide parallel job limits and current usage for private
(self-hosted) and Microsoft-hosted pipelines.
"""

import logging

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, OrganizationMetricsCollector
from ado_exporter.domain import Organization

# (parallelism tag, hosted) combinations reported by the resource usage API
USAGE_KINDS = (("Private", False), ("Public", True))


class ResourceUsageCollector(OrganizationMetricsCollector):
    """Organization-wide parallel job limits and running requests."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_resourceusage_build",
            "Azure DevOps resource usage for builds",
            ["name", "parallelismTag", "isHosted"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Organization) -> None:
        batch = queue.new_batch()
        for parallelism_tag, is_hosted in USAGE_KINDS:
            usage = await context.client.get_resource_usage(parallelism_tag, is_hosted)
            limit = usage.get("resourceLimit") or {}
            labels = {"parallelismTag": parallelism_tag, "isHosted": is_hosted}

            batch.add_gauge("azure_devops_resourceusage_build", {"name": "totalCount", **labels}, limit.get("totalCount"))
            batch.add_gauge(
                "azure_devops_resourceusage_build",
                {"name": "totalMinutes", **labels},
                limit.get("totalMinutes"),
            )
            batch.add_gauge(
                "azure_devops_resourceusage_build",
                {"name": "runningRequests", **labels},
                len(usage.get("runningRequests") or []),
            )
