"""Project plug-in: one info series per discovered project."""

import logging

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import Project


class ProjectCollector(ProjectMetricsCollector):
    """One info series per discovered project."""

    def setup(self, context: CollectorContext) -> None:
        self.register(context, "azure_devops_project_info", "Azure DevOps project", ["projectID", "projectName"])

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        batch = queue.new_batch()
        batch.add_info("azure_devops_project_info", {"projectID": resource.id, "projectName": resource.name})
