"""Repository plug-in: git repositories of a project and their size."""

import logging

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import Project


class RepositoryCollector(ProjectMetricsCollector):
    """Git repositories of a project with their size."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_repository_info",
            "Azure DevOps repository",
            ["projectID", "repositoryID", "repositoryName", "defaultBranch", "isDisabled"],
        )
        self.register(
            context,
            "azure_devops_repository_stats",
            "Azure DevOps repository statistics",
            ["projectID", "repositoryID", "type"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        batch = queue.new_batch()
        for repository in await context.client.list_repositories(resource.id):
            batch.add_info(
                "azure_devops_repository_info",
                {
                    "projectID": resource.id,
                    "repositoryID": repository["id"],
                    "repositoryName": repository.get("name", ""),
                    "defaultBranch": repository.get("defaultBranch", ""),
                    "isDisabled": bool(repository.get("isDisabled", False)),
                },
            )
            batch.add_gauge(
                "azure_devops_repository_stats",
                {"projectID": resource.id, "repositoryID": repository["id"], "type": "size"},
                repository.get("size"),
            )
