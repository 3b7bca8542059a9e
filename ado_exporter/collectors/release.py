"""
Release plug-in

Per project: release definitions, their most recent releases and the state
of every environment of those releases.
"""

import logging
from typing import Any

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import MetricBatch, Project
from ado_exporter.utils.datetime_utils import parse_ado_timestamp


def _web_url(record: dict[str, Any]) -> str:
    return ((record.get("_links") or {}).get("web") or {}).get("href", "")


class ReleaseCollector(ProjectMetricsCollector):
    """Release definitions, their releases and release environments."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_release_definition_info",
            "Azure DevOps release definition",
            ["projectID", "releaseDefinitionID", "releaseNameFormat", "releaseDefinitionName", "path", "url"],
        )
        self.register(
            context,
            "azure_devops_release_info",
            "Azure DevOps release",
            ["projectID", "releaseID", "releaseDefinitionID", "requestedBy", "releaseName", "status", "reason", "url"],
        )
        self.register(
            context,
            "azure_devops_release_environment_info",
            "Azure DevOps release environment",
            [
                "projectID",
                "releaseID",
                "releaseDefinitionID",
                "environmentID",
                "environmentName",
                "status",
                "triggerReason",
                "rank",
            ],
        )
        self.register(
            context,
            "azure_devops_release_environment_status",
            "Azure DevOps release environment status",
            ["projectID", "releaseID", "environmentID", "type"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        definitions = await context.client.list_release_definitions(resource.id)

        for definition in definitions:
            definition_id = definition["id"]
            batch = queue.new_batch()
            batch.add_info(
                "azure_devops_release_definition_info",
                {
                    "projectID": resource.id,
                    "releaseDefinitionID": definition_id,
                    "releaseNameFormat": definition.get("releaseNameFormat", ""),
                    "releaseDefinitionName": definition.get("name", ""),
                    "path": definition.get("path", ""),
                    "url": _web_url(definition),
                },
            )

            for release in await context.client.list_releases(resource.id, definition_id):
                self._add_release(batch, resource, definition_id, release)

        logger.debug(f"project {resource.name}: {len(definitions)} release definitions", extra={"projectID": resource.id})

    @staticmethod
    def _add_release(batch: MetricBatch, project: Project, definition_id: int, release: dict[str, Any]) -> None:
        release_id = release["id"]
        batch.add_info(
            "azure_devops_release_info",
            {
                "projectID": project.id,
                "releaseID": release_id,
                "releaseDefinitionID": definition_id,
                "requestedBy": (release.get("createdBy") or {}).get("displayName", ""),
                "releaseName": release.get("name", ""),
                "status": release.get("status", ""),
                "reason": release.get("reason", ""),
                "url": _web_url(release),
            },
        )

        for environment in release.get("environments") or []:
            environment_id = environment["id"]
            batch.add_info(
                "azure_devops_release_environment_info",
                {
                    "projectID": project.id,
                    "releaseID": release_id,
                    "releaseDefinitionID": definition_id,
                    "environmentID": environment_id,
                    "environmentName": environment.get("name", ""),
                    "status": environment.get("status", ""),
                    "triggerReason": environment.get("triggerReason", ""),
                    "rank": environment.get("rank", ""),
                },
            )

            status_labels = {"projectID": project.id, "releaseID": release_id, "environmentID": environment_id}
            batch.add_time(
                "azure_devops_release_environment_status",
                {**status_labels, "type": "created"},
                parse_ado_timestamp(environment.get("createdOn")),
            )
            batch.add_time(
                "azure_devops_release_environment_status",
                {**status_labels, "type": "modified"},
                parse_ado_timestamp(environment.get("modifiedOn")),
            )

            # timeToDeploy is reported in minutes
            time_to_deploy = environment.get("timeToDeploy")
            if time_to_deploy:
                batch.add_duration(
                    "azure_devops_release_environment_status",
                    {**status_labels, "type": "jobDuration"},
                    float(time_to_deploy) * 60,
                )
