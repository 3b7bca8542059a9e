"""
Build plug-in

Per project: build definitions and the most recent builds (capped per
definition and per project by the REST client), with queued / started /
finished timestamps and the job duration of every build.
"""

import logging
from typing import Any

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import MetricBatch, Project
from ado_exporter.utils.datetime_utils import parse_ado_timestamp

BUILD_INFO_LABELS = [
    "projectID",
    "buildDefinitionID",
    "buildID",
    "agentPoolID",
    "requestedBy",
    "buildNumber",
    "buildName",
    "sourceBranch",
    "sourceVersion",
    "status",
    "reason",
    "result",
    "url",
]
BUILD_STATUS_LABELS = ["projectID", "buildID", "buildDefinitionID", "buildNumber", "result", "type"]


def add_build(batch: MetricBatch, info_family: str, status_family: str, project: Project, build: dict[str, Any]) -> None:
    """
    Add the info and status series of one build.

    Shared by the build and latest build plug-ins, which expose the same
    label sets under different family names.
    """
    definition = build.get("definition") or {}
    build_id = build["id"]

    batch.add_info(
        info_family,
        {
            "projectID": project.id,
            "buildDefinitionID": definition.get("id", ""),
            "buildID": build_id,
            "agentPoolID": ((build.get("queue") or {}).get("pool") or {}).get("id", ""),
            "requestedBy": (build.get("requestedBy") or {}).get("displayName", ""),
            "buildNumber": build.get("buildNumber", ""),
            "buildName": definition.get("name", ""),
            "sourceBranch": build.get("sourceBranch", ""),
            "sourceVersion": build.get("sourceVersion", ""),
            "status": build.get("status", ""),
            "reason": build.get("reason", ""),
            "result": build.get("result", ""),
            "url": build.get("url", ""),
        },
    )

    status_labels = {
        "projectID": project.id,
        "buildID": build_id,
        "buildDefinitionID": definition.get("id", ""),
        "buildNumber": build.get("buildNumber", ""),
        "result": build.get("result", ""),
    }
    queued = parse_ado_timestamp(build.get("queueTime"))
    started = parse_ado_timestamp(build.get("startTime"))
    finished = parse_ado_timestamp(build.get("finishTime"))

    batch.add_time(status_family, {**status_labels, "type": "queued"}, queued)
    batch.add_time(status_family, {**status_labels, "type": "started"}, started)
    batch.add_time(status_family, {**status_labels, "type": "finished"}, finished)
    if started is not None and finished is not None:
        batch.add_duration(status_family, {**status_labels, "type": "jobDuration"}, finished - started)


class BuildCollector(ProjectMetricsCollector):
    """Build definitions and the most recent builds of a project."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_build_definition_info",
            "Azure DevOps build definition",
            ["projectID", "buildDefinitionID", "buildNameFormat", "buildDefinitionName", "path", "url"],
        )
        self.register(context, "azure_devops_build_info", "Azure DevOps build", BUILD_INFO_LABELS)
        self.register(context, "azure_devops_build_status", "Azure DevOps build status", BUILD_STATUS_LABELS)

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        definitions = await context.client.list_build_definitions(resource.id)
        builds = await context.client.list_builds(resource.id)

        batch = queue.new_batch()
        for definition in definitions:
            batch.add_info(
                "azure_devops_build_definition_info",
                {
                    "projectID": resource.id,
                    "buildDefinitionID": definition["id"],
                    "buildNameFormat": definition.get("buildNumberFormat", ""),
                    "buildDefinitionName": definition.get("name", ""),
                    "path": definition.get("path", ""),
                    "url": ((definition.get("_links") or {}).get("web") or {}).get("href", ""),
                },
            )

        for build in builds:
            add_build(queue.new_batch(), "azure_devops_build_info", "azure_devops_build_status", resource, build)

        logger.debug(
            f"project {resource.name}: {len(definitions)} build definitions, {len(builds)} builds",
            extra={"projectID": resource.id},
        )
