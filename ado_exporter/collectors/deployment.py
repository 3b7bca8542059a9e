"""
Deployment plug-in

Per project and release definition: the most recent deployments with their
queued / started / finished timestamps and job duration.
"""

import logging
from typing import Any

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import MetricBatch, Project
from ado_exporter.utils.datetime_utils import parse_ado_timestamp


def approved_by(deployment: dict[str, Any]) -> str:
    """Display names of everyone who approved the deployment, comma separated."""
    names = []
    for approval in deployment.get("preDeployApprovals") or []:
        if approval.get("status") != "approved" or approval.get("isAutomated"):
            continue
        approver = approval.get("approvedBy") or approval.get("approver") or {}
        name = approver.get("displayName")
        if name and name not in names:
            names.append(name)
    return ",".join(names)


class DeploymentCollector(ProjectMetricsCollector):
    """Most recent deployments per release definition."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_deployment_info",
            "Azure DevOps deployment",
            [
                "projectID",
                "deploymentID",
                "releaseID",
                "releaseName",
                "releaseDefinitionID",
                "requestedBy",
                "deploymentName",
                "deploymentStatus",
                "operationStatus",
                "reason",
                "attempt",
                "environmentId",
                "environmentName",
                "approvedBy",
            ],
        )
        self.register(
            context,
            "azure_devops_deployment_status",
            "Azure DevOps deployment status",
            ["projectID", "deploymentID", "type"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        definitions = await context.client.list_release_definitions(resource.id)

        for definition in definitions:
            deployments = await context.client.list_release_deployments(resource.id, definition["id"])
            batch = queue.new_batch()
            for deployment in deployments:
                self._add_deployment(batch, resource, definition["id"], deployment)

    @staticmethod
    def _add_deployment(batch: MetricBatch, project: Project, definition_id: int, deployment: dict[str, Any]) -> None:
        deployment_id = deployment["id"]
        release = deployment.get("release") or {}
        environment = deployment.get("releaseEnvironment") or {}

        batch.add_info(
            "azure_devops_deployment_info",
            {
                "projectID": project.id,
                "deploymentID": deployment_id,
                "releaseID": release.get("id", ""),
                "releaseName": release.get("name", ""),
                "releaseDefinitionID": definition_id,
                "requestedBy": (deployment.get("requestedBy") or {}).get("displayName", ""),
                "deploymentName": deployment.get("name", ""),
                "deploymentStatus": deployment.get("deploymentStatus", ""),
                "operationStatus": deployment.get("operationStatus", ""),
                "reason": deployment.get("reason", ""),
                "attempt": deployment.get("attempt", ""),
                "environmentId": environment.get("id", ""),
                "environmentName": environment.get("name", ""),
                "approvedBy": approved_by(deployment),
            },
        )

        status_labels = {"projectID": project.id, "deploymentID": deployment_id}
        queued = parse_ado_timestamp(deployment.get("queuedOn"))
        started = parse_ado_timestamp(deployment.get("startedOn"))
        completed = parse_ado_timestamp(deployment.get("completedOn"))

        batch.add_time("azure_devops_deployment_status", {**status_labels, "type": "queued"}, queued)
        batch.add_time("azure_devops_deployment_status", {**status_labels, "type": "started"}, started)
        batch.add_time("azure_devops_deployment_status", {**status_labels, "type": "finished"}, completed)
        if started is not None and completed is not None:
            batch.add_duration(
                "azure_devops_deployment_status",
                {**status_labels, "type": "jobDuration"},
                completed - started,
            )
