"""
Stats plug-in

Per project: summary figures over the builds and deployments that finished
within the last --stats.summary-max-age. Builds are counted and averaged per
result, both per project and per agent pool; deployments per release
definition environment.

Every cycle recomputes the window from scratch; label sets without builds or
deployments in the window have no series.
"""

import logging
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from statistics import mean
from typing import Any

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import MetricBatch, Project
from ado_exporter.utils.datetime_utils import parse_ado_timestamp

# Deployment states that count as a finished attempt
FINISHED_DEPLOYMENTS = ("succeeded", "partiallySucceeded", "failed")


def _seconds_between(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None or end < start:
        return None
    return (end - start).total_seconds()


class BuildStats:
    """Running count, wait and duration samples of one label set."""

    def __init__(self):
        self.count = 0
        self.waits: list[float] = []
        self.durations: list[float] = []

    def observe(self, build: dict[str, Any]) -> None:
        queued = parse_ado_timestamp(build.get("queueTime"))
        started = parse_ado_timestamp(build.get("startTime"))
        finished = parse_ado_timestamp(build.get("finishTime"))

        self.count += 1
        wait = _seconds_between(queued, started)
        if wait is not None:
            self.waits.append(wait)
        duration = _seconds_between(started, finished)
        if duration is not None:
            self.durations.append(duration)

    def add_to(self, batch: MetricBatch, prefix: str, labels: dict[str, Any]) -> None:
        batch.add_gauge(f"{prefix}_builds", labels, self.count)
        if self.waits:
            batch.add_duration(f"{prefix}_build_wait", labels, mean(self.waits))
        if self.durations:
            batch.add_duration(f"{prefix}_build_duration", labels, mean(self.durations))


class StatsCollector(ProjectMetricsCollector):
    """Build and deployment summaries of one project over a sliding window."""

    def setup(self, context: CollectorContext) -> None:
        for prefix, labels in (
            ("azure_devops_stats_project", ["projectID", "result"]),
            ("azure_devops_stats_agentpool", ["agentPoolID", "projectID", "result"]),
        ):
            self.register(context, f"{prefix}_builds", "Azure DevOps builds finished within the stats window", labels)
            self.register(context, f"{prefix}_build_wait", "Azure DevOps mean build wait (queued to started)", labels)
            self.register(context, f"{prefix}_build_duration", "Azure DevOps mean build duration", labels)

        self.register(
            context,
            "azure_devops_stats_project_build_success",
            "Azure DevOps ratio of succeeded builds within the stats window",
            ["projectID"],
        )
        self.register(
            context,
            "azure_devops_stats_project_release_duration",
            "Azure DevOps mean deployment duration per release environment",
            ["projectID", "releaseDefinitionID", "definitionEnvironmentID", "status"],
        )
        self.register(
            context,
            "azure_devops_stats_project_release_success",
            "Azure DevOps ratio of succeeded deployments per release environment",
            ["projectID", "releaseDefinitionID", "definitionEnvironmentID"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        since = datetime.now(UTC) - timedelta(seconds=context.config.stats.summary_max_age)
        builds = await context.client.list_builds_finished_since(resource.id, since)
        deployments = await context.client.list_deployments_since(resource.id, since)

        self._add_builds(queue.new_batch(), resource, builds)
        self._add_deployments(queue.new_batch(), resource, deployments)

        logger.debug(
            f"project {resource.name}: stats over {len(builds)} builds and {len(deployments)} deployments",
            extra={"projectID": resource.id, "since": since.isoformat()},
        )

    @staticmethod
    def _add_builds(batch: MetricBatch, project: Project, builds: list[dict[str, Any]]) -> None:
        per_project: dict[str, BuildStats] = defaultdict(BuildStats)
        per_pool: dict[tuple[Any, str], BuildStats] = defaultdict(BuildStats)

        for build in builds:
            result = build.get("result") or "unknown"
            per_project[result].observe(build)

            pool_id = ((build.get("queue") or {}).get("pool") or {}).get("id")
            if pool_id is not None:
                per_pool[(pool_id, result)].observe(build)

        for result, stats in sorted(per_project.items()):
            stats.add_to(batch, "azure_devops_stats_project", {"projectID": project.id, "result": result})
        for (pool_id, result), stats in sorted(per_pool.items(), key=lambda item: (str(item[0][0]), item[0][1])):
            stats.add_to(
                batch,
                "azure_devops_stats_agentpool",
                {"agentPoolID": pool_id, "projectID": project.id, "result": result},
            )

        if builds:
            succeeded = sum(1 for build in builds if build.get("result") == "succeeded")
            batch.add_gauge("azure_devops_stats_project_build_success", {"projectID": project.id}, succeeded / len(builds))

    @staticmethod
    def _add_deployments(batch: MetricBatch, project: Project, deployments: list[dict[str, Any]]) -> None:
        durations: dict[tuple[Any, Any, str], list[float]] = defaultdict(list)
        outcomes: dict[tuple[Any, Any], list[bool]] = defaultdict(list)

        for deployment in deployments:
            status = deployment.get("deploymentStatus") or ""
            if status not in FINISHED_DEPLOYMENTS:
                continue

            definition_id = (deployment.get("releaseDefinition") or {}).get("id", "")
            environment_id = deployment.get("definitionEnvironmentId", "")
            outcomes[(definition_id, environment_id)].append(status == "succeeded")

            duration = _seconds_between(
                parse_ado_timestamp(deployment.get("startedOn")),
                parse_ado_timestamp(deployment.get("completedOn")),
            )
            if duration is not None:
                durations[(definition_id, environment_id, status)].append(duration)

        for (definition_id, environment_id, status), samples in sorted(durations.items(), key=lambda item: str(item[0])):
            batch.add_duration(
                "azure_devops_stats_project_release_duration",
                {
                    "projectID": project.id,
                    "releaseDefinitionID": definition_id,
                    "definitionEnvironmentID": environment_id,
                    "status": status,
                },
                mean(samples),
            )
        for (definition_id, environment_id), results in sorted(outcomes.items(), key=lambda item: str(item[0])):
            batch.add_gauge(
                "azure_devops_stats_project_release_success",
                {"projectID": project.id, "releaseDefinitionID": definition_id, "definitionEnvironmentID": environment_id},
                sum(results) / len(results),
            )
