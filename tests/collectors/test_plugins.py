"""
Tests for the metric plug-ins

Each plug-in is run against a mocked REST client for one resource and its
batches are applied to a fresh staging table, the same way the scheduler's
apply step does it.
"""

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from ado_exporter.collectors.agentpool import AgentPoolCollector
from ado_exporter.collectors.base import ApplyQueue, CollectorContext
from ado_exporter.collectors.build import BuildCollector
from ado_exporter.collectors.deployment import DeploymentCollector, approved_by
from ado_exporter.collectors.latestbuild import LatestBuildCollector
from ado_exporter.collectors.project import ProjectCollector
from ado_exporter.collectors.pullrequest import PullRequestCollector, vote_status
from ado_exporter.collectors.query import QueryCollector
from ado_exporter.collectors.release import ReleaseCollector
from ado_exporter.collectors.repository import RepositoryCollector
from ado_exporter.collectors.resourceusage import ResourceUsageCollector
from ado_exporter.collectors.stats import StatsCollector
from ado_exporter.core.exceptions import TransientAPIError
from ado_exporter.domain import Organization, QueryTarget

QUEUED = "2026-02-07T10:00:00Z"
STARTED = "2026-02-07T10:01:00.1234567Z"
FINISHED = "2026-02-07T10:06:00.1234567Z"


@pytest.fixture
def client():
    return Mock()


@pytest.fixture
def run_plugin(client, metrics_registry, exporter_config):
    """Run one plug-in for one resource and return the resulting staging table."""

    async def runner(plugin_class, resource):
        context = CollectorContext(
            name="plugin",
            client=client,
            registry=metrics_registry,
            config=exporter_config,
            organization=Organization("test-org"),
        )
        plugin = plugin_class()
        plugin.setup(context)

        queue = ApplyQueue(resource.key)
        await plugin.collect(context, logging.getLogger("test"), queue, resource)

        table = metrics_registry.new_table("plugin")
        plugin.reset(table)
        for batch in queue.batches:
            table.apply_batch(batch)
        return table

    return runner


class TestProjectCollector:
    @pytest.mark.asyncio
    async def test_project_info(self, run_plugin, sample_project):
        table = await run_plugin(ProjectCollector, sample_project)

        assert table.series("azure_devops_project_info") == {("p-1", "Project One"): 1.0}


class TestAgentPoolCollector:
    """Tests for agent pool, agent and job series"""

    @pytest.fixture
    def agents(self):
        return [
            {
                "id": 11,
                "name": "agent-1",
                "version": "3.236.0",
                "osDescription": "Linux",
                "provisioningState": "Provisioned",
                "maxParallelism": 1,
                "enabled": True,
                "status": "online",
                "createdOn": QUEUED,
                "assignedRequest": {
                    "requestId": 501,
                    "definition": {"id": 3, "name": "CI"},
                    "planType": "Build",
                    "scopeId": "p-1",
                    "assignTime": STARTED,
                },
            },
            {
                "id": 12,
                "name": "agent-2",
                "enabled": False,
                "status": "offline",
                "createdOn": QUEUED,
            },
        ]

    @pytest.mark.asyncio
    async def test_pool_series(self, run_plugin, client, sample_agent_pool, agents):
        client.list_agent_pool_agents = AsyncMock(return_value=agents)
        client.list_agent_pool_jobs = AsyncMock(
            return_value=[
                {"requestId": 501, "assignTime": STARTED},
                {"requestId": 502},
                {"requestId": 503},
                {"requestId": 400, "assignTime": QUEUED, "result": "succeeded"},
            ]
        )

        table = await run_plugin(AgentPoolCollector, sample_agent_pool)

        assert table.series("azure_devops_agentpool_info") == {("7", "Default", "automation", "false"): 1.0}
        assert table.series("azure_devops_agentpool_size") == {("7",): 2.0}
        assert table.series("azure_devops_agentpool_queue_length") == {("7",): 2.0}
        assert table.series("azure_devops_agentpool_usage") == {("7",): 0.5}

    @pytest.mark.asyncio
    async def test_agent_series(self, run_plugin, client, sample_agent_pool, agents):
        client.list_agent_pool_agents = AsyncMock(return_value=agents)
        client.list_agent_pool_jobs = AsyncMock(return_value=[])

        table = await run_plugin(AgentPoolCollector, sample_agent_pool)

        info = table.series("azure_devops_agentpool_agent_info")
        assert info[("7", "11", "agent-1", "3.236.0", "Linux", "Provisioned", "1", "true", "online", "true")] == 1.0
        assert info[("7", "12", "agent-2", "", "", "", "", "false", "offline", "false")] == 1.0

        created = datetime(2026, 2, 7, 10, tzinfo=UTC).timestamp()
        assert table.series("azure_devops_agentpool_agent_status") == {("11", "created"): created, ("12", "created"): created}

        jobs = table.series("azure_devops_agentpool_agent_job")
        assert list(jobs) == [("11", "501", "3", "CI", "Build", "p-1")]

    @pytest.mark.asyncio
    async def test_empty_pool_has_zero_usage(self, run_plugin, client, sample_agent_pool):
        client.list_agent_pool_agents = AsyncMock(return_value=[])
        client.list_agent_pool_jobs = AsyncMock(return_value=[])

        table = await run_plugin(AgentPoolCollector, sample_agent_pool)

        assert table.series("azure_devops_agentpool_usage") == {("7",): 0.0}


BUILD = {
    "id": 42,
    "buildNumber": "20260207.1",
    "definition": {"id": 3, "name": "CI"},
    "queue": {"pool": {"id": 7}},
    "requestedBy": {"displayName": "Jane Doe"},
    "sourceBranch": "refs/heads/main",
    "sourceVersion": "abc123",
    "status": "completed",
    "reason": "manual",
    "result": "succeeded",
    "url": "https://dev.azure.com/test-org/_apis/build/Builds/42",
    "queueTime": QUEUED,
    "startTime": STARTED,
    "finishTime": FINISHED,
}


class TestBuildCollectors:
    """Tests for the build and latest build plug-ins"""

    @pytest.mark.asyncio
    async def test_build_series(self, run_plugin, client, sample_project):
        client.list_build_definitions = AsyncMock(
            return_value=[
                {
                    "id": 3,
                    "name": "CI",
                    "path": "\\",
                    "buildNumberFormat": "$(Date:yyyyMMdd)$(Rev:.r)",
                    "_links": {"web": {"href": "https://dev.azure.com/test-org/p/_build?definitionId=3"}},
                }
            ]
        )
        client.list_builds = AsyncMock(return_value=[BUILD])

        table = await run_plugin(BuildCollector, sample_project)

        assert list(table.series("azure_devops_build_definition_info")) == [
            ("p-1", "3", "$(Date:yyyyMMdd)$(Rev:.r)", "CI", "\\", "https://dev.azure.com/test-org/p/_build?definitionId=3")
        ]
        assert list(table.series("azure_devops_build_info")) == [
            (
                "p-1",
                "3",
                "42",
                "7",
                "Jane Doe",
                "20260207.1",
                "CI",
                "refs/heads/main",
                "abc123",
                "completed",
                "manual",
                "succeeded",
                "https://dev.azure.com/test-org/_apis/build/Builds/42",
            )
        ]

        status = table.series("azure_devops_build_status")
        base = ("p-1", "42", "3", "20260207.1", "succeeded")
        assert status[(*base, "queued")] == datetime(2026, 2, 7, 10, tzinfo=UTC).timestamp()
        assert status[(*base, "jobDuration")] == pytest.approx(300.0)

    @pytest.mark.asyncio
    async def test_running_build_has_no_duration(self, run_plugin, client, sample_project):
        running = {**BUILD, "status": "inProgress", "result": None, "finishTime": None}
        client.list_build_definitions = AsyncMock(return_value=[])
        client.list_builds = AsyncMock(return_value=[running])

        table = await run_plugin(BuildCollector, sample_project)

        types = {labels[-1] for labels in table.series("azure_devops_build_status")}
        assert types == {"queued", "started"}

    @pytest.mark.asyncio
    async def test_latest_build_families(self, run_plugin, client, sample_project):
        client.list_latest_builds = AsyncMock(return_value=[BUILD])

        table = await run_plugin(LatestBuildCollector, sample_project)

        assert len(table.series("azure_devops_build_latest_info")) == 1
        assert len(table.series("azure_devops_build_latest_status")) == 4

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, run_plugin, client, sample_project):
        """Test that a failing call marks the resource as failed instead of emitting partial data"""
        client.list_build_definitions = AsyncMock(side_effect=TransientAPIError("retries exhausted", "p-1/_apis/build"))

        with pytest.raises(TransientAPIError):
            await run_plugin(BuildCollector, sample_project)


class TestReleaseCollector:
    @pytest.mark.asyncio
    async def test_release_series(self, run_plugin, client, sample_project):
        client.list_release_definitions = AsyncMock(
            return_value=[{"id": 5, "name": "Deploy", "path": "\\", "releaseNameFormat": "Release-$(rev:r)"}]
        )
        client.list_releases = AsyncMock(
            return_value=[
                {
                    "id": 90,
                    "name": "Release-9",
                    "status": "active",
                    "reason": "continuousIntegration",
                    "createdBy": {"displayName": "Jane Doe"},
                    "environments": [
                        {
                            "id": 900,
                            "name": "prod",
                            "status": "succeeded",
                            "triggerReason": "After successful deployment",
                            "rank": 1,
                            "createdOn": QUEUED,
                            "modifiedOn": FINISHED,
                            "timeToDeploy": 2.5,
                        }
                    ],
                }
            ]
        )

        table = await run_plugin(ReleaseCollector, sample_project)

        client.list_releases.assert_awaited_once_with("p-1", 5)
        assert list(table.series("azure_devops_release_definition_info")) == [
            ("p-1", "5", "Release-$(rev:r)", "Deploy", "\\", "")
        ]
        assert list(table.series("azure_devops_release_info")) == [
            ("p-1", "90", "5", "Jane Doe", "Release-9", "active", "continuousIntegration", "")
        ]
        assert list(table.series("azure_devops_release_environment_info")) == [
            ("p-1", "90", "5", "900", "prod", "succeeded", "After successful deployment", "1")
        ]
        status = table.series("azure_devops_release_environment_status")
        assert status[("p-1", "90", "900", "jobDuration")] == 150.0
        assert status[("p-1", "90", "900", "created")] == datetime(2026, 2, 7, 10, tzinfo=UTC).timestamp()


class TestDeploymentCollector:
    """Tests for deployments and approval summaries"""

    def test_approved_by(self):
        deployment = {
            "preDeployApprovals": [
                {"status": "approved", "isAutomated": True, "approvedBy": {"displayName": "Robot"}},
                {"status": "approved", "approvedBy": {"displayName": "Jane Doe"}},
                {"status": "approved", "approver": {"displayName": "John Roe"}},
                {"status": "pending", "approver": {"displayName": "Nobody"}},
                {"status": "approved", "approvedBy": {"displayName": "Jane Doe"}},
            ]
        }

        assert approved_by(deployment) == "Jane Doe,John Roe"
        assert approved_by({}) == ""

    @pytest.mark.asyncio
    async def test_deployment_series(self, run_plugin, client, sample_project):
        client.list_release_definitions = AsyncMock(return_value=[{"id": 5, "name": "Deploy"}])
        client.list_release_deployments = AsyncMock(
            return_value=[
                {
                    "id": 1000,
                    "name": "Deploy to prod",
                    "release": {"id": 90, "name": "Release-9"},
                    "releaseEnvironment": {"id": 900, "name": "prod"},
                    "requestedBy": {"displayName": "Jane Doe"},
                    "deploymentStatus": "succeeded",
                    "operationStatus": "Approved",
                    "reason": "automated",
                    "attempt": 1,
                    "queuedOn": QUEUED,
                    "startedOn": STARTED,
                    "completedOn": FINISHED,
                }
            ]
        )

        table = await run_plugin(DeploymentCollector, sample_project)

        assert list(table.series("azure_devops_deployment_info")) == [
            (
                "p-1",
                "1000",
                "90",
                "Release-9",
                "5",
                "Jane Doe",
                "Deploy to prod",
                "succeeded",
                "Approved",
                "automated",
                "1",
                "900",
                "prod",
                "",
            )
        ]
        status = table.series("azure_devops_deployment_status")
        assert status[("p-1", "1000", "jobDuration")] == pytest.approx(300.0)
        assert len(status) == 4


class TestRepositoryCollectors:
    """Tests for repository and pull request plug-ins"""

    @pytest.mark.asyncio
    async def test_repository_series(self, run_plugin, client, sample_project):
        client.list_repositories = AsyncMock(
            return_value=[
                {"id": "r1", "name": "app", "defaultBranch": "refs/heads/main", "size": 2048},
                {"id": "r2", "name": "old", "isDisabled": True},
            ]
        )

        table = await run_plugin(RepositoryCollector, sample_project)

        assert table.series("azure_devops_repository_info") == {
            ("p-1", "r1", "app", "refs/heads/main", "false"): 1.0,
            ("p-1", "r2", "old", "", "true"): 1.0,
        }
        assert table.series("azure_devops_repository_stats") == {("p-1", "r1", "size"): 2048.0}

    @pytest.mark.parametrize(
        "votes,expected",
        [
            ([], "none"),
            ([0], "none"),
            ([5], "approvedWithSuggestions"),
            ([5, 10], "approved"),
            ([10, -5], "waitingForAuthor"),
            ([-5, -10, 10], "rejected"),
        ],
    )
    def test_vote_status(self, votes, expected):
        assert vote_status({"reviewers": [{"vote": vote} for vote in votes]}) == expected

    @pytest.mark.asyncio
    async def test_pull_request_series(self, run_plugin, client, sample_project):
        client.list_pull_requests = AsyncMock(
            return_value=[
                {
                    "pullRequestId": 77,
                    "title": "Add exporter",
                    "repository": {"id": "r1"},
                    "sourceRefName": "refs/heads/feature",
                    "targetRefName": "refs/heads/main",
                    "status": "active",
                    "isDraft": True,
                    "createdBy": {"displayName": "Jane Doe"},
                    "creationDate": QUEUED,
                    "reviewers": [{"vote": 10}],
                    "labels": [{"name": "needs-review", "active": True}, {"name": "old", "active": False}],
                }
            ]
        )

        table = await run_plugin(PullRequestCollector, sample_project)

        assert list(table.series("azure_devops_pullrequest_info")) == [
            (
                "p-1",
                "r1",
                "77",
                "Add exporter",
                "refs/heads/feature",
                "refs/heads/main",
                "active",
                "true",
                "approved",
                "Jane Doe",
            )
        ]
        assert table.series("azure_devops_pullrequest_status") == {
            ("p-1", "77", "created"): datetime(2026, 2, 7, 10, tzinfo=UTC).timestamp()
        }
        assert table.series("azure_devops_pullrequest_label") == {
            ("p-1", "77", "needs-review", "true"): 1.0,
            ("p-1", "77", "old", "false"): 1.0,
        }


class TestOrganizationAndQueryCollectors:
    @pytest.mark.asyncio
    async def test_query_result_counts_work_items(self, run_plugin, client):
        client.query_work_items = AsyncMock(return_value=[{"id": 1}, {"id": 2}, {"id": 3}])

        table = await run_plugin(QueryCollector, QueryTarget(query_id="q1", project_id="p-1"))

        client.query_work_items.assert_awaited_once_with("p-1", "q1")
        assert table.series("azure_devops_query_result") == {("p-1", "q1"): 3.0}

    @pytest.mark.asyncio
    async def test_resource_usage(self, run_plugin, client):
        async def usage(parallelism_tag, is_hosted):
            if is_hosted:
                return {"resourceLimit": {"totalCount": 1, "totalMinutes": 1800}, "runningRequests": []}
            return {"resourceLimit": {"totalCount": 4}, "runningRequests": [{"requestId": 1}, {"requestId": 2}]}

        client.get_resource_usage = AsyncMock(side_effect=usage)

        table = await run_plugin(ResourceUsageCollector, Organization("test-org"))

        assert table.series("azure_devops_resourceusage_build") == {
            ("totalCount", "Private", "false"): 4.0,
            ("runningRequests", "Private", "false"): 2.0,
            ("totalCount", "Public", "true"): 1.0,
            ("totalMinutes", "Public", "true"): 1800.0,
            ("runningRequests", "Public", "true"): 0.0,
        }


FAILED_BUILD = {
    **BUILD,
    "id": 43,
    "result": "failed",
    "queue": {"pool": {"id": 8}},
    "startTime": "2026-02-07T10:00:30Z",
    "finishTime": "2026-02-07T10:02:30Z",
}

STATS_DEPLOYMENTS = [
    {
        "id": 1000,
        "releaseDefinition": {"id": 5},
        "definitionEnvironmentId": 11,
        "deploymentStatus": "succeeded",
        "queuedOn": QUEUED,
        "startedOn": STARTED,
        "completedOn": FINISHED,
    },
    {
        "id": 1001,
        "releaseDefinition": {"id": 5},
        "definitionEnvironmentId": 11,
        "deploymentStatus": "failed",
        "queuedOn": QUEUED,
        "startedOn": "2026-02-07T10:00:00Z",
        "completedOn": "2026-02-07T10:01:00Z",
    },
    {
        "id": 1002,
        "releaseDefinition": {"id": 5},
        "definitionEnvironmentId": 11,
        "deploymentStatus": "inProgress",
        "queuedOn": QUEUED,
        "startedOn": STARTED,
    },
]


class TestStatsCollector:
    """Tests for the windowed build and deployment summaries"""

    @pytest.fixture(autouse=True)
    def stats_responses(self, client):
        client.list_builds_finished_since = AsyncMock(return_value=[BUILD, {**BUILD, "id": 44}, FAILED_BUILD])
        client.list_deployments_since = AsyncMock(return_value=STATS_DEPLOYMENTS)

    @pytest.mark.asyncio
    async def test_project_build_stats(self, run_plugin, sample_project):
        table = await run_plugin(StatsCollector, sample_project)

        assert table.series("azure_devops_stats_project_builds") == {("p-1", "failed"): 1.0, ("p-1", "succeeded"): 2.0}
        wait = table.series("azure_devops_stats_project_build_wait")
        assert wait[("p-1", "failed")] == pytest.approx(30.0)
        assert wait[("p-1", "succeeded")] == pytest.approx(60.123456)
        duration = table.series("azure_devops_stats_project_build_duration")
        assert duration == {("p-1", "failed"): pytest.approx(120.0), ("p-1", "succeeded"): pytest.approx(300.0)}
        assert table.series("azure_devops_stats_project_build_success") == {("p-1",): pytest.approx(2 / 3)}

    @pytest.mark.asyncio
    async def test_agent_pool_build_stats(self, run_plugin, sample_project):
        table = await run_plugin(StatsCollector, sample_project)

        assert table.series("azure_devops_stats_agentpool_builds") == {
            ("7", "p-1", "succeeded"): 2.0,
            ("8", "p-1", "failed"): 1.0,
        }
        assert table.series("azure_devops_stats_agentpool_build_duration")[("8", "p-1", "failed")] == pytest.approx(120.0)

    @pytest.mark.asyncio
    async def test_release_stats_skip_unfinished_deployments(self, run_plugin, sample_project):
        table = await run_plugin(StatsCollector, sample_project)

        assert table.series("azure_devops_stats_project_release_duration") == {
            ("p-1", "5", "11", "succeeded"): pytest.approx(300.0),
            ("p-1", "5", "11", "failed"): pytest.approx(60.0),
        }
        assert table.series("azure_devops_stats_project_release_success") == {("p-1", "5", "11"): 0.5}

    @pytest.mark.asyncio
    async def test_window_uses_summary_max_age(self, run_plugin, client, sample_project, exporter_config):
        await run_plugin(StatsCollector, sample_project)

        project_id, since = client.list_builds_finished_since.await_args.args
        assert project_id == "p-1"
        age = datetime.now(UTC) - since
        window = timedelta(seconds=exporter_config.stats.summary_max_age)
        assert window - timedelta(seconds=5) < age < window + timedelta(seconds=5)
        assert client.list_deployments_since.await_args.args == ("p-1", since)

    @pytest.mark.asyncio
    async def test_quiet_project_has_no_ratios(self, run_plugin, client, sample_project):
        client.list_builds_finished_since = AsyncMock(return_value=[])
        client.list_deployments_since = AsyncMock(return_value=[])

        table = await run_plugin(StatsCollector, sample_project)

        assert table.series("azure_devops_stats_project_build_success") == {}
        assert table.series("azure_devops_stats_project_release_success") == {}


class TestRepeatedCollection:
    """Collecting unchanged API state twice yields the same apply commands"""

    @pytest.fixture
    def context(self, client, metrics_registry, exporter_config):
        return CollectorContext(
            name="plugin",
            client=client,
            registry=metrics_registry,
            config=exporter_config,
            organization=Organization("test-org"),
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plugin_class", [BuildCollector, DeploymentCollector, ReleaseCollector, StatsCollector])
    async def test_same_state_same_commands(self, context, client, sample_project, plugin_class):
        client.list_build_definitions = AsyncMock(return_value=[{"id": 3, "name": "CI"}])
        client.list_builds = AsyncMock(return_value=[BUILD, FAILED_BUILD])
        client.list_release_definitions = AsyncMock(return_value=[{"id": 5, "name": "Deploy"}])
        client.list_releases = AsyncMock(
            return_value=[{"id": 90, "name": "Release-9", "environments": [{"id": 900, "createdOn": QUEUED}]}]
        )
        client.list_release_deployments = AsyncMock(return_value=STATS_DEPLOYMENTS)
        client.list_builds_finished_since = AsyncMock(return_value=[BUILD, FAILED_BUILD])
        client.list_deployments_since = AsyncMock(return_value=STATS_DEPLOYMENTS)

        plugin = plugin_class()
        plugin.setup(context)

        runs = []
        for _ in range(2):
            queue = ApplyQueue(sample_project.key)
            await plugin.collect(context, logging.getLogger("test"), queue, sample_project)
            runs.append([batch.commands for batch in queue.batches])

        assert runs[0]
        assert runs[0] == runs[1]
