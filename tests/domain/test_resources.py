"""
Tests for resource domain models
"""

from datetime import UTC, datetime

import pytest

from ado_exporter.core.exceptions import ConfigurationError
from ado_exporter.domain import AgentPool, Organization, Project, QueryTarget, ResourceSnapshot

NOW = datetime(2026, 2, 7, tzinfo=UTC)


class TestProject:
    def test_from_api(self):
        project = Project.from_api({"id": "p-1", "name": "One", "state": "wellFormed", "visibility": "private"}, NOW)

        assert project.id == "p-1"
        assert project.name == "One"
        assert project.key == "project:p-1"
        assert project.discovered_at == NOW

    def test_from_api_requires_id(self):
        with pytest.raises(KeyError):
            Project.from_api({"name": "no id"}, NOW)


class TestAgentPool:
    def test_from_api(self):
        pool = AgentPool.from_api({"id": "7", "name": "Default", "size": 3, "isHosted": True, "poolType": "automation"}, NOW)

        assert pool.id == 7
        assert pool.size == 3
        assert pool.is_hosted is True
        assert pool.key == "agentpool:7"


class TestQueryTarget:
    """Tests for '<query UUID>@<project UUID>' parsing"""

    def test_parse_valid(self):
        target = QueryTarget.parse("q-1@p-1")

        assert target.query_id == "q-1"
        assert target.project_id == "p-1"
        assert target.key == "query:p-1:q-1"

    @pytest.mark.parametrize("descriptor", ["q-1", "q-1@p-1@x", "@p-1", "q-1@", ""])
    def test_parse_malformed(self, descriptor):
        with pytest.raises(ConfigurationError, match="is malformed"):
            QueryTarget.parse(descriptor)


class TestResourceSnapshot:
    def test_empty_snapshot(self):
        assert ResourceSnapshot().is_empty

    def test_organization_key(self):
        assert Organization("org").key == "organization:org"

    def test_snapshot_is_immutable(self):
        snapshot = ResourceSnapshot()

        with pytest.raises(AttributeError):
            snapshot.projects = ()
