"""
Resource domain models

Top-level Azure DevOps entities that collectors iterate over:
    - Project: a team project
    - AgentPool: a build/release agent pool
    - QueryTarget: a saved work item query bound to its project
    - Organization: the singleton context for organization-wide collectors
    - ResourceSnapshot: immutable result of one discovery run
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ado_exporter.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class Project:
    """
    Azure DevOps team project.

    Attributes:
        id: Project UUID
        name: Project name
        discovered_at: When discovery saw this project
        url: REST URL of the project
        state: Project state (e.g. "wellFormed")
        visibility: "private" or "public"
    """

    id: str
    name: str
    discovered_at: datetime
    url: str = ""
    state: str = ""
    visibility: str = ""

    @property
    def key(self) -> str:
        return f"project:{self.id}"

    @classmethod
    def from_api(cls, payload: dict[str, Any], discovered_at: datetime) -> "Project":
        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            discovered_at=discovered_at,
            url=payload.get("url", ""),
            state=payload.get("state", ""),
            visibility=payload.get("visibility", ""),
        )


@dataclass(frozen=True)
class AgentPool:
    """
    Azure DevOps agent pool.

    Attributes:
        id: Numeric pool id
        name: Pool name
        discovered_at: When discovery saw this pool
        size: Number of agents registered in the pool
        is_hosted: True for Microsoft-hosted pools
        pool_type: "automation" or "deployment"
    """

    id: int
    name: str
    discovered_at: datetime
    size: int = 0
    is_hosted: bool = False
    pool_type: str = ""

    @property
    def key(self) -> str:
        return f"agentpool:{self.id}"

    @classmethod
    def from_api(cls, payload: dict[str, Any], discovered_at: datetime) -> "AgentPool":
        return cls(
            id=int(payload["id"]),
            name=payload.get("name", ""),
            discovered_at=discovered_at,
            size=int(payload.get("size") or 0),
            is_hosted=bool(payload.get("isHosted", False)),
            pool_type=payload.get("poolType", ""),
        )


@dataclass(frozen=True)
class QueryTarget:
    """Saved work item query identified by query id and owning project id."""

    query_id: str
    project_id: str

    @property
    def key(self) -> str:
        return f"query:{self.project_id}:{self.query_id}"

    @classmethod
    def parse(cls, descriptor: str) -> "QueryTarget":
        """
        Parse a "<query UUID>@<project UUID>" descriptor.

        Raises:
            ConfigurationError: If the descriptor does not contain exactly one '@'
                or either side is empty
        """
        if descriptor.count("@") != 1:
            raise ConfigurationError(
                f"Query path '{descriptor}' is malformed; should be '<query UUID>@<project UUID>'"
            )

        query_id, project_id = (part.strip() for part in descriptor.split("@"))
        if not query_id or not project_id:
            raise ConfigurationError(
                f"Query path '{descriptor}' is malformed; should be '<query UUID>@<project UUID>'"
            )

        return cls(query_id=query_id, project_id=project_id)


@dataclass(frozen=True)
class Organization:
    """Fixed context handed to organization-wide (resource-less) collectors."""

    name: str

    @property
    def key(self) -> str:
        return f"organization:{self.name}"


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Immutable result of one successful discovery run.

    Collectors read the snapshot that is current when their cycle starts and
    keep using it for the whole cycle.
    """

    projects: tuple[Project, ...] = ()
    agent_pools: tuple[AgentPool, ...] = ()
    queries: tuple[QueryTarget, ...] = ()
    discovered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_empty(self) -> bool:
        return not self.projects and not self.agent_pools and not self.queries
