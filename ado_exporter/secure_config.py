"""
Secure Configuration Management

Turns parsed command line options (which default to environment variables,
optionally loaded from a .env file) into one validated, immutable
ExporterConfig. Everything is resolved exactly once at startup: optional
per-collector scrape intervals fall back to the global default here, so no
call site ever has to null-check them again.

Usage:
    from ado_exporter.secure_config import load_config

    config = load_config(namespace)
    print(config.azure_devops.organization)
    print(config.scrape_config("build").interval)

Security Features:
    - Fail-fast on missing/invalid configuration
    - Access token may come from a file (trimmed of surrounding whitespace)
    - Placeholder detection (e.g., "your_pat_here")
    - Token never included in repr() or log output

Raises:
    ConfigurationError: If configuration is missing or invalid
    AuthError: If no access token is configured
"""

import os
import re
from argparse import Namespace
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ado_exporter.core.exceptions import AuthError, ConfigurationError
from ado_exporter.core.logging_config import get_logger
from ado_exporter.domain.resources import QueryTarget
from ado_exporter.utils.datetime_utils import parse_duration

logger = get_logger(__name__)

DEFAULT_SCRAPE_INTERVAL = 30 * 60.0
DEFAULT_LIVE_INTERVAL = 30.0

# Collector name -> interval option. "live" has its own default, every other
# option falls back to the global --scrape.time when unset.
COLLECTOR_INTERVALS: dict[str, str] = {
    "project": "live",
    "agentpool": "live",
    "latestbuild": "live",
    "repository": "repository",
    "pullrequest": "pullrequest",
    "build": "build",
    "release": "release",
    "deployment": "deployment",
    "resourceusage": "resourceusage",
    "query": "query",
    "stats": "stats",
}

_PLACEHOLDERS = ("your_pat", "your_token", "placeholder", "replace_me", "changeme")


@dataclass(frozen=True)
class AzureDevOpsConfig:
    """
    Validated Azure DevOps connection settings.

    Attributes:
        organization: Organization name (as in https://dev.azure.com/<organization>)
        access_token: Personal Access Token
        url: Optional server URL for Azure DevOps Server (on-prem)
        api_version: REST API version sent with every request
        agent_pool_ids: Restrict agent pool collection to these ids (empty = all)
        project_filter: Only collect these project ids (empty = all)
        project_blacklist: Never collect these project ids
        queries: Saved work item queries to count
    """

    organization: str
    access_token: str = field(repr=False)
    url: str | None = None
    api_version: str = "7.1"
    agent_pool_ids: tuple[int, ...] = ()
    project_filter: tuple[str, ...] = ()
    project_blacklist: tuple[str, ...] = ()
    queries: tuple[QueryTarget, ...] = ()

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        if not self.organization:
            raise ConfigurationError("Azure DevOps organisation is required (AZURE_DEVOPS_ORGANISATION)")

        if not re.match(r"^[A-Za-z0-9][A-Za-z0-9 _\-\.]*$", self.organization):
            raise ConfigurationError(f"Azure DevOps organisation contains invalid characters: {self.organization}")

        if not self.access_token:
            raise AuthError("no Azure DevOps access token specified")

        if any(placeholder in self.access_token.lower() for placeholder in _PLACEHOLDERS):
            raise AuthError("Azure DevOps access token contains a placeholder value - please set a real token")

        if self.url is not None and not self.url.startswith(("https://", "http://")):
            raise ConfigurationError(f"Azure DevOps URL must start with http:// or https://: {self.url}")

        if not self.api_version:
            raise ConfigurationError("Azure DevOps API version must not be empty")


@dataclass(frozen=True)
class RequestConfig:
    """HTTP request settings shared by every API call."""

    concurrency: int = 10
    retries: int = 3
    timeout: float = 30.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ConfigurationError(f"request concurrency must be at least 1, got {self.concurrency}")
        if self.retries < 1:
            raise ConfigurationError(f"request retries must be at least 1, got {self.retries}")
        if self.timeout <= 0:
            raise ConfigurationError(f"request timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class LimitConfig:
    """Per-dimension record caps that bound the cost on large organizations."""

    project: int = 100
    builds_per_project: int = 100
    builds_per_definition: int = 10
    releases_per_definition: int = 100
    deployments_per_definition: int = 100
    release_definitions_per_project: int = 100
    releases_per_project: int = 100

    def __post_init__(self):
        for name, value in self.__dict__.items():
            if value < 1:
                raise ConfigurationError(f"limit '{name}' must be at least 1, got {value}")


@dataclass(frozen=True)
class StatsConfig:
    """
    Settings of the stats collector.

    Attributes:
        summary_max_age: Seconds of history the build and deployment summaries cover
    """

    summary_max_age: float = DEFAULT_SCRAPE_INTERVAL

    def __post_init__(self):
        if self.summary_max_age <= 0:
            raise ConfigurationError(f"stats summary max age must be positive, got {self.summary_max_age}")


@dataclass(frozen=True)
class ServerConfig:
    """HTTP listener settings."""

    bind: str = ":8080"
    read_timeout: float = 5.0
    write_timeout: float = 10.0

    def __post_init__(self):
        self.address  # validates bind

    @property
    def address(self) -> tuple[str, int]:
        """Split the bind address into (host, port); an empty host listens on all interfaces."""
        host, separator, port = self.bind.rpartition(":")
        if not separator or not port.isdigit():
            raise ConfigurationError(f"server bind address must look like 'host:port' or ':port', got '{self.bind}'")
        return host.strip("[]") or "0.0.0.0", int(port)


@dataclass(frozen=True)
class LoggerConfig:
    verbose: bool = False
    debug: bool = False
    json: bool = False

    @property
    def level(self) -> str:
        return "DEBUG" if self.verbose or self.debug else "INFO"


@dataclass(frozen=True)
class ScrapeConfig:
    """
    Resolved scheduling settings of one collector.

    Attributes:
        name: Collector name
        interval: Seconds between ticks (0 disables the collector)
        concurrency: Maximum resources collected at the same time
    """

    name: str
    interval: float
    concurrency: int = 10

    @property
    def enabled(self) -> bool:
        return self.interval > 0


@dataclass(frozen=True)
class ExporterConfig:
    """Complete, flat configuration built once at startup."""

    azure_devops: AzureDevOpsConfig
    request: RequestConfig = field(default_factory=RequestConfig)
    limits: LimitConfig = field(default_factory=LimitConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    discovery_interval: float = DEFAULT_SCRAPE_INTERVAL
    scrape: tuple[ScrapeConfig, ...] = ()

    def scrape_config(self, name: str) -> ScrapeConfig:
        for scrape in self.scrape:
            if scrape.name == name:
                return scrape
        raise KeyError(name)

    def summary(self) -> dict[str, Any]:
        """Loggable view of the configuration (no secrets)."""
        return {
            "organization": self.azure_devops.organization,
            "url": self.azure_devops.url,
            "api_version": self.azure_devops.api_version,
            "agent_pools": list(self.azure_devops.agent_pool_ids),
            "queries": len(self.azure_devops.queries),
            "request": self.request.__dict__,
            "limits": self.limits.__dict__,
            "server": self.server.__dict__,
            "stats": self.stats.__dict__,
            "discovery_interval": self.discovery_interval,
            "scrape": {scrape.name: scrape.interval for scrape in self.scrape},
        }


def resolve_scrape_configs(
    default_interval: float,
    live_interval: float,
    overrides: Mapping[str, float | None],
    concurrency: int = 10,
) -> tuple[ScrapeConfig, ...]:
    """
    Resolve every collector's interval exactly once.

    Args:
        default_interval: Global --scrape.time
        live_interval: --scrape.time.live (project, agent pool, latest build)
        overrides: Interval option -> seconds, None when unset
        concurrency: Fan-out limit applied to every collector

    Returns:
        One ScrapeConfig per known collector

    Example:
        >>> configs = resolve_scrape_configs(1800, 30, {"build": 300, "release": None})
        >>> {c.name: c.interval for c in configs}["release"]
        1800
    """
    if concurrency < 1:
        raise ConfigurationError(f"scrape concurrency must be at least 1, got {concurrency}")

    configs = []
    for name, option in COLLECTOR_INTERVALS.items():
        if option == "live":
            interval = live_interval
        else:
            override = overrides.get(option)
            interval = default_interval if override is None else override
        configs.append(ScrapeConfig(name=name, interval=interval, concurrency=concurrency))
    return tuple(configs)


def read_access_token(path: str) -> str:
    """
    Read the access token from a file, trimming surrounding whitespace.

    Raises:
        ConfigurationError: If the file cannot be read
    """
    logger.info(f'reading access token from file "{path}"')
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f'unable to read access token file "{path}": {e}') from e


def _split_list(values: Iterable[str] | str | None) -> list[str]:
    """Flatten repeated and comma/space separated option values."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]

    items: list[str] = []
    for value in values:
        items.extend(part for part in re.split(r"[,\s]+", value) if part)
    return items


def _duration(value: Any, option: str) -> float | None:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise ConfigurationError(f"{option}: {e}") from e


def load_config(options: Namespace) -> ExporterConfig:
    """
    Build the validated ExporterConfig from parsed command line options.

    Args:
        options: Namespace returned by the CLI parser

    Returns:
        ExporterConfig: Validated configuration

    Raises:
        ConfigurationError: If configuration is missing or invalid
        AuthError: If no access token is available
    """
    if os.getenv("AZURE_DEVOPS_FILTER_AGENTPOOL"):
        raise ConfigurationError(
            "deprecated env var AZURE_DEVOPS_FILTER_AGENTPOOL detected, please use AZURE_DEVOPS_AGENTPOOL"
        )

    access_token = options.access_token or ""
    if options.access_token_file:
        access_token = read_access_token(options.access_token_file)

    try:
        agent_pool_ids = tuple(int(pool_id) for pool_id in _split_list(options.agent_pools))
    except ValueError as e:
        raise ConfigurationError(f"agent pool ids must be integers: {e}") from e

    queries = tuple(QueryTarget.parse(descriptor) for descriptor in _split_list(options.queries))

    azure_devops = AzureDevOpsConfig(
        organization=options.organisation or "",
        access_token=access_token,
        url=options.url or None,
        api_version=options.api_version,
        agent_pool_ids=agent_pool_ids,
        project_filter=tuple(_split_list(options.project_filter)),
        project_blacklist=tuple(_split_list(options.project_blacklist)),
        queries=queries,
    )

    default_interval = _duration(options.scrape_time, "--scrape.time")
    if default_interval is None:
        default_interval = DEFAULT_SCRAPE_INTERVAL

    live_interval = _duration(options.scrape_time_live, "--scrape.time.live")
    if live_interval is None:
        live_interval = DEFAULT_LIVE_INTERVAL

    overrides = {
        option: _duration(getattr(options, f"scrape_time_{option}"), f"--scrape.time.{option}")
        for option in set(COLLECTOR_INTERVALS.values())
        if option != "live"
    }

    discovery_interval = _duration(options.scrape_time_projects, "--scrape.time.projects")
    if discovery_interval is None:
        discovery_interval = default_interval

    # Defaults to the stats interval
    summary_max_age = _duration(options.stats_summary_max_age, "--stats.summary-max-age")
    if not summary_max_age:
        summary_max_age = overrides["stats"] or default_interval or DEFAULT_SCRAPE_INTERVAL

    return ExporterConfig(
        azure_devops=azure_devops,
        request=RequestConfig(
            concurrency=options.request_concurrency,
            retries=options.request_retries,
            timeout=_duration(options.request_timeout, "--request.timeout") or RequestConfig.timeout,
        ),
        limits=LimitConfig(
            project=options.limit_project,
            builds_per_project=options.limit_builds_per_project,
            builds_per_definition=options.limit_builds_per_definition,
            releases_per_definition=options.limit_releases_per_definition,
            deployments_per_definition=options.limit_deployments_per_definition,
            release_definitions_per_project=options.limit_release_definitions_per_project,
            releases_per_project=options.limit_releases_per_project,
        ),
        server=ServerConfig(
            bind=options.server_bind,
            read_timeout=_duration(options.server_timeout_read, "--server.timeout.read") or ServerConfig.read_timeout,
            write_timeout=_duration(options.server_timeout_write, "--server.timeout.write")
            or ServerConfig.write_timeout,
        ),
        logger=LoggerConfig(verbose=options.log_verbose, debug=options.log_debug, json=options.log_json),
        stats=StatsConfig(summary_max_age=summary_max_age),
        discovery_interval=discovery_interval,
        scrape=resolve_scrape_configs(
            default_interval,
            live_interval,
            overrides,
            concurrency=options.scrape_concurrency,
        ),
    )
