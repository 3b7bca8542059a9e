"""
Command line entry point

Every option can also be set through an environment variable (optionally
from a .env file in the working directory); the command line wins.

Usage:
    azure-devops-exporter --azuredevops.organisation=myorg --azuredevops.access-token-file=/secrets/pat
    python -m ado_exporter --scrape.time=15m --scrape.time.build=5m

Exit codes:
    0   --help, or clean shutdown
    1   invalid options or configuration (including a missing access token)
"""

import argparse
import os
import sys

import uvicorn
from dotenv import load_dotenv
from prometheus_client import CollectorRegistry

from ado_exporter import __version__
from ado_exporter.api.app import create_app
from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.collectors.scheduler import CollectorScheduler
from ado_exporter.core import ConfigurationError, get_logger, log_with_context, setup_logging
from ado_exporter.core.collector_metrics import ExporterMetrics
from ado_exporter.core.exceptions import AuthError
from ado_exporter.core.registry import MetricsRegistry
from ado_exporter.secure_config import ExporterConfig, LoggerConfig, load_config

logger = get_logger(__name__)

# dest -> environment variable of options that may be repeated on the command line
LIST_OPTIONS = {
    "agent_pools": "AZURE_DEVOPS_AGENTPOOL",
    "project_filter": "AZURE_DEVOPS_FILTER_PROJECT",
    "project_blacklist": "AZURE_DEVOPS_BLACKLIST_PROJECT",
    "queries": "AZURE_DEVOPS_QUERIES",
}


class ExporterArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 (not 2) on invalid options."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"environment variable {name} must be an integer, got '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser; defaults come from the current environment.

    Returns:
        Parser producing the namespace consumed by load_config()
    """
    parser = ExporterArgumentParser(
        prog="azure-devops-exporter",
        description="Prometheus exporter for Azure DevOps",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument("--log.verbose", dest="log_verbose", action="store_true", default=_env_bool("LOG_VERBOSE"))
    logging_group.add_argument("--log.debug", dest="log_debug", action="store_true", default=_env_bool("LOG_DEBUG"))
    logging_group.add_argument("--log.json", dest="log_json", action="store_true", default=_env_bool("LOG_JSON"))

    ado = parser.add_argument_group("azure devops")
    ado.add_argument("--azuredevops.url", dest="url", default=os.getenv("AZURE_DEVOPS_URL"), help="Azure DevOps Server URL (on-prem)")
    ado.add_argument("--azuredevops.access-token", dest="access_token", default=os.getenv("AZURE_DEVOPS_ACCESS_TOKEN"), help="Personal Access Token")
    ado.add_argument(
        "--azuredevops.access-token-file",
        dest="access_token_file",
        default=os.getenv("AZURE_DEVOPS_ACCESS_TOKEN_FILE"),
        help="File containing the Personal Access Token",
    )
    ado.add_argument("--azuredevops.organisation", dest="organisation", default=os.getenv("AZURE_DEVOPS_ORGANISATION"), help="Organization name")
    ado.add_argument("--azuredevops.apiversion", dest="api_version", default=os.getenv("AZURE_DEVOPS_APIVERSION", "7.1"), help="REST API version")
    ado.add_argument("--azuredevops.agentpool", dest="agent_pools", action="append", help="Agent pool ids to collect (repeatable)")
    ado.add_argument("--azuredevops.filter.project", dest="project_filter", action="append", help="Only collect these project ids (repeatable)")
    ado.add_argument("--azuredevops.blacklist.project", dest="project_blacklist", action="append", help="Never collect these project ids (repeatable)")
    ado.add_argument(
        "--azuredevops.queries",
        dest="queries",
        action="append",
        help="Saved queries as '<query UUID>@<project UUID>' (repeatable)",
    )

    request = parser.add_argument_group("requests")
    request.add_argument("--request.concurrency", dest="request_concurrency", type=int, default=_env_int("REQUEST_CONCURRENCY", 10))
    request.add_argument("--request.retries", dest="request_retries", type=int, default=_env_int("REQUEST_RETRIES", 3))
    request.add_argument("--request.timeout", dest="request_timeout", default=os.getenv("REQUEST_TIMEOUT", "30s"))

    limit = parser.add_argument_group("limits")
    limit.add_argument("--limit.project", dest="limit_project", type=int, default=_env_int("LIMIT_PROJECT", 100))
    limit.add_argument(
        "--limit.builds-per-project",
        dest="limit_builds_per_project",
        type=int,
        default=_env_int("LIMIT_BUILDS_PER_PROJECT", 100),
    )
    limit.add_argument(
        "--limit.builds-per-definition",
        dest="limit_builds_per_definition",
        type=int,
        default=_env_int("LIMIT_BUILDS_PER_DEFINITION", 10),
    )
    limit.add_argument(
        "--limit.releases-per-definition",
        dest="limit_releases_per_definition",
        type=int,
        default=_env_int("LIMIT_RELEASES_PER_DEFINITION", 100),
    )
    limit.add_argument(
        "--limit.deployments-per-definition",
        dest="limit_deployments_per_definition",
        type=int,
        default=_env_int("LIMIT_DEPLOYMENTS_PER_DEFINITION", 100),
    )
    limit.add_argument(
        "--limit.releasedefinitions-per-project",
        dest="limit_release_definitions_per_project",
        type=int,
        default=_env_int("LIMIT_RELEASEDEFINITION_PER_PROJECT", 100),
    )
    limit.add_argument(
        "--limit.releases-per-project",
        dest="limit_releases_per_project",
        type=int,
        default=_env_int("LIMIT_RELEASES_PER_PROJECT", 100),
    )

    scrape = parser.add_argument_group("scrape")
    scrape.add_argument("--scrape.time", dest="scrape_time", default=os.getenv("SCRAPE_TIME", "30m"), help="Default scrape interval")
    for option in ("projects", "repository", "pullrequest", "build", "release", "deployment", "resourceusage", "query", "stats"):
        scrape.add_argument(
            f"--scrape.time.{option}",
            dest=f"scrape_time_{option}",
            default=os.getenv(f"SCRAPE_TIME_{option.upper()}"),
            help="Scrape interval (default: --scrape.time, 0 disables)",
        )
    scrape.add_argument(
        "--scrape.time.live",
        dest="scrape_time_live",
        default=os.getenv("SCRAPE_TIME_LIVE", "30s"),
        help="Scrape interval of project, agent pool and latest build collectors",
    )
    scrape.add_argument(
        "--scrape.concurrency",
        dest="scrape_concurrency",
        type=int,
        default=_env_int("SCRAPE_CONCURRENCY", 10),
        help="Resources collected at the same time per collector",
    )

    stats = parser.add_argument_group("stats")
    stats.add_argument(
        "--stats.summary-max-age",
        dest="stats_summary_max_age",
        default=os.getenv("STATS_SUMMARY_MAX_AGE"),
        help="History covered by the stats collector (default: --scrape.time.stats)",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--server.bind", dest="server_bind", default=os.getenv("SERVER_BIND", ":8080"))
    server.add_argument("--server.timeout.read", dest="server_timeout_read", default=os.getenv("SERVER_TIMEOUT_READ", "5s"))
    server.add_argument("--server.timeout.write", dest="server_timeout_write", default=os.getenv("SERVER_TIMEOUT_WRITE", "10s"))

    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments, falling back to environment variables.

    Returns:
        Namespace: Parsed arguments
    """
    parser = build_parser()
    options = parser.parse_args(argv)

    for dest, env_name in LIST_OPTIONS.items():
        if getattr(options, dest) is None:
            setattr(options, dest, os.getenv(env_name))

    return options


def build_server(config: ExporterConfig) -> uvicorn.Server:
    """Wire registry, REST client, scheduler and HTTP app together."""
    prometheus_registry = CollectorRegistry()
    metrics = ExporterMetrics(prometheus_registry)
    registry = MetricsRegistry(prometheus_registry)

    client = AzureDevOpsRESTClient(
        config.azure_devops.organization,
        config.azure_devops.access_token,
        host_url=config.azure_devops.url,
        api_version=config.azure_devops.api_version,
        concurrency=config.request.concurrency,
        retries=config.request.retries,
        timeout=config.request.timeout,
        limits=config.limits,
        metrics=metrics,
    )
    scheduler = CollectorScheduler(config, client, registry, metrics)
    app = create_app(registry, scheduler=scheduler, client=client, write_timeout=config.server.write_timeout)

    host, port = config.server.address
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=port,
            timeout_keep_alive=max(1, int(config.server.read_timeout)),
            log_config=None,
            access_log=False,
        )
    )


def main(argv: list[str] | None = None) -> int:
    """
    Run the exporter until interrupted.

    Returns:
        Process exit code
    """
    load_dotenv()

    try:
        options = parse_arguments(argv)
    except ConfigurationError as e:
        build_parser().print_usage(sys.stderr)
        print(f"azure-devops-exporter: error: {e}", file=sys.stderr)
        return 1

    logger_config = LoggerConfig(verbose=options.log_verbose, debug=options.log_debug, json=options.log_json)
    setup_logging(level=logger_config.level, json_output=logger_config.json, debug=logger_config.debug)

    try:
        config = load_config(options)
    except AuthError as e:
        logger.error(f"{e.args[0]}, please set AZURE_DEVOPS_ACCESS_TOKEN or AZURE_DEVOPS_ACCESS_TOKEN_FILE")
        return 1
    except ConfigurationError as e:
        logger.error(f"invalid configuration: {e}")
        build_parser().print_usage(sys.stderr)
        return 1

    log_with_context(logger, "info", f"starting azure-devops-exporter v{__version__}", **config.summary())
    logger.info(f"using concurrency: {config.request.concurrency}")
    logger.info(f"using retries: {config.request.retries}")

    server = build_server(config)
    logger.info(f"starting http server on {config.server.bind}")
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
