"""
Collector Performance Tracking Module

Self-observability for the exporter itself, exposed next to the Azure DevOps
series on /metrics:
    - ExporterMetrics: prometheus_client counters and gauges for cycles and API calls
    - CycleTracker: tracks one collection cycle of one collector
    - track_cycle(): context manager wrapping a cycle

One ExporterMetrics instance is created at startup and handed explicitly to
the REST client and every collector.
"""

import time
from collections.abc import Generator
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Gauge

from ado_exporter.core.logging_config import get_logger

logger = get_logger(__name__)

NAMESPACE = "azure_devops_exporter"


class ExporterMetrics:
    """
    Counters and gauges describing the exporter's own behavior.

    Attributes:
        cycle_duration: Duration of the last finished cycle per collector
        cycle_last_success: Unix time of the last published cycle per collector
        cycles: Finished cycles per collector and result ("success" / "error")
        resources_collected: Resources collected successfully per collector
        resource_errors: Resources whose collection failed per collector
        skipped_ticks: Timer ticks skipped because a cycle was still running
        discovery_runs: Discovery runs per result
        api_requests: API attempts per HTTP status ("error" for network failures)
        api_retries: Retries per reason ("throttled", "server_error", "network")
        api_rate_limit_hits: 429 responses
    """

    def __init__(self, registry: CollectorRegistry):
        self.cycle_duration = Gauge(
            "collector_duration_seconds",
            "Duration of the last collection cycle",
            ["collector"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.cycle_last_success = Gauge(
            "collector_last_success_timestamp_seconds",
            "Unix time of the last published collection cycle",
            ["collector"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.cycles = Counter(
            "collector_cycles",
            "Finished collection cycles",
            ["collector", "result"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.resources_collected = Counter(
            "collector_resources_collected",
            "Resources collected successfully",
            ["collector"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.resource_errors = Counter(
            "collector_resource_errors",
            "Resources whose collection failed",
            ["collector"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.skipped_ticks = Counter(
            "collector_skipped_ticks",
            "Timer ticks skipped because the previous cycle was still running",
            ["collector"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.discovery_runs = Counter(
            "discovery_runs",
            "Resource discovery runs",
            ["result"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.api_requests = Counter(
            "api_requests",
            "Azure DevOps API request attempts",
            ["status"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.api_retries = Counter(
            "api_retries",
            "Azure DevOps API retries",
            ["reason"],
            namespace=NAMESPACE,
            registry=registry,
        )
        self.api_rate_limit_hits = Counter(
            "api_rate_limit_hits",
            "Azure DevOps API throttling responses (HTTP 429)",
            namespace=NAMESPACE,
            registry=registry,
        )

    def record_api_call(self, status: int | None) -> None:
        self.api_requests.labels(status=str(status) if status is not None else "error").inc()

    def record_retry(self, reason: str) -> None:
        self.api_retries.labels(reason=reason).inc()

    def record_rate_limit_hit(self) -> None:
        self.api_rate_limit_hits.inc()

    def record_skipped_tick(self, collector: str) -> None:
        self.skipped_ticks.labels(collector=collector).inc()

    def record_discovery(self, success: bool) -> None:
        self.discovery_runs.labels(result="success" if success else "error").inc()


class CycleTracker:
    """
    Tracks performance and health of a single collection cycle.

    Attributes:
        collector_name: Name of collector (e.g., "build", "agentpool")
        start_time: Monotonic timestamp when the cycle started (None before start())
        duration_seconds: Total cycle duration
        resource_count: Number of resources fanned out to
        success_count: Resources collected successfully
        error_count: Resources whose collection failed
        published: Whether the apply step published a new snapshot

    Example:
        >>> tracker = CycleTracker("build")
        >>> tracker.start()
        >>> tracker.record_success()
        >>> tracker.end(published=True)
        >>> tracker.success_count
        1
    """

    def __init__(self, collector_name: str):
        self.collector_name = collector_name
        self.start_time: float | None = None
        self.duration_seconds: float = 0.0
        self.resource_count: int = 0
        self.success_count: int = 0
        self.error_count: int = 0
        self.published: bool = False

    def start(self) -> None:
        self.start_time = time.monotonic()
        logger.debug(f"Started tracking: {self.collector_name}")

    def end(self, published: bool) -> None:
        if self.start_time is not None:
            self.duration_seconds = time.monotonic() - self.start_time
        self.published = published

    def record_success(self) -> None:
        self.success_count += 1

    def record_error(self) -> None:
        self.error_count += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "collector": self.collector_name,
            "duration_ms": round(self.duration_seconds * 1000, 2),
            "resources": self.resource_count,
            "succeeded": self.success_count,
            "failed": self.error_count,
            "published": self.published,
        }


@contextmanager
def track_cycle(collector_name: str, metrics: ExporterMetrics | None) -> Generator[CycleTracker, None, None]:
    """
    Context manager for automatic cycle tracking.

    Records duration, per-resource success and error counts, and the time of
    the last published cycle. The tracker's `published` flag must be set by
    the caller once the apply step has swapped in the new snapshot.

    Args:
        collector_name: Name of collector
        metrics: Exporter metrics to update (None disables recording)

    Yields:
        CycleTracker instance for the caller to update

    Example:
        >>> with track_cycle("build", metrics) as tracker:
        ...     tracker.resource_count = len(projects)
        ...     ...
        ...     tracker.published = True
    """
    tracker = CycleTracker(collector_name)
    tracker.start()

    try:
        yield tracker
    finally:
        tracker.end(published=tracker.published)

        if metrics is not None:
            metrics.cycle_duration.labels(collector=collector_name).set(tracker.duration_seconds)
            metrics.resources_collected.labels(collector=collector_name).inc(tracker.success_count)
            metrics.resource_errors.labels(collector=collector_name).inc(tracker.error_count)
            result = "success" if tracker.published else "error"
            metrics.cycles.labels(collector=collector_name, result=result).inc()
            if tracker.published:
                metrics.cycle_last_success.labels(collector=collector_name).set_to_current_time()

        logger.info(
            f"collector[{collector_name}]: cycle finished in {tracker.duration_seconds:.2f}s "
            f"({tracker.success_count} succeeded, {tracker.error_count} failed)",
            extra=tracker.to_dict(),
        )
