"""
Metrics Registry - holds published snapshots and renders them on scrape.

Each collector owns a set of metric families. After every cycle the
collector's single apply step hands over a complete SeriesTable, which
replaces the previous one in one swap. The registry is a prometheus_client
custom collector, so `generate_latest()` always sees whole snapshots: never
a mix of two cycles of the same collector.

Usage:
    registry = MetricsRegistry()
    family = registry.register_family("build", "azure_devops_build_info", "Azure DevOps build", ["projectID"])
    ...
    registry.publish("build", table)
    payload = registry.render()
"""

import threading
from collections.abc import Iterable, Iterator, Sequence

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from ado_exporter.core.logging_config import get_logger
from ado_exporter.domain.metrics import MetricFamily, SeriesTable

logger = get_logger(__name__)


class MetricsRegistry(Collector):
    """
    Registry of collector-owned metric families and their current series.

    Attributes:
        registry: prometheus_client registry served on /metrics. Self-observability
            counters are registered on the same registry.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._families: dict[str, MetricFamily] = {}
        self._published: dict[str, SeriesTable] = {}
        self._lock = threading.Lock()
        self.registry.register(self)

    def register_family(self, owner: str, name: str, help: str, labels: Sequence[str]) -> MetricFamily:
        """
        Declare a gauge family owned exclusively by `owner`.

        Raises:
            ValueError: If the family name is already registered
        """
        with self._lock:
            if name in self._families:
                raise ValueError(f"metric family '{name}' already registered by '{self._families[name].owner}'")

            family = MetricFamily(name=name, help=help, labels=tuple(labels), owner=owner)
            self._families[name] = family

        logger.debug(f"registered metric family {name}", extra={"owner": owner, "labels": list(labels)})
        return family

    def families_of(self, owner: str) -> list[MetricFamily]:
        with self._lock:
            return [family for family in self._families.values() if family.owner == owner]

    def new_table(self, owner: str) -> SeriesTable:
        """Create an empty staging table for all families of `owner`."""
        return SeriesTable(self.families_of(owner))

    def publish(self, owner: str, table: SeriesTable) -> None:
        """Atomically replace everything `owner` exposes with `table`."""
        with self._lock:
            self._published[owner] = table

    def published(self, owner: str) -> SeriesTable | None:
        with self._lock:
            return self._published.get(owner)

    def describe(self) -> Iterable[GaugeMetricFamily]:
        return []

    def collect(self) -> Iterator[GaugeMetricFamily]:
        with self._lock:
            families = list(self._families.values())
            published = dict(self._published)

        for family in families:
            metric = GaugeMetricFamily(family.name, family.help, labels=family.labels)
            table = published.get(family.owner)
            if table is not None:
                for label_values, value in table.series(family.name).items():
                    metric.add_metric(list(label_values), value)
            yield metric

    def render(self) -> bytes:
        """Render the text exposition of every registered collector."""
        return generate_latest(self.registry)
