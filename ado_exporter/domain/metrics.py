"""
Metric domain models

The closed vocabulary plug-ins use to describe state changes, and the
staging table the single apply step writes into:
    - MetricKind: gauge, duration (seconds) or timestamp (Unix seconds)
    - MetricFamily: name, help text and label names of one exported family
    - ApplyCommand: one (family, labels, value, kind) write
    - MetricBatch: ordered commands produced for one resource
    - SeriesTable: family -> label values -> value, rebuilt every cycle
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ado_exporter.core.exceptions import ApplyError


class MetricKind(Enum):
    GAUGE = "gauge"
    DURATION = "duration"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class MetricFamily:
    """
    Definition of one exported gauge family.

    Attributes:
        name: Prometheus metric name (e.g. "azure_devops_build_info")
        help: HELP text
        labels: Label names in exposition order
        owner: Name of the collector that exclusively owns the family
    """

    name: str
    help: str
    labels: tuple[str, ...]
    owner: str


@dataclass(frozen=True)
class ApplyCommand:
    """A single write of `value` to `family` at the given label set."""

    family: str
    labels: tuple[tuple[str, str], ...]
    value: float
    kind: MetricKind = MetricKind.GAUGE


def _label_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


@dataclass
class MetricBatch:
    """
    Ordered apply commands produced by one plug-in invocation for one resource.

    Builder methods mirror the kinds of values Azure DevOps hands back:
    plain numbers, info series (value 1), durations and points in time.

    Example:
        batch = MetricBatch()
        batch.add_info("azure_devops_project_info", {"projectID": p.id, "projectName": p.name})
        batch.add_time("azure_devops_build_status", {"buildID": "12", "type": "started"}, started)
    """

    commands: list[ApplyCommand] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.commands)

    def __iter__(self) -> Iterator[ApplyCommand]:
        return iter(self.commands)

    def add(self, family: str, labels: Mapping[str, Any], value: float, kind: MetricKind = MetricKind.GAUGE) -> None:
        normalized = tuple((str(name), _label_value(label)) for name, label in labels.items())
        self.commands.append(ApplyCommand(family=family, labels=normalized, value=float(value), kind=kind))

    def add_gauge(self, family: str, labels: Mapping[str, Any], value: float | int | None) -> None:
        if value is None:
            return
        self.add(family, labels, float(value))

    def add_info(self, family: str, labels: Mapping[str, Any]) -> None:
        self.add(family, labels, 1.0)

    def add_bool(self, family: str, labels: Mapping[str, Any], value: bool) -> None:
        self.add(family, labels, 1.0 if value else 0.0)

    def add_duration(self, family: str, labels: Mapping[str, Any], value: timedelta | float | None) -> None:
        if value is None:
            return
        seconds = value.total_seconds() if isinstance(value, timedelta) else float(value)
        self.add(family, labels, seconds, MetricKind.DURATION)

    def add_time(self, family: str, labels: Mapping[str, Any], value: datetime | None) -> None:
        if value is None:
            return
        self.add(family, labels, value.timestamp(), MetricKind.TIMESTAMP)


class SeriesTable:
    """
    Staging area for one collector's series.

    The apply step builds a fresh table every cycle (reset-then-set) and the
    registry swaps it in wholesale, so a scrape never sees a half-applied
    cycle.
    """

    def __init__(self, families: Iterable[MetricFamily]):
        self.families: dict[str, MetricFamily] = {family.name: family for family in families}
        self._series: dict[str, dict[tuple[str, ...], float]] = {}

    def reset(self, *names: str) -> None:
        """Clear the given families (all families when no name is given)."""
        for name in names or tuple(self.families):
            if name not in self.families:
                raise ApplyError(f"cannot reset unknown metric family '{name}'")
            self._series[name] = {}

    def apply(self, command: ApplyCommand) -> None:
        """
        Write one command into the table.

        Raises:
            ApplyError: If the family is not owned by this table or the label
                names do not match the family definition
        """
        family = self.families.get(command.family)
        if family is None:
            raise ApplyError(f"metric family '{command.family}' is not owned by this collector")

        values = dict(command.labels)
        if len(values) != len(command.labels) or set(values) != set(family.labels):
            raise ApplyError(
                f"label mismatch for '{family.name}': expected {sorted(family.labels)}, got {sorted(values)}"
            )

        key = tuple(values[name] for name in family.labels)
        self._series.setdefault(family.name, {})[key] = command.value

    def apply_batch(self, batch: Iterable[ApplyCommand]) -> None:
        for command in batch:
            self.apply(command)

    def series(self, name: str) -> dict[tuple[str, ...], float]:
        """Return a copy of the series of one family (empty if never populated)."""
        return dict(self._series.get(name, {}))

    def __len__(self) -> int:
        return sum(len(series) for series in self._series.values())
