"""
Recency caps for list endpoints.

Some Azure DevOps endpoints cannot enforce "the K most recent per X" on the
server. These helpers keep only the K most recent records, optionally per
dimension (e.g. builds per definition).

The server is asked for descending order where it supports it, but the order
is not trusted: records are re-sorted by their timestamp (newest first,
stable for ties) before truncation. Records without a parsable timestamp
sort after every dated record.
"""

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable
from datetime import datetime
from typing import Any

from ado_exporter.utils.datetime_utils import parse_ado_timestamp

Record = dict[str, Any]


def _recency_key(timestamp_field: str | Callable[[Record], Any]) -> Callable[[Record], tuple[int, float]]:
    def key(record: Record) -> tuple[int, float]:
        if callable(timestamp_field):
            raw = timestamp_field(record)
        else:
            raw = record.get(timestamp_field)

        try:
            parsed = raw if isinstance(raw, datetime) else parse_ado_timestamp(raw)
        except ValueError:
            parsed = None

        if parsed is None:
            return (1, 0.0)
        return (0, -parsed.timestamp())

    return key


def cap_most_recent(
    records: Iterable[Record],
    limit: int | None,
    timestamp_field: str | Callable[[Record], Any],
) -> list[Record]:
    """
    Keep the `limit` most recent records, newest first.

    Args:
        records: Records as returned by the API
        limit: Maximum number of records to keep (None or <= 0 keeps all)
        timestamp_field: Record key (or accessor) holding the recency timestamp

    Returns:
        List of at most `limit` records ordered newest first

    Example:
        >>> builds = [{"id": 1, "queueTime": "2026-01-01T00:00:00Z"},
        ...           {"id": 2, "queueTime": "2026-01-03T00:00:00Z"}]
        >>> [b["id"] for b in cap_most_recent(builds, 1, "queueTime")]
        [2]
    """
    ordered = sorted(records, key=_recency_key(timestamp_field))
    if limit is None or limit <= 0:
        return ordered
    return ordered[:limit]


def cap_most_recent_per(
    records: Iterable[Record],
    limit: int | None,
    timestamp_field: str | Callable[[Record], Any],
    dimension: Callable[[Record], Hashable],
) -> list[Record]:
    """
    Keep the `limit` most recent records per dimension value.

    Groups keep the order in which their dimension value first appeared;
    records inside a group are ordered newest first.

    Args:
        records: Records as returned by the API
        limit: Maximum number of records per dimension value
        timestamp_field: Record key (or accessor) holding the recency timestamp
        dimension: Accessor returning the grouping value (e.g. definition id)

    Returns:
        Flat list of the retained records
    """
    groups: dict[Hashable, list[Record]] = defaultdict(list)
    for record in records:
        groups[dimension(record)].append(record)

    retained: list[Record] = []
    for group in groups.values():
        retained.extend(cap_most_recent(group, limit, timestamp_field))
    return retained


def is_newest_first(records: Iterable[Record], timestamp_field: str | Callable[[Record], Any]) -> bool:
    """Check whether records already arrive newest first (undated records last)."""
    keys = [_recency_key(timestamp_field)(record) for record in records]
    return all(earlier <= later for earlier, later in zip(keys, keys[1:]))
