"""
Datetime Utility Functions

Centralized datetime and duration parsing shared by configuration and
metric plug-ins.

Handles common patterns:
- Azure DevOps ISO timestamps with 'Z' suffix and 7-digit fractions
- The "0001-01-01T00:00:00" placeholder Azure DevOps uses for unset dates
- Go-style duration strings ("30m", "1h30s", "250ms") used by the CLI
"""

import re
from datetime import UTC, datetime

_FRACTION_RE = re.compile(r"\.(\d+)")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_ado_timestamp(timestamp_str: str | None) -> datetime | None:
    """
    Parse Azure DevOps ISO timestamp to an aware datetime.

    Azure DevOps returns timestamps like "2026-02-10T10:00:00Z" or
    "2026-02-10T10:00:00.1234567Z" (seven fractional digits). Unset dates come
    back as year 1 and are treated as missing.

    Args:
        timestamp_str: ISO timestamp string, or None

    Returns:
        datetime object in UTC, or None if input is empty or a placeholder

    Raises:
        ValueError: If timestamp format is invalid or cannot be parsed

    Examples:
        >>> parse_ado_timestamp("2026-02-10T10:00:00Z")
        datetime.datetime(2026, 2, 10, 10, 0, tzinfo=datetime.timezone.utc)

        >>> parse_ado_timestamp("0001-01-01T00:00:00") is None
        True
    """
    if not timestamp_str:
        return None

    if not isinstance(timestamp_str, str):
        raise ValueError(f"Timestamp must be a string, got {type(timestamp_str)}")

    normalized = timestamp_str.replace("Z", "+00:00")
    # fromisoformat only understands up to microseconds
    normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)

    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp format: {timestamp_str}") from e

    if parsed.year <= 1:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)

    return parsed


def parse_duration(value: str | int | float | None) -> float | None:
    """
    Parse a duration into seconds.

    Accepts bare numbers (seconds) and Go-style strings made of
    number+unit parts ("30m", "1h30m", "1.5h", "250ms").

    Args:
        value: Duration string or number, or None

    Returns:
        Duration in seconds, or None if value is None or an empty string

    Raises:
        ValueError: If the string is not a valid duration

    Examples:
        >>> parse_duration("1h30m")
        5400.0

        >>> parse_duration("45")
        45.0
    """
    if value is None:
        return None

    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip().lower()
        if not text:
            return None

        try:
            seconds = float(text)
        except ValueError:
            position = 0
            seconds = 0.0
            for match in _DURATION_PART_RE.finditer(text):
                if match.start() != position:
                    raise ValueError(f"Invalid duration: {value!r}") from None
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                position = match.end()

            if position == 0 or position != len(text):
                raise ValueError(f"Invalid duration: {value!r}") from None

    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")

    return seconds
