#!/usr/bin/env python3
"""
Tests for datetime_utils module

Tests timestamp and duration parsing used by configuration and plug-ins.
"""

from datetime import UTC, datetime

import pytest

from ado_exporter.utils.datetime_utils import parse_ado_timestamp, parse_duration


class TestParseAdoTimestamp:
    """Tests for parse_ado_timestamp function."""

    def test_valid_timestamp_with_z_suffix(self):
        """Test parsing valid ADO timestamp with Z suffix."""
        result = parse_ado_timestamp("2026-02-10T10:00:00Z")
        assert result == datetime(2026, 2, 10, 10, 0, 0, tzinfo=UTC)

    def test_seven_digit_fraction(self):
        """Test that Azure DevOps' 100ns precision is truncated to microseconds."""
        result = parse_ado_timestamp("2026-02-10T10:00:00.1234567Z")
        assert result == datetime(2026, 2, 10, 10, 0, 0, 123456, tzinfo=UTC)

    def test_short_fraction(self):
        result = parse_ado_timestamp("2026-02-10T10:00:00.5Z")
        assert result == datetime(2026, 2, 10, 10, 0, 0, 500000, tzinfo=UTC)

    def test_naive_timestamp_is_utc(self):
        result = parse_ado_timestamp("2026-02-10T10:00:00")
        assert result.tzinfo == UTC

    def test_placeholder_date_is_missing(self):
        """Test that the year-1 placeholder for unset dates returns None."""
        assert parse_ado_timestamp("0001-01-01T00:00:00") is None
        assert parse_ado_timestamp("0001-01-01T00:00:00Z") is None

    def test_none_and_empty_input(self):
        assert parse_ado_timestamp(None) is None
        assert parse_ado_timestamp("") is None

    def test_invalid_format(self):
        """Test that invalid format raises ValueError."""
        with pytest.raises(ValueError, match="Invalid timestamp format"):
            parse_ado_timestamp("not-a-timestamp")

    def test_invalid_type(self):
        """Test that non-string input raises ValueError."""
        with pytest.raises(ValueError, match="Timestamp must be a string"):
            parse_ado_timestamp(12345)  # type: ignore


class TestParseDuration:
    """Tests for parse_duration function."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("30m", 1800.0),
            ("1h30m", 5400.0),
            ("45s", 45.0),
            ("250ms", 0.25),
            ("1.5h", 5400.0),
            ("90", 90.0),
            (15, 15.0),
            ("0", 0.0),
        ],
    )
    def test_valid_durations(self, value, expected):
        assert parse_duration(value) == expected

    def test_none_and_blank_are_unset(self):
        assert parse_duration(None) is None
        assert parse_duration("  ") is None

    @pytest.mark.parametrize("value", ["10x", "m30", "1h 30m", "abc"])
    def test_invalid_durations(self, value):
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(value)

    def test_negative_duration(self):
        with pytest.raises(ValueError, match="must not be negative"):
            parse_duration("-5")
