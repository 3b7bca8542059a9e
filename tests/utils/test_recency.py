#!/usr/bin/env python3
"""
Tests for recency caps

Most-recent-K truncation must not trust the server's order.
"""

from ado_exporter.utils.recency import cap_most_recent, cap_most_recent_per, is_newest_first


def build(build_id, definition, queued):
    return {"id": build_id, "definition": {"id": definition}, "queueTime": queued}


class TestCapMostRecent:
    """Tests for cap_most_recent function."""

    def test_keeps_newest_regardless_of_input_order(self):
        records = [
            build(1, 1, "2026-01-01T00:00:00Z"),
            build(2, 1, "2026-01-03T00:00:00Z"),
            build(3, 1, "2026-01-02T00:00:00Z"),
        ]

        result = cap_most_recent(records, 2, "queueTime")

        assert [record["id"] for record in result] == [2, 3]

    def test_ties_keep_input_order(self):
        records = [build(1, 1, "2026-01-01T00:00:00Z"), build(2, 1, "2026-01-01T00:00:00Z")]

        assert [record["id"] for record in cap_most_recent(records, 2, "queueTime")] == [1, 2]

    def test_undated_records_sort_last(self):
        records = [build(1, 1, None), build(2, 1, "2026-01-01T00:00:00Z"), build(3, 1, "garbage")]

        result = cap_most_recent(records, 1, "queueTime")

        assert [record["id"] for record in result] == [2]

    def test_no_limit_keeps_everything(self):
        records = [build(i, 1, f"2026-01-0{i}T00:00:00Z") for i in range(1, 4)]

        assert len(cap_most_recent(records, None, "queueTime")) == 3
        assert len(cap_most_recent(records, 0, "queueTime")) == 3

    def test_accessor_instead_of_field(self):
        records = [{"id": 1, "nested": {"at": "2026-01-01T00:00:00Z"}}, {"id": 2, "nested": {"at": "2026-01-02T00:00:00Z"}}]

        result = cap_most_recent(records, 1, lambda record: record["nested"]["at"])

        assert result[0]["id"] == 2


class TestCapMostRecentPer:
    """Tests for cap_most_recent_per function."""

    def test_caps_each_dimension(self):
        records = [
            build(1, 10, "2026-01-01T00:00:00Z"),
            build(2, 20, "2026-01-05T00:00:00Z"),
            build(3, 10, "2026-01-04T00:00:00Z"),
            build(4, 20, "2026-01-02T00:00:00Z"),
            build(5, 10, "2026-01-03T00:00:00Z"),
        ]

        result = cap_most_recent_per(records, 1, "queueTime", lambda record: record["definition"]["id"])

        assert [record["id"] for record in result] == [3, 2]


class TestIsNewestFirst:
    def test_detects_order(self):
        ordered = [build(1, 1, "2026-01-02T00:00:00Z"), build(2, 1, "2026-01-01T00:00:00Z"), build(3, 1, None)]

        assert is_newest_first(ordered, "queueTime")
        assert not is_newest_first(list(reversed(ordered)), "queueTime")

    def test_empty_is_ordered(self):
        assert is_newest_first([], "queueTime")
