"""
Tests for collector metrics tracking

Tests CycleTracker and the track_cycle context manager.
"""

import pytest

from ado_exporter.core.collector_metrics import CycleTracker, track_cycle


def sample(registry, name, labels=None):
    return registry.get_sample_value(name, labels or {})


class TestCycleTracker:
    """Tests for CycleTracker class"""

    def test_tracker_initialization(self):
        tracker = CycleTracker("build")

        assert tracker.collector_name == "build"
        assert tracker.start_time is None
        assert tracker.success_count == 0
        assert tracker.error_count == 0
        assert tracker.published is False

    def test_tracker_counts(self):
        tracker = CycleTracker("build")
        tracker.start()
        tracker.record_success()
        tracker.record_success()
        tracker.record_error()
        tracker.end(published=True)

        data = tracker.to_dict()
        assert data["succeeded"] == 2
        assert data["failed"] == 1
        assert data["published"] is True
        assert tracker.duration_seconds >= 0


class TestTrackCycle:
    """Tests for track_cycle context manager"""

    def test_published_cycle_updates_metrics(self, exporter_metrics, prometheus_registry):
        with track_cycle("build", exporter_metrics) as tracker:
            tracker.record_success()
            tracker.record_error()
            tracker.published = True

        labels = {"collector": "build"}
        assert sample(prometheus_registry, "azure_devops_exporter_collector_resources_collected_total", labels) == 1
        assert sample(prometheus_registry, "azure_devops_exporter_collector_resource_errors_total", labels) == 1
        assert sample(
            prometheus_registry,
            "azure_devops_exporter_collector_cycles_total",
            {"collector": "build", "result": "success"},
        ) == 1
        assert sample(prometheus_registry, "azure_devops_exporter_collector_last_success_timestamp_seconds", labels) > 0

    def test_unpublished_cycle_counts_as_error(self, exporter_metrics, prometheus_registry):
        with track_cycle("release", exporter_metrics):
            pass

        assert sample(
            prometheus_registry,
            "azure_devops_exporter_collector_cycles_total",
            {"collector": "release", "result": "error"},
        ) == 1
        assert sample(
            prometheus_registry,
            "azure_devops_exporter_collector_last_success_timestamp_seconds",
            {"collector": "release"},
        ) is None

    def test_metrics_recorded_when_body_raises(self, exporter_metrics, prometheus_registry):
        with pytest.raises(RuntimeError):
            with track_cycle("query", exporter_metrics):
                raise RuntimeError("boom")

        assert sample(
            prometheus_registry,
            "azure_devops_exporter_collector_cycles_total",
            {"collector": "query", "result": "error"},
        ) == 1

    def test_without_metrics(self):
        with track_cycle("project", None) as tracker:
            tracker.published = True

        assert tracker.published


class TestExporterMetrics:
    def test_record_helpers(self, exporter_metrics, prometheus_registry):
        exporter_metrics.record_api_call(None)
        exporter_metrics.record_retry("throttled")
        exporter_metrics.record_skipped_tick("build")
        exporter_metrics.record_discovery(False)

        assert sample(prometheus_registry, "azure_devops_exporter_api_requests_total", {"status": "error"}) == 1
        assert sample(prometheus_registry, "azure_devops_exporter_api_retries_total", {"reason": "throttled"}) == 1
        assert sample(prometheus_registry, "azure_devops_exporter_collector_skipped_ticks_total", {"collector": "build"}) == 1
        assert sample(prometheus_registry, "azure_devops_exporter_discovery_runs_total", {"result": "error"}) == 1
