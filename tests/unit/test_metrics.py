"""
Unit tests for table_sync.utils.metrics
"""

from prometheus_client import CollectorRegistry, Counter

from table_sync.utils.metrics import (
    SyncMetrics,
    get_metrics,
    get_or_create_metric,
    write_metrics_file,
)


class TestGetOrCreateMetric:
    """Test get_or_create_metric"""

    def test_returns_existing_metric(self, registry):
        first = get_or_create_metric(
            lambda: Counter("demo_total", "Demo", registry=registry), "demo", registry
        )
        second = get_or_create_metric(
            lambda: Counter("demo_total", "Demo", registry=registry), "demo", registry
        )

        assert first is second


class TestSyncMetrics:
    """Test SyncMetrics recording"""

    def test_record_run(self, metrics, registry):
        metrics.record_run("t1", "CHANGED", 0.2)

        assert registry.get_sample_value(
            "table_sync_runs_total", {"table": "t1", "status": "CHANGED"}
        ) == 1.0
        assert registry.get_sample_value(
            "table_sync_duration_seconds_count", {"table": "t1"}
        ) == 1.0

    def test_record_rows(self, metrics, registry):
        metrics.record_rows("t1", "insert", 4)
        metrics.record_rows("t1", "insert", 2)

        assert registry.get_sample_value(
            "table_sync_rows_total", {"table": "t1", "operation": "insert"}
        ) == 6.0

    def test_record_zero_rows_creates_no_series(self, metrics, registry):
        metrics.record_rows("t1", "delete", 0)

        assert registry.get_sample_value(
            "table_sync_rows_total", {"table": "t1", "operation": "delete"}
        ) is None

    def test_record_failure(self, metrics, registry):
        metrics.record_failure("t1", "apply")

        assert registry.get_sample_value(
            "table_sync_failures_total", {"table": "t1", "stage": "apply"}
        ) == 1.0

    def test_two_instances_share_registry(self, registry):
        """A second SyncMetrics on the same registry reuses the collectors."""
        first = SyncMetrics(registry)
        second = SyncMetrics(registry)

        assert first.rows_total is second.rows_total

    def test_get_metrics_is_singleton(self):
        assert get_metrics() is get_metrics()


class TestWriteMetricsFile:
    def test_writes_textfile(self, tmp_path):
        registry = CollectorRegistry()
        SyncMetrics(registry).record_run("t1", "NO_OP", 0.01)
        path = tmp_path / "table_sync.prom"

        write_metrics_file(str(path), registry)

        text = path.read_text()
        assert 'table_sync_runs_total{table="t1",status="NO_OP"} 1.0' in text
