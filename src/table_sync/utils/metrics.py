"""
Prometheus metrics for table synchronization.

Tracks reconcile runs, rows touched per operation, failures per stage and
run duration. Metrics live in the global registry unless a custom one is
passed; the CLI can dump them to a textfile with write_metrics_file().

Usage:
    from table_sync.utils.metrics import get_metrics

    metrics = get_metrics()
    metrics.record_rows("customers", "insert", 4)
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    write_to_textfile,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Call `metric_factory`, or return the collector already registered as
    `metric_name` when the registry rejects a duplicate.

    prometheus_client refuses to register a name twice, which happens when
    a second SyncMetrics is built against the same registry:

        RUNS = get_or_create_metric(
            lambda: Counter("runs_total", "Total runs", ["table"], registry=registry),
            "runs_total",
            registry,
        )
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


class SyncMetrics:
    """Metrics for reconcile runs."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or REGISTRY

        self.runs_total = get_or_create_metric(
            lambda: Counter(
                "table_sync_runs_total",
                "Total number of reconcile runs",
                ["table", "status"],
                registry=self.registry,
            ),
            "table_sync_runs",
            self.registry,
        )

        self.rows_total = get_or_create_metric(
            lambda: Counter(
                "table_sync_rows_total",
                "Rows affected by reconcile, per operation",
                ["table", "operation"],
                registry=self.registry,
            ),
            "table_sync_rows",
            self.registry,
        )

        self.failures_total = get_or_create_metric(
            lambda: Counter(
                "table_sync_failures_total",
                "Reconcile runs that failed, per stage",
                ["table", "stage"],
                registry=self.registry,
            ),
            "table_sync_failures",
            self.registry,
        )

        self.duration_seconds = get_or_create_metric(
            lambda: Histogram(
                "table_sync_duration_seconds",
                "Duration of reconcile runs in seconds",
                ["table"],
                buckets=(0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 300, 900),
                registry=self.registry,
            ),
            "table_sync_duration_seconds",
            self.registry,
        )

    def record_run(self, table: str, status: str, duration: float) -> None:
        """Record a completed run; status is CHANGED, NO_OP or FAILED."""
        self.runs_total.labels(table=table, status=status).inc()
        self.duration_seconds.labels(table=table).observe(duration)

    def record_rows(self, table: str, operation: str, count: int) -> None:
        if count:
            self.rows_total.labels(table=table, operation=operation).inc(count)

    def record_failure(self, table: str, stage: str) -> None:
        self.failures_total.labels(table=table, stage=stage).inc()


_metrics: SyncMetrics | None = None


def get_metrics() -> SyncMetrics:
    """Get the process-wide metrics bound to the global registry."""
    global _metrics

    if _metrics is None:
        _metrics = SyncMetrics()
    return _metrics


def write_metrics_file(path: str, registry: CollectorRegistry | None = None) -> None:
    """
    Write metrics in Prometheus text format for the node_exporter textfile
    collector. One-shot CLI runs exit before a scrape could happen.
    """
    write_to_textfile(path, registry or REGISTRY)
    logger.info(f"Metrics written to {path}")
