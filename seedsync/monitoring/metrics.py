"""
Prometheus Metrics for seedsync

Counters and histograms for reconciliation runs and lifecycle events.
Invocations are short-lived, so metrics are pushed to a Pushgateway at the end
of an invocation instead of being scraped.
"""

import logging
from typing import Dict, Optional
from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

logger = logging.getLogger(__name__)


class ReconciliationMetrics:
    """Prometheus metrics for reconciliation runs."""

    def __init__(self, registry: CollectorRegistry):
        """
        Initialize reconciliation metrics.

        Args:
            registry: Registry the metrics are registered in
        """
        self.reconciliation_runs_total = Counter(
            'seedsync_reconciliation_runs_total',
            'Total number of reconciliation runs',
            ['table', 'status'],
            registry=registry
        )

        self.reconciliation_errors_total = Counter(
            'seedsync_reconciliation_errors_total',
            'Total reconciliation failures by error type',
            ['table', 'error_type'],
            registry=registry
        )

        self.records_purged_total = Counter(
            'seedsync_records_purged_total',
            'Total owned records deleted before re-seeding',
            ['table'],
            registry=registry
        )

        self.records_written_total = Counter(
            'seedsync_records_written_total',
            'Total declared records written',
            ['table'],
            registry=registry
        )

        self.reconciliation_duration_seconds = Histogram(
            'seedsync_reconciliation_duration_seconds',
            'Duration of reconciliation runs in seconds',
            ['table'],
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600],
            registry=registry
        )

    def record_reconciliation_run(
        self,
        table: str,
        status: str,
        purged: int,
        written: int,
        duration_seconds: float,
        error_type: Optional[str] = None
    ) -> None:
        """
        Record a reconciliation run.

        Args:
            table: Table name
            status: Run status (success/failed)
            purged: Owned records deleted
            written: Declared records written
            duration_seconds: Duration in seconds
            error_type: Exception class name for failed runs
        """
        self.reconciliation_runs_total.labels(table=table, status=status).inc()
        self.reconciliation_duration_seconds.labels(table=table).observe(duration_seconds)
        self.records_purged_total.labels(table=table).inc(purged)
        self.records_written_total.labels(table=table).inc(written)

        if error_type:
            self.reconciliation_errors_total.labels(table=table, error_type=error_type).inc()

        logger.debug(
            f"Recorded reconciliation metrics for {table}: status={status}, "
            f"purged={purged}, written={written}, duration={duration_seconds:.3f}s"
        )


class LifecycleMetrics:
    """Prometheus metrics for lifecycle events and outcome reports."""

    def __init__(self, registry: CollectorRegistry):
        self.lifecycle_events_total = Counter(
            'seedsync_lifecycle_events_total',
            'Lifecycle events handled by request type and outcome',
            ['request_type', 'status'],
            registry=registry
        )

    def record_event(self, request_type: str, status: str) -> None:
        """Record a handled lifecycle event."""
        self.lifecycle_events_total.labels(request_type=request_type, status=status).inc()


class MetricsCollector:
    """
    Main metrics collector for seedsync.

    Combines all metric categories on one registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            registry: Prometheus registry (a fresh one if not provided)
        """
        self.registry = registry or CollectorRegistry()
        self.reconciliation = ReconciliationMetrics(self.registry)
        self.lifecycle = LifecycleMetrics(self.registry)
        logger.debug("MetricsCollector initialized")

    def record_reconciliation_run(self, **kwargs) -> None:
        """Record reconciliation run (delegates to ReconciliationMetrics)."""
        self.reconciliation.record_reconciliation_run(**kwargs)

    def record_event(self, **kwargs) -> None:
        """Record lifecycle event (delegates to LifecycleMetrics)."""
        self.lifecycle.record_event(**kwargs)

    def push(
        self,
        gateway_url: str,
        job_name: str = "seedsync",
        grouping_key: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Push metrics to Prometheus Pushgateway.

        Args:
            gateway_url: Pushgateway URL
            job_name: Job name for metrics
            grouping_key: Optional grouping key labels

        Raises:
            Exception: If push fails
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise


# Singleton instance, reused across warm invocations
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _metrics_collector

    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()

    return _metrics_collector
