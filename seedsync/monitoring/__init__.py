"""
Monitoring Module for seedsync

Prometheus metrics for reconciliation runs and lifecycle events.

Usage:
    from seedsync.monitoring import MetricsCollector

    metrics = MetricsCollector()
    metrics.record_reconciliation_run(
        table="MyTable1", status="success", purged=2, written=2, duration_seconds=0.4
    )
    metrics.push("http://pushgateway:9091")
"""

from seedsync.monitoring.metrics import (
    LifecycleMetrics,
    MetricsCollector,
    ReconciliationMetrics,
    get_metrics_collector,
)

__all__ = [
    "LifecycleMetrics",
    "MetricsCollector",
    "ReconciliationMetrics",
    "get_metrics_collector",
]
