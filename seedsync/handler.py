"""
Runtime entry point for seedsync

``lambda_handler`` is what the function runtime invokes for every lifecycle
event. It wires configuration, stores, metrics and the HTTP outcome reporter
around the LifecycleDispatcher, and makes sure a FAILED report is attempted
even when the invocation is about to time out.
"""

import json
import logging
import threading
from typing import Any, Dict, Mapping, Optional

from seedsync.config import SeederConfig
from seedsync.lifecycle.dispatcher import DeletePolicy, LifecycleDispatcher
from seedsync.lifecycle.events import redact_event, resolve_physical_resource_id
from seedsync.lifecycle.response import HttpResponseReporter, OnceReporter, OutcomeReport, Reporter
from seedsync.monitoring.metrics import MetricsCollector, get_metrics_collector
from seedsync.reconciliation.ownership import OwnershipMarker
from seedsync.reconciliation.reconciler import SeedReconciler
from seedsync.stores import Store, StoreFactory, create_store
from seedsync.utils.correlation import CorrelationContext, correlation_id_from_event
from seedsync.utils.logging_config import configure_logging
from seedsync.utils.vault_client import VaultClient

logger = logging.getLogger(__name__)


class TimeoutGuard:
    """
    Emits a FAILED report shortly before the invocation deadline.

    The guard shares a OnceReporter with the dispatcher, so whichever reports
    first wins and the other is dropped. Used as a context manager; leaving
    the block cancels the timer.
    """

    def __init__(
        self,
        reporter: OnceReporter,
        event: Mapping[str, Any],
        context: Any = None,
        margin_seconds: float = 5.0
    ):
        self.reporter = reporter
        self.event = event
        self.context = context
        self.margin_seconds = margin_seconds
        self.fired = False
        self._timer: Optional[threading.Timer] = None

    def start(self) -> None:
        remaining = self._remaining_seconds()
        if remaining is None:
            return

        delay = remaining - self.margin_seconds
        if delay <= 0:
            logger.warning(f"Only {remaining:.1f}s left at start, timeout guard not armed")
            return

        self._timer = threading.Timer(delay, self.fire)
        self._timer.daemon = True
        self._timer.start()
        logger.debug(f"Timeout guard armed for {delay:.1f}s")

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def fire(self) -> None:
        """Report the invocation as failed unless a report was already sent."""
        if self.reporter.sent:
            return

        self.fired = True
        logger.error("Invocation is about to time out, reporting failure")
        report = OutcomeReport.failure(
            reason="Invocation timed out before reconciliation finished",
            physical_resource_id=resolve_physical_resource_id(self.event)
        )
        try:
            self.reporter.send(self.event, report)
        except Exception:
            logger.exception("Timeout failure report could not be delivered")

    def _remaining_seconds(self) -> Optional[float]:
        get_remaining = getattr(self.context, "get_remaining_time_in_millis", None)
        if get_remaining is None:
            return None
        return get_remaining() / 1000.0

    def __enter__(self) -> "TimeoutGuard":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
        return False


def build_store_factory(config: SeederConfig) -> StoreFactory:
    """Store factory that fetches credentials from Vault when configured."""
    def factory(table_name: str, hash_key: str) -> Store:
        vault_client = None
        if config.vault_addr:
            vault_client = VaultClient(vault_url=config.vault_addr)
        try:
            return create_store(config, table_name, hash_key, vault_client=vault_client)
        finally:
            if vault_client is not None:
                vault_client.close()
    return factory


def build_dispatcher(
    config: SeederConfig,
    reporter: Reporter,
    store_factory: Optional[StoreFactory] = None,
    metrics: Optional[MetricsCollector] = None
) -> LifecycleDispatcher:
    """Assemble a dispatcher from configuration."""
    reconciler = SeedReconciler(
        marker=OwnershipMarker(config.marker_attribute),
        batch_size=config.batch_size,
        metrics=metrics
    )
    return LifecycleDispatcher(
        reconciler=reconciler,
        store_factory=store_factory or build_store_factory(config),
        reporter=reporter,
        delete_policy=DeletePolicy(config.delete_policy),
        metrics=metrics
    )


def handle_event(
    event: Mapping[str, Any],
    context: Any,
    config: SeederConfig,
    reporter: OnceReporter,
    store_factory: Optional[StoreFactory] = None,
    metrics: Optional[MetricsCollector] = None
) -> Dict[str, Any]:
    """
    Dispatch one event with a timeout guard and push metrics afterwards.

    Returns:
        The ``{status, data}`` payload of the delivered report
    """
    metrics = metrics or get_metrics_collector()
    dispatcher = build_dispatcher(config, reporter, store_factory=store_factory, metrics=metrics)

    with TimeoutGuard(reporter, event, context, margin_seconds=config.timeout_margin):
        try:
            report = dispatcher.dispatch(event)
        finally:
            if config.pushgateway_url:
                _push_metrics(metrics, config.pushgateway_url)

    return report.to_callback_payload()


def lambda_handler(event, context):
    """Function runtime entry point."""
    reporter = OnceReporter(
        HttpResponseReporter(log_stream_name=getattr(context, "log_stream_name", None))
    )

    with CorrelationContext(correlation_id_from_event(event)):
        try:
            config = SeederConfig.load()
        except Exception as e:
            configure_logging(json_output=True)
            logger.error(f"Invalid configuration: {e}")
            try:
                reporter.send(event, OutcomeReport.failure(
                    reason=f"{type(e).__name__}: {e}",
                    physical_resource_id=resolve_physical_resource_id(event)
                ))
            except Exception:
                logger.exception("Could not deliver FAILED outcome")
            raise

        configure_logging(level=config.log_level, json_output=config.json_logging)
        reporter.inner.timeout = config.response_timeout
        logger.info(f"event: {json.dumps(redact_event(event), default=str)}")

        return handle_event(event, context, config, reporter)


def _push_metrics(metrics: MetricsCollector, gateway_url: str) -> None:
    try:
        metrics.push(gateway_url)
    except Exception as e:
        # Metrics are best effort; the outcome has already been reported
        logger.warning(f"Metrics push skipped: {e}")
