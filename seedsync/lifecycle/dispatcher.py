"""
Lifecycle Dispatcher

Interprets an incoming lifecycle event, runs the reconciler for Create and
Update, and reports exactly one outcome per event:

    RECEIVED -> CREATING | UPDATING | DELETING -> COMPLETED | FAILED

Any error is turned into a FAILED report first and then re-raised, so the
invoking runtime still sees the failure.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional

from seedsync.lifecycle.events import (
    LifecycleEvent,
    RequestType,
    resolve_physical_resource_id,
    validate_table_name,
)
from seedsync.lifecycle.response import OnceReporter, OutcomeReport, Reporter
from seedsync.reconciliation.declaration import Declaration, validate_hash_key
from seedsync.reconciliation.reconciler import SeedReconciler
from seedsync.stores import StoreFactory

logger = logging.getLogger(__name__)


class DispatchState(Enum):
    """States of a single dispatch."""
    RECEIVED = "received"
    CREATING = "creating"
    UPDATING = "updating"
    DELETING = "deleting"
    COMPLETED = "completed"
    FAILED = "failed"


class DeletePolicy(Enum):
    """What a Delete event does to owned records."""
    RETAIN = "retain"
    PURGE = "purge"


_ACTIVE_STATES = {
    RequestType.CREATE: DispatchState.CREATING,
    RequestType.UPDATE: DispatchState.UPDATING,
    RequestType.DELETE: DispatchState.DELETING,
}


class LifecycleDispatcher:
    """
    Routes lifecycle events to the reconciler and reports the outcome.

    Args:
        reconciler: Reconciler used for Create/Update
        store_factory: Opens a store for ``(table_name, hash_key)``
        reporter: Delivers the outcome report
        delete_policy: RETAIN leaves owned records in place on Delete,
            PURGE removes them
        metrics: Optional MetricsCollector
    """

    def __init__(
        self,
        reconciler: SeedReconciler,
        store_factory: StoreFactory,
        reporter: Reporter,
        delete_policy: DeletePolicy = DeletePolicy.RETAIN,
        metrics=None
    ):
        self.reconciler = reconciler
        self.store_factory = store_factory
        self.reporter = reporter
        self.delete_policy = DeletePolicy(delete_policy)
        self.metrics = metrics
        self.state = DispatchState.RECEIVED

    def dispatch(self, raw_event: Mapping[str, Any]) -> OutcomeReport:
        """
        Handle one lifecycle event.

        Args:
            raw_event: Event payload as delivered by the orchestrator

        Returns:
            The SUCCESS report that was delivered

        Raises:
            Exception: Whatever failed the event, after the FAILED report
                was emitted
        """
        reporter = self.reporter if isinstance(self.reporter, OnceReporter) else OnceReporter(self.reporter)
        request_type = raw_event.get("RequestType") if isinstance(raw_event, Mapping) else None

        self._transition(DispatchState.RECEIVED)

        try:
            event = LifecycleEvent.from_dict(raw_event)
            self._transition(_ACTIVE_STATES[event.request_type])

            if event.request_type is RequestType.DELETE:
                self._handle_delete(event)
            else:
                self._handle_reconcile(event)

        except Exception as e:
            self._transition(DispatchState.FAILED)
            logger.error(f"{request_type} request failed: {type(e).__name__}: {e}", exc_info=True)

            report = OutcomeReport.failure(
                reason=f"{type(e).__name__}: {e}",
                physical_resource_id=resolve_physical_resource_id(raw_event)
            )
            self._emit(reporter, raw_event, report, request_type, raise_errors=False)
            raise

        self._transition(DispatchState.COMPLETED)
        report = OutcomeReport.success(physical_resource_id=event.resolved_physical_resource_id)
        try:
            self._emit(reporter, raw_event, report, request_type, raise_errors=True)
        except Exception as e:
            # SUCCESS never arrived, so the latch is still open for FAILED
            self._transition(DispatchState.FAILED)
            failure = OutcomeReport.failure(
                reason=f"Outcome delivery failed: {e}",
                physical_resource_id=report.physical_resource_id
            )
            self._emit(reporter, raw_event, failure, request_type, raise_errors=False)
            raise
        return report

    def _handle_reconcile(self, event: LifecycleEvent) -> None:
        with self.store_factory(event.table_name, event.hash_key) as store:
            self.reconciler.reconcile(store, event.hash_key, event.declaration)

    def _handle_delete(self, event: LifecycleEvent) -> None:
        if self.delete_policy is DeletePolicy.RETAIN:
            logger.info(f"Delete requested, retaining owned records in {event.table_name or 'table'}")
            return

        validate_hash_key(event.hash_key)
        validate_table_name(event.table_name)
        logger.info(f"Delete requested, purging owned records from {event.table_name}")

        with self.store_factory(event.table_name, event.hash_key) as store:
            empty = Declaration(hash_key=event.hash_key, records=())
            self.reconciler.reconcile(store, event.hash_key, empty)

    def _emit(
        self,
        reporter: Reporter,
        raw_event: Mapping[str, Any],
        report: OutcomeReport,
        request_type: Optional[str],
        raise_errors: bool
    ) -> None:
        if self.metrics:
            self.metrics.record_event(
                request_type=str(request_type or "unknown"),
                status=report.status.value
            )

        try:
            reporter.send(raw_event, report)
        except Exception:
            if raise_errors:
                raise
            # The original failure is re-raised by the caller
            logger.exception(f"Could not deliver {report.status.value} outcome")

    def _transition(self, state: DispatchState) -> None:
        logger.debug(f"Dispatch state {self.state.value} -> {state.value}")
        self.state = state
