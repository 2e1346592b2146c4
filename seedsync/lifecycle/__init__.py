"""
Lifecycle Module for seedsync

Turns orchestrator lifecycle events (Create / Update / Delete) into
reconciliation runs and reports exactly one outcome per event.

Main components:
- events: Typed, validated lifecycle events
- dispatcher: State machine routing events to the reconciler
- response: Outcome reports and reporters (HTTP callback, plain callable)

Usage:
    from seedsync.lifecycle import CallbackReporter, LifecycleDispatcher
    from seedsync.reconciliation import SeedReconciler

    dispatcher = LifecycleDispatcher(
        reconciler=SeedReconciler(),
        store_factory=store_factory,
        reporter=CallbackReporter(print),
    )
    dispatcher.dispatch(event)
"""

from seedsync.lifecycle.events import LifecycleEvent, RequestType
from seedsync.lifecycle.dispatcher import DeletePolicy, DispatchState, LifecycleDispatcher
from seedsync.lifecycle.response import (
    CallbackReporter,
    HttpResponseReporter,
    OnceReporter,
    OutcomeReport,
    OutcomeStatus,
    Reporter,
)

__all__ = [
    "LifecycleEvent",
    "RequestType",
    "DeletePolicy",
    "DispatchState",
    "LifecycleDispatcher",
    "CallbackReporter",
    "HttpResponseReporter",
    "OnceReporter",
    "OutcomeReport",
    "OutcomeStatus",
    "Reporter",
]
