"""
Pytest configuration and shared fixtures.

Provides in-memory stores, lifecycle event builders and a dispatcher wired to
a recording reporter, so unit tests run without any database.
"""

import json

import pytest

from seedsync.lifecycle.dispatcher import LifecycleDispatcher
from seedsync.lifecycle.response import CallbackReporter
from seedsync.reconciliation.reconciler import SeedReconciler
from seedsync.stores import reset_memory_tables
from seedsync.stores.memory import InMemoryStore
from seedsync.utils.correlation import clear_correlation_id

TABLE_NAME = "MyTable1"
HASH_KEY = "Id"


def make_event(request_type="Create", items=None, table_name=TABLE_NAME, hash_key=HASH_KEY, **extra):
    """
    Build a raw lifecycle event.

    Args:
        request_type: RequestType value
        items: List of records (JSON-encoded into Items) or raw Items text
        table_name: TableName property
        hash_key: HashKey property
        **extra: Additional top-level event fields

    Returns:
        Event dictionary
    """
    properties = {"HashKey": hash_key, "TableName": table_name}
    if items is not None:
        properties["Items"] = items if isinstance(items, str) else json.dumps(items)

    event = {
        "RequestType": request_type,
        "ResponseURL": "https://orchestrator.example.com/response?signature=abc",
        "StackId": "arn:aws:cloudformation:eu-west-1:123456789012:stack/seed/guid",
        "RequestId": "req-0001",
        "LogicalResourceId": "PopulateMyTable",
        "ResourceProperties": properties,
    }
    event.update(extra)
    return event


def owned_keys(store, marker_attribute="CF_MANAGED"):
    """Sorted keys of records carrying the ownership marker."""
    return sorted(
        key for key, record in store.items.items()
        if record.get(marker_attribute) is True
    )


@pytest.fixture
def store():
    """Empty in-memory table keyed on Id."""
    return InMemoryStore(table_name=TABLE_NAME, hash_key=HASH_KEY)


@pytest.fixture
def reconciler():
    """Reconciler with default marker and a small batch size."""
    return SeedReconciler(batch_size=2)


@pytest.fixture
def reports():
    """List collecting {status, data} payloads delivered by the dispatcher."""
    return []


@pytest.fixture
def dispatcher(reconciler, store, reports):
    """Dispatcher that always opens the `store` fixture."""
    return LifecycleDispatcher(
        reconciler=reconciler,
        store_factory=lambda table_name, hash_key: store,
        reporter=CallbackReporter(reports.append)
    )


@pytest.fixture(autouse=True)
def clean_state():
    """Reset process-wide state between tests."""
    reset_memory_tables()
    clear_correlation_id()
    yield
    reset_memory_tables()
    clear_correlation_id()
