"""
Reconciliation Module for seed records

This module keeps the records a deployment declares in sync with a key-value
table, without touching records that other writers added to the same table.

Main components:
- ownership: Marks owned records and tests ownership
- declaration: Parses and validates the declared record set
- reconciler: Purge-then-insert reconciliation with batched deletes

Usage:
    from seedsync.reconciliation import SeedReconciler, parse_declaration
    from seedsync.stores import InMemoryStore

    store = InMemoryStore(table_name="MyTable1", hash_key="Id")
    declaration = parse_declaration('[{"Id": "0", "Name": "Foo"}]', hash_key="Id")

    reconciler = SeedReconciler()
    result = reconciler.reconcile(store, "Id", declaration)
"""

from seedsync.reconciliation.ownership import OwnershipMarker, mark, is_owned
from seedsync.reconciliation.declaration import Declaration, parse_declaration
from seedsync.reconciliation.reconciler import BatchDeleter, ReconcileResult, SeedReconciler

__all__ = [
    "OwnershipMarker",
    "mark",
    "is_owned",
    "Declaration",
    "parse_declaration",
    "BatchDeleter",
    "ReconcileResult",
    "SeedReconciler",
]
