"""
Seed Reconciler

Replaces every owned record in a table with a freshly declared set:
purge all records carrying the ownership marker, then upsert the declared
records with the marker attached. Records written by other actors (no marker,
or marker not True) are never deleted or overwritten.
"""

import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Union

from seedsync.exceptions import MissingKeyError, StoreWriteFailedError
from seedsync.reconciliation.declaration import Declaration, parse_declaration
from seedsync.reconciliation.ownership import OwnershipMarker
from seedsync.stores.base import Record, Store

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 25


@dataclass
class ReconcileResult:
    """Outcome of a successful reconciliation."""

    table: str
    purged: int
    written: int
    duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BatchDeleter:
    """
    Scoped batch of deletes against a store.

    Keys are buffered and sent in chunks of ``batch_size``. Leaving the
    ``with`` block always flushes what is left, including when the block
    raises. Keys the store reports as unprocessed are raised as a
    StoreWriteFailedError once the block exits cleanly.

    Usage:
        with BatchDeleter(store, batch_size=25) as batch:
            for key in keys:
                batch.delete(key)
    """

    def __init__(self, store: Store, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.batch_size = batch_size
        self.deleted = 0
        self.failed_keys: List[str] = []
        self._pending: List[str] = []

    def delete(self, key: str) -> None:
        """Queue a key for deletion, flushing when the batch is full."""
        self._pending.append(key)
        if len(self._pending) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Send queued deletes to the store."""
        if not self._pending:
            return

        keys, self._pending = self._pending, []
        logger.debug(f"Flushing batch of {len(keys)} deletes to {self.store.table_name}")

        unprocessed = self.store.batch_delete(keys)
        self.deleted += len(keys) - len(unprocessed)

        if unprocessed:
            logger.error(
                f"Store left {len(unprocessed)} of {len(keys)} deletes unprocessed: {unprocessed}"
            )
            self.failed_keys.extend(unprocessed)

    def __enter__(self) -> "BatchDeleter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            try:
                self.flush()
            except Exception:
                logger.exception("Flushing pending deletes failed while handling an earlier error")
            return False

        self.flush()

        if self.failed_keys:
            raise StoreWriteFailedError(
                f"Purge incomplete: {len(self.failed_keys)} owned records could not be deleted",
                key=self.failed_keys[0],
                failed_keys=self.failed_keys
            )
        return False


class SeedReconciler:
    """
    Reconciles owned seed records in a store against a declaration.

    The algorithm is purge-then-insert rather than diff-and-patch, so removed
    keys, renamed keys and changed attributes all converge the same way.
    """

    def __init__(
        self,
        marker: Optional[OwnershipMarker] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        metrics=None
    ):
        """
        Initialize the reconciler.

        Args:
            marker: Ownership marker (defaults to the CF_MANAGED attribute)
            batch_size: Number of deletes per batch request
            metrics: Optional ReconciliationMetrics to record runs into
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.marker = marker or OwnershipMarker()
        self.batch_size = batch_size
        self.metrics = metrics
        logger.debug(f"Initialized SeedReconciler with {self.marker}, batch_size={batch_size}")

    def reconcile(
        self,
        store: Store,
        hash_key: str,
        declaration: Union[Declaration, str, bytes]
    ) -> ReconcileResult:
        """
        Make the owned records in ``store`` equal to ``declaration``.

        Args:
            store: Store handle for the target table
            hash_key: Key attribute name
            declaration: Validated Declaration, or its JSON text

        Returns:
            ReconcileResult with purge/write counts

        Raises:
            MalformedDeclarationError: If the declaration is not a list of objects
            MissingKeyError: If a declared or owned record lacks the hash key
            StoreUnavailableError: If the owned records cannot be scanned
            StoreWriteFailedError: If a declared key belongs to a record of another
                writer, or any delete or put is not acknowledged
        """
        start = time.monotonic()
        table = store.table_name
        result = ReconcileResult(table=table, purged=0, written=0, duration_seconds=0.0)

        try:
            declaration = self._validate(declaration, hash_key)

            logger.info(
                f"Reconciling {len(declaration)} declared records into {table} "
                f"(hash key '{hash_key}')"
            )

            owned_keys = self.owned_keys(store, hash_key, declaration)
            logger.info(f"Found {len(owned_keys)} owned records in {table}")

            self.purge(store, owned_keys, result)
            self.install(store, hash_key, declaration.records, result)

        except Exception as e:
            result.duration_seconds = time.monotonic() - start
            logger.error(
                f"Reconciliation of {table} failed after {result.duration_seconds:.2f}s "
                f"({result.purged} purged, {result.written} written): {e}"
            )
            if self.metrics:
                self.metrics.record_reconciliation_run(
                    table=table, status="failed", purged=result.purged, written=result.written,
                    duration_seconds=result.duration_seconds, error_type=type(e).__name__
                )
            raise

        result.duration_seconds = time.monotonic() - start

        if self.metrics:
            self.metrics.record_reconciliation_run(
                table=table, status="success", purged=result.purged, written=result.written,
                duration_seconds=result.duration_seconds
            )

        logger.info(
            f"Reconciled {table} in {result.duration_seconds:.2f}s: "
            f"{result.purged} purged, {result.written} written"
        )
        return result

    def owned_keys(self, store: Store, hash_key: str, declaration: Declaration) -> List[str]:
        """
        Keys of the owned records, checked against the declaration.

        One scan returns the owned records plus any record of another writer
        whose key the declaration also uses. Such a collision fails the run
        before anything is deleted, since writing the declared record would
        take over the other writer's record.

        Raises:
            MissingKeyError: If an owned record lacks the hash key
            StoreWriteFailedError: If a declared key belongs to an unmarked record
        """
        declared = set(declaration.keys)

        def wanted(record: Record) -> bool:
            if self.marker.is_owned(record):
                return True
            key = record.get(hash_key)
            return isinstance(key, str) and key in declared

        owned, foreign = [], []
        for record in store.scan(wanted):
            (owned if self.marker.is_owned(record) else foreign).append(record)

        if foreign:
            taken = [record[hash_key] for record in foreign]
            raise StoreWriteFailedError(
                f"Declared {hash_key}={taken[0]!r} already exists in {store.table_name} "
                f"without {self.marker.attribute}; refusing to overwrite "
                f"{len(taken)} record(s) owned by another writer",
                key=taken[0],
                failed_keys=taken
            )

        # Collect every key up front so a bad record aborts before any delete
        keys = []
        for index, record in enumerate(owned):
            if hash_key not in record:
                raise MissingKeyError(
                    f"Owned record {index} in store has no '{hash_key}' attribute; "
                    "is the hash key name correct?",
                    key_name=hash_key,
                    index=index
                )
            keys.append(record[hash_key])
        return keys

    def purge(self, store: Store, keys: Sequence[str], result: ReconcileResult) -> None:
        """Delete owned records by key in batches, counting into ``result``."""
        if not keys:
            return

        batch = BatchDeleter(store, batch_size=self.batch_size)
        try:
            with batch:
                for key in keys:
                    batch.delete(key)
        finally:
            result.purged = batch.deleted

        logger.debug(f"Purged {batch.deleted} owned records from {store.table_name}")

    def install(
        self,
        store: Store,
        hash_key: str,
        records: Sequence[Record],
        result: ReconcileResult
    ) -> None:
        """Upsert declared records, each marked as owned, in declaration order."""
        for record in records:
            key = record[hash_key]
            logger.debug(f"Writing {hash_key}={key} to {store.table_name}")
            store.put(self.marker.mark(record))
            result.written += 1

    def _validate(
        self,
        declaration: Union[Declaration, str, bytes],
        hash_key: str
    ) -> Declaration:
        if isinstance(declaration, (str, bytes)):
            return parse_declaration(declaration, hash_key)
        if declaration.hash_key != hash_key:
            return Declaration.from_records(list(declaration.records), hash_key)
        return declaration
