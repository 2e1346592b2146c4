"""
In-memory store used for tests and dry runs.
"""

import copy
from typing import Dict, Iterable, List, Optional, Sequence

from seedsync.exceptions import StoreUnavailableError, StoreWriteFailedError
from seedsync.stores.base import Record, RecordPredicate, Store


class InMemoryStore(Store):
    """
    Dict-backed table with optional failure injection.

    Args:
        table_name: Table name reported in logs
        hash_key: Key attribute name
        records: Initial records
        fail_scan: Make every scan raise StoreUnavailableError
        fail_delete_keys: Keys that batch_delete reports as unprocessed
        fail_put_keys: Keys whose put raises StoreWriteFailedError
    """

    def __init__(
        self,
        table_name: str = "memory",
        hash_key: str = "Id",
        records: Optional[Iterable[Record]] = None,
        fail_scan: bool = False,
        fail_delete_keys: Optional[Iterable[str]] = None,
        fail_put_keys: Optional[Iterable[str]] = None
    ):
        super().__init__(table_name, hash_key)
        self.items: Dict[str, Record] = {}
        self.fail_scan = fail_scan
        self.fail_delete_keys = set(fail_delete_keys or [])
        self.fail_put_keys = set(fail_put_keys or [])
        self.batch_calls: List[List[str]] = []
        self.put_calls: List[str] = []
        self.closed = False

        for record in records or []:
            self.items[record[hash_key]] = copy.deepcopy(record)

    def scan(self, predicate: RecordPredicate) -> List[Record]:
        if self.fail_scan:
            raise StoreUnavailableError(f"Scan of {self.table_name} failed")
        return [copy.deepcopy(r) for r in self.items.values() if predicate(r)]

    def batch_delete(self, keys: Sequence[str]) -> List[str]:
        self.batch_calls.append(list(keys))
        unprocessed = []
        for key in keys:
            if key in self.fail_delete_keys:
                unprocessed.append(key)
                continue
            self.items.pop(key, None)
        return unprocessed

    def put(self, record: Record) -> None:
        key = record[self.hash_key]
        self.put_calls.append(key)
        if key in self.fail_put_keys:
            raise StoreWriteFailedError(f"Put of {self.hash_key}={key} failed", key=key)
        self.items[key] = copy.deepcopy(record)

    def get(self, key: str) -> Optional[Record]:
        """Return a copy of a record by key."""
        record = self.items.get(key)
        return copy.deepcopy(record) if record is not None else None

    def close(self) -> None:
        self.closed = True
