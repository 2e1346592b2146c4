"""
Store interface consumed by the reconciler.

A store wraps one table keyed on a single string attribute (the hash key).
Adapters translate driver errors into StoreUnavailableError and
StoreWriteFailedError so callers only handle seedsync exceptions.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Sequence

Record = Dict[str, Any]
RecordPredicate = Callable[[Record], bool]


class Store(ABC):
    """Key-value table keyed on ``hash_key``."""

    def __init__(self, table_name: str, hash_key: str):
        self.table_name = table_name
        self.hash_key = hash_key

    @abstractmethod
    def scan(self, predicate: RecordPredicate) -> List[Record]:
        """
        Read every record in the table and keep those matching the predicate.

        Args:
            predicate: Filter applied to each record

        Returns:
            Matching records

        Raises:
            StoreUnavailableError: If the table cannot be read
        """

    @abstractmethod
    def batch_delete(self, keys: Sequence[str]) -> List[str]:
        """
        Delete records by hash key value in one round trip where possible.

        Args:
            keys: Hash key values to delete

        Returns:
            Keys the store did not process (empty when all were deleted)
        """

    @abstractmethod
    def put(self, record: Record) -> None:
        """
        Insert or fully overwrite a record by its hash key.

        Raises:
            StoreWriteFailedError: If the write is not acknowledged
        """

    def close(self) -> None:
        """Release connections held by the store."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table_name!r}, hash_key={self.hash_key!r})"
