"""
ScyllaDB store adapter

Stores seed records in a CQL table whose partition key column is the hash key.
Records travel as CQL JSON (``SELECT JSON`` / ``INSERT ... JSON``), so a put
overwrites every column of the row, and columns left null read back as absent
attributes. The table and its columns are provisioned outside seedsync.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from cassandra import DriverException, OperationTimedOut
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import Cluster, NoHostAvailable
from cassandra.query import BatchStatement, BatchType, SimpleStatement

from seedsync.exceptions import ConfigurationError, StoreUnavailableError, StoreWriteFailedError
from seedsync.stores.base import Record, RecordPredicate, Store

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,47}$")
_UNQUOTED = re.compile(r"^[a-z][a-z0-9_]*$")

CASSANDRA_ERRORS = (DriverException, NoHostAvailable, OperationTimedOut)


def quote_identifier(name: str) -> str:
    """Validate and double-quote a CQL identifier (keeps its case)."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid CQL identifier: {name!r}")
    return f'"{name}"'


def to_json_key(name: str) -> str:
    """
    Column name as CQL JSON expects it.

    CQL lowercases unquoted JSON keys, so case-sensitive column names must
    carry their own double quotes inside the JSON key.
    """
    if _UNQUOTED.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def from_json_key(key: str) -> str:
    """Inverse of to_json_key for keys returned by SELECT JSON."""
    if len(key) >= 2 and key.startswith('"') and key.endswith('"'):
        return key[1:-1].replace('""', '"')
    return key


class ScyllaStore(Store):
    """
    Store backed by a ScyllaDB (CQL) table.

    Args:
        session: Connected cassandra-driver session
        keyspace: Keyspace holding the table
        table_name: Table name
        hash_key: Partition key column name
        cluster: Cluster to shut down on close (when the store owns it)
        fetch_size: Page size for full-table scans
    """

    def __init__(
        self,
        session,
        keyspace: str,
        table_name: str,
        hash_key: str,
        cluster: Optional[Cluster] = None,
        fetch_size: int = 1000
    ):
        super().__init__(table_name, hash_key)
        self.session = session
        self.keyspace = keyspace
        self.cluster = cluster
        self.fetch_size = fetch_size
        self.table_ref = f"{quote_identifier(keyspace)}.{quote_identifier(table_name)}"
        self.key_column = quote_identifier(hash_key)
        self._insert_stmt = None
        self._delete_stmt = None

    @classmethod
    def connect(
        cls,
        hosts: Sequence[str],
        keyspace: str,
        table_name: str,
        hash_key: str,
        port: int = 9042,
        username: Optional[str] = None,
        password: Optional[str] = None,
        **kwargs: Any
    ) -> "ScyllaStore":
        """
        Open a cluster connection and wrap it in a store.

        Raises:
            StoreUnavailableError: If no host can be reached
        """
        auth_provider = None
        if username:
            auth_provider = PlainTextAuthProvider(username=username, password=password)

        logger.info(f"Connecting to ScyllaDB at {','.join(hosts)}:{port} (keyspace {keyspace})")
        cluster = Cluster(list(hosts), port=port, auth_provider=auth_provider)

        try:
            session = cluster.connect()
        except CASSANDRA_ERRORS as e:
            cluster.shutdown()
            logger.error(f"Failed to connect to ScyllaDB: {e}")
            raise StoreUnavailableError(f"ScyllaDB connection failed: {e}") from e

        return cls(session, keyspace, table_name, hash_key, cluster=cluster, **kwargs)

    def scan(self, predicate: RecordPredicate) -> List[Record]:
        query = SimpleStatement(
            f"SELECT JSON * FROM {self.table_ref}",
            fetch_size=self.fetch_size
        )
        logger.debug(f"Executing ScyllaDB scan: {query.query_string}")

        try:
            rows = self.session.execute(query)
            records = [self._decode_row(row[0]) for row in rows]
        except CASSANDRA_ERRORS as e:
            logger.error(f"Failed to scan {self.table_ref}: {e}")
            raise StoreUnavailableError(f"Scan of {self.table_name} failed: {e}") from e

        matched = [record for record in records if predicate(record)]
        logger.debug(f"Scanned {len(records)} rows from {self.table_ref}, {len(matched)} matched")
        return matched

    def batch_delete(self, keys: Sequence[str]) -> List[str]:
        if not keys:
            return []

        batch = BatchStatement(batch_type=BatchType.UNLOGGED)
        try:
            statement = self._prepared_delete()
            for key in keys:
                batch.add(statement, (key,))
            self.session.execute(batch)
        except CASSANDRA_ERRORS as e:
            logger.error(f"Batch delete of {len(keys)} keys from {self.table_ref} failed: {e}")
            return list(keys)

        return []

    def put(self, record: Record) -> None:
        key = record.get(self.hash_key)
        payload = json.dumps({to_json_key(k): v for k, v in record.items()})

        try:
            self.session.execute(self._prepared_insert(), (payload,))
        except CASSANDRA_ERRORS as e:
            logger.error(f"Failed to write {self.hash_key}={key} to {self.table_ref}: {e}")
            raise StoreWriteFailedError(
                f"Put of {self.hash_key}={key} into {self.table_name} failed: {e}",
                key=key
            ) from e

    def close(self) -> None:
        if self.cluster is not None:
            self.cluster.shutdown()
            self.cluster = None
            logger.debug("ScyllaDB cluster connection closed")

    def _prepared_insert(self):
        if self._insert_stmt is None:
            self._insert_stmt = self.session.prepare(f"INSERT INTO {self.table_ref} JSON ?")
        return self._insert_stmt

    def _prepared_delete(self):
        if self._delete_stmt is None:
            self._delete_stmt = self.session.prepare(
                f"DELETE FROM {self.table_ref} WHERE {self.key_column} = ?"
            )
        return self._delete_stmt

    def _decode_row(self, payload: str) -> Dict[str, Any]:
        decoded = json.loads(payload)
        return {from_json_key(k): v for k, v in decoded.items() if v is not None}
