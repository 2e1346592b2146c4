"""
PostgreSQL store adapter

Keeps seed records in a two-column table: the hash key as a text primary key
and the full record as ``jsonb``::

    CREATE TABLE seed_data."MyTable1" (
        "Id" text PRIMARY KEY,
        attributes jsonb NOT NULL
    );
"""

import logging
from typing import List, Optional, Sequence

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json, RealDictCursor

from seedsync.exceptions import StoreUnavailableError, StoreWriteFailedError
from seedsync.stores.base import Record, RecordPredicate, Store

logger = logging.getLogger(__name__)

ATTRIBUTES_COLUMN = "attributes"


class PostgresStore(Store):
    """
    Store backed by a PostgreSQL table.

    Args:
        conn: Open psycopg2 connection
        schema: Schema holding the table
        table_name: Table name
        hash_key: Primary key column name
        owns_connection: Close the connection when the store is closed
    """

    def __init__(
        self,
        conn,
        schema: str,
        table_name: str,
        hash_key: str,
        owns_connection: bool = False
    ):
        super().__init__(table_name, hash_key)
        self.conn = conn
        self.schema = schema
        self.owns_connection = owns_connection
        self.table_ref = sql.Identifier(schema, table_name)
        self.key_column = sql.Identifier(hash_key)
        self.attributes_column = sql.Identifier(ATTRIBUTES_COLUMN)

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        database: str,
        schema: str,
        table_name: str,
        hash_key: str,
        user: str,
        password: Optional[str] = None
    ) -> "PostgresStore":
        """
        Open a connection and wrap it in a store.

        Raises:
            StoreUnavailableError: If the database cannot be reached
        """
        logger.info(f"Connecting to PostgreSQL at {host}:{port}/{database}")
        try:
            conn = psycopg2.connect(
                host=host,
                port=port,
                database=database,
                user=user,
                password=password
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise StoreUnavailableError(f"PostgreSQL connection failed: {e}") from e

        return cls(conn, schema, table_name, hash_key, owns_connection=True)

    def scan(self, predicate: RecordPredicate) -> List[Record]:
        query = sql.SQL("SELECT {} FROM {}").format(self.attributes_column, self.table_ref)

        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query)
                records = [dict(row[ATTRIBUTES_COLUMN]) for row in cursor.fetchall()]
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            logger.error(f"Failed to scan {self.schema}.{self.table_name}: {e}")
            raise StoreUnavailableError(f"Scan of {self.table_name} failed: {e}") from e

        return [record for record in records if predicate(record)]

    def batch_delete(self, keys: Sequence[str]) -> List[str]:
        if not keys:
            return []

        query = sql.SQL("DELETE FROM {} WHERE {} = ANY(%s)").format(
            self.table_ref, self.key_column
        )

        try:
            with self.conn.cursor() as cursor:
                cursor.execute(query, (list(keys),))
                logger.debug(f"Deleted {cursor.rowcount} rows from {self.schema}.{self.table_name}")
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            logger.error(f"Batch delete of {len(keys)} keys failed: {e}")
            return list(keys)

        return []

    def put(self, record: Record) -> None:
        key = record.get(self.hash_key)
        query = sql.SQL(
            "INSERT INTO {table} ({key}, {attrs}) VALUES (%s, %s) "
            "ON CONFLICT ({key}) DO UPDATE SET {attrs} = EXCLUDED.{attrs}"
        ).format(table=self.table_ref, key=self.key_column, attrs=self.attributes_column)

        try:
            with self.conn.cursor() as cursor:
                cursor.execute(query, (key, Json(record)))
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            logger.error(f"Failed to write {self.hash_key}={key}: {e}")
            raise StoreWriteFailedError(
                f"Put of {self.hash_key}={key} into {self.table_name} failed: {e}",
                key=key
            ) from e

    def close(self) -> None:
        if self.owns_connection and self.conn is not None:
            self.conn.close()
            self.conn = None

    def _rollback(self) -> None:
        # A dead connection cannot roll back; the caller reports the original error
        try:
            self.conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback on {self.schema}.{self.table_name} failed: {e}")
