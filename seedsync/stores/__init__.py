"""
Store adapters for seedsync

Usage:
    from seedsync.config import SeederConfig
    from seedsync.stores import create_store

    with create_store(SeederConfig(backend="scylla"), "MyTable1", "Id") as store:
        owned = store.scan(lambda record: record.get("CF_MANAGED") is True)
"""

from typing import Callable, Dict, Optional, Tuple

from seedsync.config import SeederConfig
from seedsync.stores.base import Record, RecordPredicate, Store
from seedsync.stores.memory import InMemoryStore

StoreFactory = Callable[[str, str], Store]

# Memory tables survive across invocations in one process (CLI dry runs)
_memory_tables: Dict[Tuple[str, str], InMemoryStore] = {}


def create_store(
    config: SeederConfig,
    table_name: str,
    hash_key: str,
    vault_client=None
) -> Store:
    """
    Open a store for a table using the configured backend.

    Args:
        config: Seeder configuration
        table_name: Target table
        hash_key: Key attribute name
        vault_client: Optional VaultClient supplying credentials

    Returns:
        Store handle (close it when done)

    Raises:
        StoreUnavailableError: If the backend cannot be reached
    """
    if config.backend == "memory":
        key = (table_name, hash_key)
        if key not in _memory_tables:
            _memory_tables[key] = InMemoryStore(table_name=table_name, hash_key=hash_key)
        return _memory_tables[key]

    credentials = _credentials(config, vault_client)

    if config.backend == "scylla":
        from seedsync.stores.scylla import ScyllaStore
        return ScyllaStore.connect(
            hosts=config.scylla_hosts,
            port=config.scylla_port,
            keyspace=config.scylla_keyspace,
            table_name=table_name,
            hash_key=hash_key,
            username=credentials.get("username"),
            password=credentials.get("password")
        )

    from seedsync.stores.postgres import PostgresStore
    return PostgresStore.connect(
        host=config.postgres_host,
        port=config.postgres_port,
        database=config.postgres_db,
        schema=config.postgres_schema,
        table_name=table_name,
        hash_key=hash_key,
        user=credentials.get("username") or config.postgres_user,
        password=credentials.get("password")
    )


def reset_memory_tables() -> None:
    """Forget every in-memory table."""
    _memory_tables.clear()


def _credentials(config: SeederConfig, vault_client) -> Dict[str, Optional[str]]:
    if vault_client is not None:
        return vault_client.get_store_credentials(config.backend)

    if config.backend == "scylla":
        return {"username": config.scylla_username, "password": config.scylla_password}
    return {"username": config.postgres_user, "password": config.postgres_password}


__all__ = [
    "InMemoryStore",
    "Record",
    "RecordPredicate",
    "Store",
    "StoreFactory",
    "create_store",
    "reset_memory_tables",
]
