"""
Unit tests for the in-memory store and the store factory.
"""

import pytest

from seedsync.config import SeederConfig
from seedsync.exceptions import StoreUnavailableError, StoreWriteFailedError
from seedsync.stores import create_store
from seedsync.stores.memory import InMemoryStore


class TestInMemoryStore:
    """Test the dict-backed store."""

    @pytest.fixture
    def populated(self):
        return InMemoryStore(records=[
            {"Id": "a", "CF_MANAGED": True},
            {"Id": "b"},
        ])

    def test_scan_applies_predicate(self, populated):
        owned = populated.scan(lambda record: record.get("CF_MANAGED") is True)

        assert owned == [{"Id": "a", "CF_MANAGED": True}]

    def test_scan_returns_copies(self, populated):
        """Test that scanned records cannot mutate the table."""
        record = populated.scan(lambda record: True)[0]
        record["Name"] = "changed"

        assert "Name" not in populated.get("a")

    def test_put_overwrites(self, populated):
        populated.put({"Id": "b", "Name": "New"})

        assert populated.get("b") == {"Id": "b", "Name": "New"}

    def test_batch_delete_reports_unprocessed(self):
        store = InMemoryStore(records=[{"Id": "a"}, {"Id": "b"}], fail_delete_keys=["b"])

        unprocessed = store.batch_delete(["a", "b", "missing"])

        assert unprocessed == ["b"]
        assert store.get("a") is None
        assert store.get("b") == {"Id": "b"}

    def test_fail_scan(self):
        with pytest.raises(StoreUnavailableError):
            InMemoryStore(fail_scan=True).scan(lambda record: True)

    def test_fail_put(self):
        with pytest.raises(StoreWriteFailedError) as exc_info:
            InMemoryStore(fail_put_keys=["x"]).put({"Id": "x"})

        assert exc_info.value.key == "x"

    def test_context_manager_closes(self):
        with InMemoryStore() as store:
            pass

        assert store.closed


class TestCreateStore:
    """Test backend selection."""

    def test_memory_backend_reuses_table(self):
        """Test that the same table is returned across calls."""
        config = SeederConfig(backend="memory")

        first = create_store(config, "MyTable1", "Id")
        first.put({"Id": "0"})
        second = create_store(config, "MyTable1", "Id")

        assert second is first
        assert second.get("0") == {"Id": "0"}

    def test_memory_tables_are_keyed_by_hash_key(self):
        config = SeederConfig(backend="memory")

        assert create_store(config, "T", "Id") is not create_store(config, "T", "Key")
