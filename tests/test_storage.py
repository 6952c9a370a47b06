"""
Tests for storage backends and transaction support
"""

import pytest
from datetime import datetime, timezone

from investment_engine.storage import (
    InMemoryStorage, SQLiteStorage, StorageInterface, create_storage
)


# Test data
test_data = {
    "id": "test_001",
    "user_id": "user-1",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """Each test runs against both backends"""
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "test.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Basic CRUD on every backend"""

    def test_basic_operations(self, storage):
        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data

        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        storage.save("test_table", "record_2", {"id": "record_2", "user_id": "user-2"})
        assert len(storage.load_all("test_table")) == 2
        assert storage.count("test_table") == 2
        assert storage.load("test_table", "missing") is None
        assert storage.count("empty_table") == 0

    def test_replace_keeps_first_write_order(self, storage):
        storage.save("txs", "a", {"id": "a", "status": "pending"})
        storage.save("txs", "b", {"id": "b", "status": "pending"})
        storage.save("txs", "a", {"id": "a", "status": "approved"})

        assert [r["id"] for r in storage.load_all("txs")] == ["a", "b"]
        assert storage.load("txs", "a")["status"] == "approved"
        assert storage.count("txs") == 2

    def test_find_by_filters(self, storage):
        storage.save("txs", "a", {"id": "a", "user_id": "u1", "status": "pending"})
        storage.save("txs", "b", {"id": "b", "user_id": "u1", "status": "approved"})
        storage.save("txs", "c", {"id": "c", "user_id": "u2", "status": "pending"})

        assert {r["id"] for r in storage.find("txs", {"user_id": "u1"})} == {"a", "b"}
        assert [r["id"] for r in storage.find("txs", {"user_id": "u1", "status": "pending"})] == ["a"]
        assert storage.find("txs", {"status": "completed"}) == []

    def test_loaded_records_are_copies(self, storage):
        storage.save("test_table", "record_1", {"id": "record_1", "nested": {"x": 1}})
        loaded = storage.load("test_table", "record_1")
        loaded["nested"]["x"] = 2
        assert storage.load("test_table", "record_1")["nested"]["x"] == 1

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("test_table", "record_1", test_data)
            storage.save("test_table", "record_2", {"id": "record_2"})
        assert storage.count("test_table") == 2

    def test_atomic_rollback(self, storage):
        storage.save("test_table", "record_1", test_data)

        with pytest.raises(ValueError, match="Simulated error"):
            with storage.atomic():
                storage.save("test_table", "record_2", {"id": "record_2"})
                storage.save("test_table", "record_1", {"id": "record_1", "amount": "0"})
                raise ValueError("Simulated error")

        assert storage.load("test_table", "record_1") == test_data
        assert not storage.exists("test_table", "record_2")

    def test_table_created_in_rolled_back_block_is_usable(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "seed", {"id": "seed"})
                storage.save("fresh_table", "x", {"id": "x"})
                raise RuntimeError("undo")

        storage.save("fresh_table", "y", {"id": "y"})
        assert [r["id"] for r in storage.load_all("fresh_table")] == ["y"]

    def test_nested_atomic_rolls_back_as_one(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "outer", {"id": "outer"})
                with storage.atomic():
                    storage.save("test_table", "inner", {"id": "inner"})
                raise RuntimeError("outer failure")

        assert not storage.exists("test_table", "outer")
        assert not storage.exists("test_table", "inner")


class TestCreateStorage:
    """Storage factory from database URLs"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self, tmp_path):
        storage = create_storage(f"sqlite:///{tmp_path / 'engine.db'}")
        assert isinstance(storage, SQLiteStorage)
        assert isinstance(storage, StorageInterface)
        storage.close()

    def test_sqlite_file_persists(self, tmp_path):
        path = tmp_path / "engine.db"
        storage = SQLiteStorage(path)
        storage.save("balances", "user-1", {"user_id": "user-1", "available": "10"})
        storage.close()

        reopened = SQLiteStorage(path)
        assert reopened.load("balances", "user-1")["available"] == "10"
        reopened.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_storage("postgresql://localhost/db")

    def test_invalid_table_name(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "engine.db")
        with pytest.raises(ValueError, match="Invalid table name"):
            storage.save("balances; DROP TABLE x", "user-1", {"id": "user-1"})
        storage.close()
