"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
import threading
from decimal import Decimal
from datetime import datetime, timezone
from pathlib import Path

from trading_ledger.storage import InMemoryStorage, SQLiteStorage


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Each test runs against both backends"""
    if request.param == "memory":
        backend = InMemoryStorage()
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = SQLiteStorage(Path(temp_dir) / "test.db")
            yield backend
            backend.close()


class TestStorageBasics:
    """Test basic CRUD operations"""

    def test_save_load_find_count(self, storage):
        """Test save, load, exists, find and count"""
        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data
        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
        assert len(storage.load_all("test_table")) == 2

        results = storage.find("test_table", {"id": "test_001"})
        assert len(results) == 1
        assert results[0]["name"] == "Test Record"

        assert storage.count("test_table") == 2

    def test_loaded_records_are_copies(self, storage):
        """Mutating a loaded record does not change storage"""
        storage.save("test_table", "record_1", test_data)
        loaded = storage.load("test_table", "record_1")
        loaded["name"] = "changed"
        assert storage.load("test_table", "record_1")["name"] == "Test Record"

    def test_next_id_is_per_table_and_increasing(self, storage):
        """Sequences count up independently per table"""
        assert storage.next_id("trades") == 1
        assert storage.next_id("trades") == 2
        assert storage.next_id("deposits") == 1
        assert storage.next_id("trades") == 3


class TestAtomicOperations:
    """Test transactions, increments and compare-and-set"""

    def test_atomic_commits_on_success(self, storage):
        """Writes inside a successful block are kept"""
        with storage.atomic():
            storage.save("test_table", "a", {"id": "a"})
            storage.save("test_table", "b", {"id": "b"})

        assert storage.count("test_table") == 2

    def test_atomic_rolls_back_on_error(self, storage):
        """All writes in a failed block are discarded"""
        storage.save("test_table", "keep", {"id": "keep"})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "discard", {"id": "discard"})
                storage.next_id("test_table")
                raise RuntimeError("boom")

        assert storage.exists("test_table", "keep")
        assert not storage.exists("test_table", "discard")
        assert storage.next_id("test_table") == 1

    def test_nested_atomic_joins_outer_block(self, storage):
        """An inner block does not commit on its own"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("test_table", "inner", {"id": "inner"})
                raise RuntimeError("outer failure")

        assert not storage.exists("test_table", "inner")

    def test_table_first_created_in_rolled_back_block_is_usable(self, storage):
        """A table first touched in a failed block still works afterwards"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh_table", "x", {"id": "x"})
                raise RuntimeError("boom")

        storage.save("fresh_table", "y", {"id": "y"})
        assert storage.exists("fresh_table", "y")
        assert not storage.exists("fresh_table", "x")

    def test_increment(self, storage):
        """Increment adds to a Decimal field and returns the new value"""
        storage.save("accounts", "alice", {"id": 1, "balance": "10.50"})

        assert storage.increment("accounts", "alice", "balance", Decimal("-20")) == Decimal("-9.50")
        assert storage.load("accounts", "alice")["balance"] == "-9.50"

    def test_increment_missing_record(self, storage):
        """Increment never creates records"""
        assert storage.increment("accounts", "ghost", "balance", Decimal("5")) is None
        assert not storage.exists("accounts", "ghost")

    def test_compare_and_set(self, storage):
        """Only the caller holding the expected value wins"""
        storage.save("deposits", "1", {"id": 1, "status": "pending"})

        assert storage.compare_and_set("deposits", "1", "status", "pending", "approved")
        assert not storage.compare_and_set("deposits", "1", "status", "pending", "rejected")
        assert storage.load("deposits", "1")["status"] == "approved"
        assert not storage.compare_and_set("deposits", "2", "status", "pending", "approved")

    def test_concurrent_increments_do_not_lose_updates(self, storage):
        """Many threads incrementing one record all land"""
        storage.save("accounts", "alice", {"id": 1, "balance": "0"})

        def worker():
            for _ in range(25):
                storage.increment("accounts", "alice", "balance", Decimal("1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert Decimal(storage.load("accounts", "alice")["balance"]) == Decimal("200")


def test_sqlite_persists_across_connections():
    """Committed data survives reopening the database file"""
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = Path(temp_dir) / "persist.db"

        storage = SQLiteStorage(db_path)
        storage.save("accounts", "alice", {"id": 1, "balance": "5"})
        storage.next_id("accounts")
        storage.close()

        reopened = SQLiteStorage(db_path)
        assert reopened.load("accounts", "alice")["balance"] == "5"
        assert reopened.next_id("accounts") == 2
        reopened.close()


def test_rollback_restores_overwritten_records(storage):
    """A failed block puts back the previous version of updated records"""
    storage.save("accounts", "alice", {"id": 1, "balance": "5"})
    storage.next_id("accounts")

    with pytest.raises(RuntimeError):
        with storage.atomic():
            storage.increment("accounts", "alice", "balance", Decimal("10"))
            storage.save("accounts", "alice", {"id": 1, "balance": "99"})
            storage.next_id("accounts")
            raise RuntimeError("boom")

    assert storage.load("accounts", "alice")["balance"] == "5"
    assert storage.next_id("accounts") == 2


def test_sqlite_increments_serialize_across_connections():
    """Two connections to one file never lose each other's increments"""
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = Path(temp_dir) / "shared.db"
        first = SQLiteStorage(db_path)
        second = SQLiteStorage(db_path)
        first.save("accounts", "alice", {"id": 1, "balance": "0"})

        def worker(backend):
            for _ in range(200):
                backend.increment("accounts", "alice", "balance", Decimal("1"))

        threads = [threading.Thread(target=worker, args=(backend,)) for backend in (first, second)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert Decimal(first.load("accounts", "alice")["balance"]) == Decimal("400")
        assert Decimal(second.load("accounts", "alice")["balance"]) == Decimal("400")
        first.close()
        second.close()


def test_sqlite_sequences_are_unique_across_connections():
    """Ids allocated from two connections never collide"""
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = Path(temp_dir) / "shared.db"
        backends = [SQLiteStorage(db_path), SQLiteStorage(db_path)]
        allocated = []
        allocated_lock = threading.Lock()

        def worker(backend):
            for _ in range(50):
                value = backend.next_id("trades")
                with allocated_lock:
                    allocated.append(value)

        threads = [threading.Thread(target=worker, args=(backend,)) for backend in backends]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(allocated) == list(range(1, 101))
        for backend in backends:
            backend.close()
