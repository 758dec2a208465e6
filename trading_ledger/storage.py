"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.

Every backend serializes its operations behind a re-entrant lock. An
``atomic()`` block holds that lock from begin to commit, which makes the
read-modify-write helpers (``increment``, ``compare_and_set``) safe for
concurrent callers sharing one storage object. The SQLite backend also opens
its atomic blocks with ``BEGIN IMMEDIATE``, so separate connections and
processes on the same database file serialize their writes as well.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Tuple, Union
from decimal import Decimal
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager


SEQUENCES_TABLE = "_sequences"

# Journal marker for a key that did not exist before the transaction
_MISSING = object()


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        # Convert datetime objects to ISO strings
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        # Convert Decimal objects to strings
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result


class StorageInterface(ABC):
    """Abstract interface for storage backends

    Subclasses must set ``self._lock`` (a ``threading.RLock``) and
    ``self._atomic_depth`` in their constructor.
    """

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def next_id(self, table: str) -> int:
        """Allocate the next auto-incrementing identifier for a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations

        Nested blocks join the outermost one; only the outermost block
        commits or rolls back.
        """
        with self._lock:
            outermost = self._atomic_depth == 0
            if outermost:
                self.begin_transaction()
            self._atomic_depth += 1
            try:
                yield
            except Exception:
                self._atomic_depth -= 1
                if outermost:
                    self.rollback()
                raise
            self._atomic_depth -= 1
            if outermost:
                self.commit()

    def increment(self, table: str, record_id: str, field: str,
                  delta: Decimal) -> Optional[Decimal]:
        """
        Atomically add ``delta`` to a Decimal field of a record.

        Returns:
            The new value, or None if the record does not exist
        """
        with self.atomic():
            data = self.load(table, record_id)
            if data is None:
                return None
            new_value = Decimal(str(data.get(field) or "0")) + delta
            data[field] = str(new_value)
            data['updated_at'] = datetime.now(timezone.utc).isoformat()
            self.save(table, record_id, data)
            return new_value

    def compare_and_set(self, table: str, record_id: str, field: str,
                        expected: Any, new_value: Any) -> bool:
        """
        Set ``field`` to ``new_value`` only if it currently equals ``expected``.

        Returns:
            True if the write happened, False if the record is missing or
            the field held a different value
        """
        with self.atomic():
            data = self.load(table, record_id)
            if data is None or data.get(field) != expected:
                return False
            data[field] = new_value
            data['updated_at'] = datetime.now(timezone.utc).isoformat()
            self.save(table, record_id, data)
            return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing

    Transactions keep an undo journal of the first prior value of every key
    written inside the block; rollback puts those values back. Stored
    records are replaced on save, never mutated in place.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._atomic_depth = 0
        self._journal: Optional[Dict[Tuple[str, str], Any]] = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def _remember(self, table: str, key: str) -> None:
        """Journal the value a key held before this transaction first touched it"""
        if self._journal is not None and (table, key) not in self._journal:
            self._journal[(table, key)] = self._data[table].get(key, _MISSING)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            key = str(record_id)
            self._remember(table, key)
            # Deep copy to prevent external mutation
            self._data[table][key] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(str(record_id))
            if record:
                # Deep copy to prevent external mutation
                return json.loads(json.dumps(record))
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [json.loads(json.dumps(record)) for record in self._data[table].values()]

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return str(record_id) in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            results = []
            for record in self._data[table].values():
                match = True
                for key, value in filters.items():
                    if key not in record or record[key] != value:
                        match = False
                        break
                if match:
                    results.append(json.loads(json.dumps(record)))
            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def next_id(self, table: str) -> int:
        """Allocate the next identifier from the sequences table"""
        with self._lock:
            self._ensure_table(SEQUENCES_TABLE)
            self._remember(SEQUENCES_TABLE, table)
            value = self._data[SEQUENCES_TABLE].get(table, 0) + 1
            self._data[SEQUENCES_TABLE][table] = value
            return value

    def begin_transaction(self) -> None:
        """Start an empty undo journal"""
        with self._lock:
            self._journal = {}

    def commit(self) -> None:
        """Drop the undo journal"""
        with self._lock:
            self._journal = None

    def rollback(self) -> None:
        """Put every journaled key back to its value before the transaction"""
        with self._lock:
            if self._journal is None:
                return
            for (table, key), previous in self._journal.items():
                if previous is _MISSING:
                    self._data[table].pop(key, None)
                else:
                    self._data[table][key] = previous
            self._journal = None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", busy_timeout: float = 30.0):
        self.db_path = str(db_path)
        # Autocommit mode; atomic blocks issue BEGIN IMMEDIATE themselves so the
        # database write lock is held from the first read to COMMIT, across
        # every connection to the same file
        self._connection = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None, timeout=busy_timeout
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._atomic_depth = 0
        self._in_transaction = False
        self._known_tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {SEQUENCES_TABLE} (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
            """)

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        with self._lock:
            if table in self._known_tables:
                return
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            # Create index on timestamps for better query performance
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            self._known_tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)
            record_id = str(record_id)

            # Use INSERT OR REPLACE to handle updates
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (str(record_id),))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (str(record_id),))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)

            results = []
            for row in cursor.fetchall():
                record = json.loads(row['data'])
                match = True
                for key, value in filters.items():
                    if key not in record or record[key] != value:
                        match = False
                        break
                if match:
                    results.append(record)

            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def next_id(self, table: str) -> int:
        """Allocate the next identifier from the sequences table"""
        with self.atomic():
            self._connection.execute(f"""
                INSERT INTO {SEQUENCES_TABLE} (name, value) VALUES (?, 1)
                ON CONFLICT(name) DO UPDATE SET value = value + 1
            """, (table,))
            cursor = self._connection.execute(f"""
                SELECT value FROM {SEQUENCES_TABLE} WHERE name = ?
            """, (table,))
            return cursor.fetchone()['value']

    def begin_transaction(self) -> None:
        """Start a write transaction, waiting for other connections' writers"""
        with self._lock:
            if not self._in_transaction:
                self._connection.execute("BEGIN IMMEDIATE")
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.execute("COMMIT")
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.execute("ROLLBACK")
                self._in_transaction = False
                # Tables created inside the transaction are gone now
                self._known_tables.clear()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
