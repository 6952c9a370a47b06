"""
Document Storage Module

JSON document tables behind the ledger and the audit trail. Records are plain
dicts with Decimal values stored as strings; each table is keyed by record id
and kept in first-write order.

Two backends: ``InMemoryStorage`` for tests and single-process runs, and
``SQLiteStorage`` for a persistent file. Both support nested ``atomic()``
blocks that commit or roll back as one unit at the outermost level.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager


Document = Dict[str, Any]


@dataclass
class StorageRecord:
    """Base class for stored records: an id plus creation and update times"""
    id: str
    created_at: datetime
    updated_at: datetime

    def record_header(self) -> Document:
        """Id and ISO timestamps every stored document starts with"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @staticmethod
    def parse_header(data: Document) -> Dict[str, Any]:
        """Constructor arguments for the id and timestamps of a stored document"""
        return {
            'id': data['id'],
            'created_at': datetime.fromisoformat(data['created_at']),
            'updated_at': datetime.fromisoformat(data['updated_at']),
        }


def _encode(data: Document) -> str:
    return json.dumps(data, default=str, sort_keys=True)


def _matches(record: Document, filters: Document) -> bool:
    return all(key in record and record[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """Abstract interface for document storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Insert or replace a document"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Document by id, or None"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Every document in a table, in first-write order"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Document) -> List[Document]:
        """Documents whose top-level fields equal every filter value"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def close(self) -> None:
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
        """Run a block as one all-or-nothing unit of writes"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """
    Thread-safe in-memory storage

    Documents are kept in their encoded form, so callers always get a fresh
    copy and can never mutate stored state by accident.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, str]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, str]]] = None
        self._depth = 0

    def _table(self, table: str) -> Dict[str, str]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._table(table)[record_id] = _encode(data)

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            encoded = self._table(table).get(record_id)
        return json.loads(encoded) if encoded is not None else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            encoded = list(self._table(table).values())
        return [json.loads(item) for item in encoded]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Document) -> List[Document]:
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def begin_transaction(self) -> None:
        """Snapshot the tables at the outermost block; holds the lock until it ends"""
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = {name: dict(rows) for name, rows in self._tables.items()}
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        """Restore the snapshot taken by the outermost block"""
        self._depth -= 1
        if self._depth == 0 and self._snapshot is not None:
            self._tables = self._snapshot
            self._snapshot = None
        self._lock.release()

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage, one ``(id, data, created_at)`` table per document table

    A single connection is shared across threads behind a re-entrant lock.
    Writes outside ``atomic()`` commit immediately.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # DEFERRED isolation enables manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    @property
    def _in_transaction(self) -> bool:
        return self._depth > 0

    def _table(self, table: str) -> str:
        """Create the table if missing; names are interpolated, so only identifiers pass"""
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table}")
        # Not cached: a rolled-back transaction can undo the CREATE
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        return table

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            name = self._table(table)
            # created_at is the first-write time; replacing a document keeps it
            self._connection.execute(f"""
                INSERT INTO {name} (id, data, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
            """, (record_id, _encode(data), datetime.now(timezone.utc).isoformat()))
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            row = self._connection.execute(
                f"SELECT data FROM {self._table(table)} WHERE id = ?", (record_id,)
            ).fetchone()
        return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            rows = self._connection.execute(
                f"SELECT data FROM {self._table(table)} ORDER BY created_at, rowid"
            ).fetchall()
        return [json.loads(row['data']) for row in rows]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            row = self._connection.execute(
                f"SELECT 1 FROM {self._table(table)} WHERE id = ? LIMIT 1", (record_id,)
            ).fetchone()
        return row is not None

    def find(self, table: str, filters: Document) -> List[Document]:
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            row = self._connection.execute(
                f"SELECT COUNT(*) AS count FROM {self._table(table)}"
            ).fetchone()
        return row['count']

    def begin_transaction(self) -> None:
        """Open a transaction at the outermost block; holds the lock until it ends"""
        self._lock.acquire()
        # SQLite with isolation_level='DEFERRED' starts the transaction on first write
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.commit()
        finally:
            self._lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.rollback()
        finally:
            self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    Args:
        database_url: ``memory://`` or ``sqlite:///path/to/file.db``

    Returns:
        StorageInterface implementation
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
