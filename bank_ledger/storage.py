"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing),
SQLite and PostgreSQL (persistence). Records are JSON documents carrying an
integer version used for compare-and-swap updates. All monetary values stored
as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, timezone
import sqlite3
import json
import logging
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager


logger = logging.getLogger("bank_ledger.storage")


class DuplicateKeyError(Exception):
    """Raised by insert() when the record id is already present"""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"Record {record_id} already exists in {table}")
        self.table = table
        self.record_id = record_id


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
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

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        # Convert ISO strings back to datetime objects
        if 'created_at' in data and isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if 'updated_at' in data and isinstance(data['updated_at'], str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])

        return cls(**data)


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class StorageInterface(ABC):
    """
    Abstract interface for storage backends

    atomic() blocks are serialised behind a re-entrant lock owned by the
    backend; a nested atomic() joins the outermost block and only the
    outermost block commits or rolls back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""
        pass

    @abstractmethod
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record, raising DuplicateKeyError if the id is taken"""
        pass

    @abstractmethod
    def compare_and_swap(self, table: str, record_id: str,
                         expected_version: int, data: Dict[str, Any]) -> bool:
        """
        Replace a record only if its stored version equals expected_version

        The new version is taken from data['version']. Returns False when the
        record is missing or its version moved.
        """
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
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
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

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self.begin_transaction()
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.rollback()
                raise
            self._depth -= 1
            if outermost:
                self.commit()


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        super().__init__()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        # Undo journal of (table, record_id, previous) while a transaction is open
        self._journal: Optional[List[tuple]] = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def _remember(self, table: str, record_id: Optional[str]) -> None:
        if self._journal is None:
            return
        if record_id is None:
            self._journal.append((table, None, dict(self._data[table])))
        else:
            self._journal.append((table, record_id, self._data[table].get(record_id)))

    @staticmethod
    def _copy(data: Dict[str, Any]) -> Dict[str, Any]:
        # Deep copy to prevent external mutation
        return json.loads(json.dumps(data, default=str))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            self._remember(table, record_id)
            self._data[table][record_id] = self._copy(data)

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, refusing duplicates"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                raise DuplicateKeyError(table, record_id)
            self._remember(table, record_id)
            self._data[table][record_id] = self._copy(data)

    def compare_and_swap(self, table: str, record_id: str,
                         expected_version: int, data: Dict[str, Any]) -> bool:
        """Replace a record if its version still matches"""
        with self._lock:
            self._ensure_table(table)
            current = self._data[table].get(record_id)
            if current is None or current.get('version', 0) != expected_version:
                return False
            self._remember(table, record_id)
            self._data[table][record_id] = self._copy(data)
            return True

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return self._copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [self._copy(record) for record in self._data[table].values()]

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [self._copy(record) for record in self._data[table].values()
                    if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._remember(table, None)
            self._data[table] = {}

    def begin_transaction(self) -> None:
        with self._lock:
            self._journal = []

    def commit(self) -> None:
        with self._lock:
            self._journal = None

    def rollback(self) -> None:
        """Undo every write made since begin_transaction"""
        with self._lock:
            journal, self._journal = self._journal or [], None
            for table, record_id, previous in reversed(journal):
                if record_id is None:
                    self._data[table] = previous
                elif previous is None:
                    self._data[table].pop(record_id, None)
                else:
                    self._data[table][record_id] = previous

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 30.0):
        super().__init__()
        self.db_path = str(db_path)
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(
            self.db_path, check_same_thread=False,
            isolation_level='DEFERRED', timeout=timeout
        )
        self._connection.row_factory = sqlite3.Row
        self._tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _commit_unless_in_transaction(self) -> None:
        if not self.in_transaction:
            self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        # Create index on timestamps for better query performance
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        self._commit_unless_in_transaction()
        self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    version = excluded.version,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), data.get('version', 0), now, now))
            self._commit_unless_in_transaction()

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, refusing duplicates"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            try:
                self._connection.execute(f"""
                    INSERT INTO {table} (id, data, version, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (record_id, json.dumps(data, default=str), data.get('version', 0), now, now))
            except sqlite3.IntegrityError:
                raise DuplicateKeyError(table, record_id)
            self._commit_unless_in_transaction()

    def compare_and_swap(self, table: str, record_id: str,
                         expected_version: int, data: Dict[str, Any]) -> bool:
        """Replace a record if its version still matches"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            cursor = self._connection.execute(f"""
                UPDATE {table}
                SET data = ?, version = ?, updated_at = ?
                WHERE id = ? AND version = ?
            """, (json.dumps(data, default=str), data.get('version', 0), now,
                  record_id, expected_version))
            self._commit_unless_in_transaction()
            return cursor.rowcount == 1

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (record_id,))
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
            """, (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            records = (json.loads(row['data']) for row in cursor.fetchall())
            return [record for record in records if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._commit_unless_in_transaction()

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            self._connection.commit()

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            self._connection.rollback()
            # Tables created inside the rolled back transaction are gone too
            self._tables.clear()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """PostgreSQL storage backend with ACID transaction support"""

    def __init__(self, connection_string: str):
        super().__init__()
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. "
                              "Install with: pip install bank-ledger[postgres]")

        self.connection_string = connection_string
        self._connection = None
        self._tables = set()
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )
            self._connection.autocommit = False  # We handle transactions manually

    def _commit_unless_in_transaction(self) -> None:
        if not self.in_transaction:
            self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._connection.cursor() as cursor:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data JSONB NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT NOW(),
                    updated_at TIMESTAMP DEFAULT NOW()
                )
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_data
                ON {table} USING gin(data)
            """)
        self._commit_unless_in_transaction()
        self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to PostgreSQL using UPSERT"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO {table} (id, data, version, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        data = EXCLUDED.data,
                        version = EXCLUDED.version,
                        updated_at = EXCLUDED.updated_at
                """, (record_id, json.dumps(data, default=str), data.get('version', 0), now, now))
            self._commit_unless_in_transaction()

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, refusing duplicates"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc)
            with self._connection.cursor() as cursor:
                # Savepoint keeps the surrounding transaction usable after a violation
                cursor.execute("SAVEPOINT bank_ledger_insert")
                try:
                    cursor.execute(f"""
                        INSERT INTO {table} (id, data, version, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s)
                    """, (record_id, json.dumps(data, default=str), data.get('version', 0), now, now))
                except self.psycopg2.IntegrityError:
                    cursor.execute("ROLLBACK TO SAVEPOINT bank_ledger_insert")
                    raise DuplicateKeyError(table, record_id)
                cursor.execute("RELEASE SAVEPOINT bank_ledger_insert")
            self._commit_unless_in_transaction()

    def compare_and_swap(self, table: str, record_id: str,
                         expected_version: int, data: Dict[str, Any]) -> bool:
        """Replace a record if its version still matches"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    UPDATE {table}
                    SET data = %s, version = %s, updated_at = %s
                    WHERE id = %s AND version = %s
                """, (json.dumps(data, default=str), data.get('version', 0),
                      datetime.now(timezone.utc), record_id, expected_version))
                swapped = cursor.rowcount == 1
            self._commit_unless_in_transaction()
            return swapped

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from PostgreSQL"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"SELECT data FROM {table} WHERE id = %s", (record_id,))
                row = cursor.fetchone()
            return dict(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"SELECT data FROM {table} ORDER BY created_at")
                return [dict(row['data']) for row in cursor.fetchall()]

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"SELECT 1 FROM {table} WHERE id = %s LIMIT 1", (record_id,))
                return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using JSONB containment"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT data FROM {table}
                    WHERE data @> %s::jsonb
                    ORDER BY created_at
                """, (json.dumps(filters, default=str),))
                return [dict(row['data']) for row in cursor.fetchall()]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"DELETE FROM {table}")
            self._commit_unless_in_transaction()

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            self._connection.commit()

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            self._connection.rollback()
            self._tables.clear()

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a database URL

    Supported forms: ``memory://``, ``sqlite://`` (in-memory SQLite),
    ``sqlite:///path/to/file.db`` and ``postgresql://...``.
    """
    if not database_url or database_url.startswith("memory://"):
        logger.info("Using in-memory storage")
        return InMemoryStorage()

    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else ""
        logger.info("Using SQLite storage at %s", path or ":memory:")
        return SQLiteStorage(path or ":memory:")

    if database_url.startswith(("postgresql://", "postgres://")):
        logger.info("Using PostgreSQL storage")
        return PostgreSQLStorage(database_url)

    raise ValueError(f"Unsupported database URL: {database_url}")
