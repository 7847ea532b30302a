"""SQLite database backend shared by the transaction store, cursor store and
job queue.

One connection is shared across threads behind a re-entrant lock; every
public operation is a single short transaction, which gives the atomic
single-record update semantics the relay relies on.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..errors import StorageError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class DatabaseConfig:
    """Database configuration."""

    database_path: str = "relaybridge.db"
    connection_timeout: float = 30.0
    synchronous: str = "NORMAL"  # OFF, NORMAL, FULL
    journal_mode: str = "WAL"


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS bridge_transactions (
        id TEXT PRIMARY KEY,
        user TEXT NOT NULL,
        network TEXT NOT NULL,
        type TEXT NOT NULL,
        amount TEXT NOT NULL,
        tx_hash TEXT,
        tx_hash_originator TEXT,
        relay_task_id TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at REAL NOT NULL,
        updated_at REAL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_bridge_tx_user ON bridge_transactions(user)",
    "CREATE INDEX IF NOT EXISTS idx_bridge_tx_hash ON bridge_transactions(tx_hash)",
    """
    CREATE INDEX IF NOT EXISTS idx_bridge_tx_originator
        ON bridge_transactions(tx_hash_originator)
    """,
    "CREATE INDEX IF NOT EXISTS idx_bridge_tx_task ON bridge_transactions(relay_task_id)",
    "CREATE INDEX IF NOT EXISTS idx_bridge_tx_status ON bridge_transactions(status)",
    """
    CREATE TABLE IF NOT EXISTS event_cursors (
        network TEXT PRIMARY KEY,
        block_number INTEGER NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        queue TEXT NOT NULL,
        name TEXT NOT NULL,
        payload TEXT NOT NULL,
        state TEXT NOT NULL,
        attempts_made INTEGER NOT NULL DEFAULT 0,
        max_attempts INTEGER NOT NULL,
        backoff TEXT NOT NULL,
        run_at REAL NOT NULL,
        last_error TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_jobs_due ON jobs(queue, state, run_at)",
]


class SQLiteBackend:
    """SQLite database backend."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        if self.config.database_path != ":memory:":
            Path(self.config.database_path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect(self) -> None:
        """Open the connection and create tables if needed."""
        with self._lock:
            if self._connection is not None:
                return

            try:
                self._connection = sqlite3.connect(
                    self.config.database_path,
                    timeout=self.config.connection_timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                self._connection.row_factory = sqlite3.Row
                self._connection.execute(
                    f"PRAGMA journal_mode = {self.config.journal_mode}"
                )
                self._connection.execute(
                    f"PRAGMA synchronous = {self.config.synchronous}"
                )
                for statement in SCHEMA:
                    self._connection.execute(statement)
            except sqlite3.Error as e:
                self._connection = None
                raise StorageError(f"Failed to connect to database: {e}", cause=e)

            logger.info(f"Connected to SQLite database: {self.config.database_path}")

    def disconnect(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
            except sqlite3.Error as e:
                logger.error(f"Error closing database connection: {e}")
            finally:
                self._connection = None

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self.connect()
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``."""
        with self._lock:
            connection = self._require_connection()
            try:
                connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(f"Failed to begin transaction: {e}", cause=e)
            try:
                yield connection
            except sqlite3.Error as e:
                connection.execute("ROLLBACK")
                raise StorageError(f"Statement failed: {e}", cause=e)
            except BaseException:
                connection.execute("ROLLBACK")
                raise
            else:
                try:
                    connection.execute("COMMIT")
                except sqlite3.Error as e:
                    connection.execute("ROLLBACK")
                    raise StorageError(f"Failed to commit transaction: {e}", cause=e)

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            connection = self._require_connection()
            try:
                rows = connection.execute(query, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}", cause=e)
            return [dict(row) for row in rows]

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute a single statement in its own transaction; return rowcount."""
        with self.transaction() as connection:
            return connection.execute(query, params).rowcount
