"""
SQLite database shared by the credential store and the catalog.

Schema:
- api_keys:   named bearer secrets, soft-revocable
- artifacts:  one row per logical artifact name (UNIQUE name)
- versions:   one row per upload (UNIQUE artifact_id, version)

Each thread gets its own connection. Connections run in autocommit mode so
callers open explicit transactions with ``transaction()``.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

# Milliseconds a writer waits on a locked database before failing
DEFAULT_BUSY_TIMEOUT_MS = 5000

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS api_keys (
        id TEXT PRIMARY KEY,
        key_name TEXT NOT NULL UNIQUE,
        key_value TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        last_used_at TEXT,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS artifacts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS versions (
        id TEXT PRIMARY KEY,
        artifact_id TEXT NOT NULL REFERENCES artifacts(id) ON DELETE CASCADE,
        version TEXT NOT NULL,
        storage_backend TEXT NOT NULL,
        storage_ref TEXT NOT NULL,
        size_bytes INTEGER NOT NULL,
        content_type TEXT NOT NULL,
        file_name TEXT NOT NULL,
        uploaded_at TEXT NOT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        is_latest INTEGER NOT NULL DEFAULT 0,
        uploaded_by TEXT,
        UNIQUE (artifact_id, version)
    )
    """,
)

INDEXES = [
    ("idx_api_keys_active_value", "api_keys(key_value, is_active)"),
    ("idx_artifacts_updated_at", "artifacts(updated_at)"),
    ("idx_versions_artifact", "versions(artifact_id)"),
    ("idx_versions_uploaded_at", "versions(uploaded_at)"),
]


class Database:
    """
    Thread-local SQLite connections to one database file.

    Write serialization is left to SQLite: ``transaction(immediate=True)``
    takes the database write lock up front, so concurrent writers queue
    behind each other for up to the busy timeout.
    """

    def __init__(
        self,
        path: Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ):
        """
        Initialize the database.

        Args:
            path: Path to the SQLite file (parent directories are created)
            busy_timeout_ms: Lock wait before a write fails with "database is locked"
        """
        self._path = Path(path)
        self._busy_timeout_ms = busy_timeout_ms
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def connection(self) -> sqlite3.Connection:
        """Get thread-local SQLite connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                str(self._path),
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            self._execute_pragmas(conn)
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _execute_pragmas(self, conn: sqlite3.Connection) -> None:
        """Configure SQLite pragmas for concurrent operation."""
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")

    def _init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        conn = self.connection()
        with self.transaction(immediate=True):
            for statement in SCHEMA:
                conn.execute(statement)
            for idx_name, target in INDEXES:
                conn.execute(f"CREATE INDEX IF NOT EXISTS {idx_name} ON {target}")
        logger.debug("Database schema ready", extra={"path": str(self._path)})

    @contextmanager
    def transaction(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside a single transaction.

        Commits when the block exits normally and rolls back on any exception,
        which is re-raised.

        Args:
            immediate: Acquire the write lock at BEGIN instead of first write
        """
        conn = self.connection()
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            self.connection().execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            logger.warning("Database ping failed", exc_info=True)
            return False

    def close(self) -> None:
        """Close every connection opened by this instance."""
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error:
                    logger.debug("Error closing connection", exc_info=True)
            self._connections.clear()
        self._local = threading.local()
