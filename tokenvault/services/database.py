"""SQLite database setup and connection for the token store.

A single connection is opened once at startup and shared by the project
and token services. Every use of the connection goes through one lock, so
writes never interleave and reads never observe a half-applied write.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any

from tokenvault.exceptions import StoreError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    port         INTEGER NOT NULL DEFAULT 0,
    api_base_url TEXT,
    description  TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_projects_port ON projects(port);

CREATE TABLE IF NOT EXISTS tokens (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    token_value TEXT NOT NULL,
    token_type  TEXT NOT NULL DEFAULT 'Bearer',
    expires_at  TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tokens_project_id ON tokens(project_id);
"""

CURRENT_SCHEMA_VERSION = 1


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Translate sqlite3 failures into StoreError."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Database error while %s: %s", action, e)
        raise StoreError(f"Database error while {action}: {e}") from e


class Database:
    """SQLite database wrapper owned by the token store.

    Usage:
        db = Database(path)
        db.connect()
        db.init_schema()
        ...
        db.close()
    """

    # Seconds sqlite waits on a locked file before failing
    BUSY_TIMEOUT = 5.0

    def __init__(self, path: Path | str) -> None:
        """Initialize the database wrapper.

        Args:
            path: Database file path, or ":memory:" for a private in-memory db.
        """
        self.path = path if path == MEMORY_PATH else Path(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Path | str) -> "Database":
        """Create, connect and initialize a database in one step.

        Args:
            path: Database file path.

        Returns:
            Ready-to-use Database.
        """
        db = cls(path)
        db.connect()
        db.init_schema()
        return db

    def connect(self) -> None:
        """Open the database connection, creating the file if needed."""
        if self._conn is not None:
            return

        with _store_errors("opening the database"):
            if isinstance(self.path, Path):
                try:
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise StoreError(f"Could not create {self.path.parent}: {e}") from e
            # Autocommit mode: transactions are opened explicitly in transaction()
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.BUSY_TIMEOUT,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = sqlite3.Row
            self._conn = conn

        logger.debug("Database opened at %s", self.path)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Database is not connected")
        return self._conn

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def init_schema(self) -> None:
        """Create all tables if they don't exist and record schema version."""
        with self.transaction() as conn:
            for statement in _SCHEMA.split(";"):
                if statement.strip():
                    conn.execute(statement)
            row = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()
            if row[0] == 0:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (CURRENT_SCHEMA_VERSION,),
                )

    @property
    def schema_version(self) -> int:
        row = self.fetchone("SELECT version FROM schema_version")
        return row[0] if row else 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements as one atomic transaction.

        The lock is held for the whole block. ``BEGIN IMMEDIATE`` takes the
        sqlite write lock up front so another process cannot slip in between
        the statements. Any exception, including a failed COMMIT, rolls the
        transaction back so the connection is never left mid-transaction.

        Yields:
            The shared connection.

        Raises:
            StoreError: If sqlite fails at any point.
        """
        with self._lock, _store_errors("running a transaction"):
            conn = self.conn
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    # Keep the original error if the rollback fails too
                    with suppress(sqlite3.Error):
                        conn.execute("ROLLBACK")
                raise

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a single write statement in its own transaction.

        Args:
            sql: SQL statement.
            params: Positional parameters.

        Returns:
            Number of affected rows.
        """
        with self.transaction() as conn:
            return conn.execute(sql, params).rowcount

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Run a query and return its first row."""
        with self._lock, _store_errors("reading"):
            return self.conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Run a query and return all rows."""
        with self._lock, _store_errors("reading"):
            return self.conn.execute(sql, params).fetchall()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database closed")
