"""
Database connection management for SafetyTrack.

This module provides the Database class wrapping SQLite with a small
connection pool, WAL mode, and a busy timeout. Every sqlite3 failure,
including a busy timeout, surfaces as StorageError.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from safetytrack.config.schema import DatabaseConfig
from safetytrack.exceptions import StorageError


class Database:
    """
    SQLite database connection manager with connection pooling.

    Attributes:
        path: Path to the SQLite database file, or ":memory:".
        pool_size: Maximum number of idle connections kept in the pool.
        timeout: Busy timeout in seconds.

    Example:
        Basic usage::

            db = Database("safetytrack.db")
            db.initialize()

            with db.transaction() as conn:
                conn.execute("UPDATE incidents SET ...")

    Note:
        An in-memory database lives in a single connection. Callers
        must not nest connection() or transaction() blocks, or the
        inner block would open a second, empty database.
    """

    def __init__(
        self,
        path: str | Path = "safetytrack.db",
        pool_size: int = 5,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the database manager.

        Args:
            path: Path to the SQLite database file. Use ":memory:" for
                an in-memory database (useful for testing).
            pool_size: Maximum number of connections to keep in the pool.
            timeout: Busy timeout in seconds.
        """
        self.path = Path(path) if path != ":memory:" else path
        self.pool_size = pool_size
        self.timeout = timeout

        self._pool: list[sqlite3.Connection] = []
        self._pool_lock = threading.Lock()
        self._initialized = False

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "Database":
        """Create a Database from a DatabaseConfig."""
        return cls(
            path=config.path,
            pool_size=config.pool_size,
            timeout=config.timeout_seconds,
        )

    @property
    def initialized(self) -> bool:
        """Whether initialize() has completed."""
        return self._initialized

    def initialize(self) -> None:
        """
        Create the schema if it does not exist.

        Raises:
            StorageError: If initialization fails.
        """
        # Deferred to keep schema definitions free of connection code
        from safetytrack.storage.schema import SCHEMA_SQL

        try:
            with self.connection() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")
                conn.executescript(SCHEMA_SQL)
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                details={"path": str(self.path)},
            ) from e

        self._initialized = True

    def _create_connection(self) -> sqlite3.Connection:
        """Open a new connection with row dicts and foreign keys enabled."""
        try:
            conn = sqlite3.connect(
                str(self.path) if isinstance(self.path, Path) else self.path,
                timeout=self.timeout,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            return conn
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to create database connection: {e}",
                details={"path": str(self.path)},
            ) from e

    def _get_connection(self) -> sqlite3.Connection:
        with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        return self._create_connection()

    def _return_connection(self, conn: sqlite3.Connection) -> None:
        with self._pool_lock:
            if len(self._pool) < self.pool_size:
                self._pool.append(conn)
                return
        conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Borrow a connection from the pool.

        The transaction is rolled back if the block raises.

        Yields:
            A database connection.
        """
        conn = self._get_connection()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            self._return_connection(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Borrow a connection and commit when the block exits cleanly.

        Yields:
            A database connection.

        Raises:
            StorageError: If a sqlite3 error occurs inside the block.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Transaction failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._return_connection(conn)

    def execute(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as dictionaries.

        Args:
            sql: Parameterized SQL.
            params: Positional or named parameters.

        Returns:
            List of result rows as dictionaries.

        Raises:
            StorageError: If query execution fails.
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(sql, params or ())
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(
                f"Query execution failed: {e}",
                details={"sql": sql[:100]},
            ) from e

    def execute_one(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Run a query and return the first row, or None."""
        results = self.execute(sql, params)
        return results[0] if results else None

    def execute_write(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] | None = None,
    ) -> int:
        """
        Run an INSERT, UPDATE or DELETE and return the affected row count.

        Raises:
            StorageError: If query execution fails.
        """
        with self.transaction() as conn:
            cursor = conn.execute(sql, params or ())
            return cursor.rowcount

    def health_check(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            self.execute("SELECT 1")
        except StorageError:
            return False
        return True

    def get_schema_version(self) -> int:
        """Return the applied schema version, or 0 if not initialized."""
        try:
            result = self.execute_one(
                "SELECT MAX(version) AS version FROM schema_version"
            )
        except StorageError:
            return 0
        return result["version"] if result and result["version"] else 0

    def close(self) -> None:
        """Close all pooled connections."""
        with self._pool_lock:
            for conn in self._pool:
                conn.close()
            self._pool.clear()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Database(path={self.path!r}, pool_size={self.pool_size})"
