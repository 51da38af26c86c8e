"""
Database Connection Management

A single-connection SQLite manager with explicit transaction control.
The migration engine is synchronous and runs one connection per target
database, so there is no pooling here.
"""

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .config import DEFAULT_CONNECTION_TIMEOUT
from .exceptions import DatabaseConnectionError, SchemaError, TransactionError

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    SQLite connection manager used by the migration engine.

    Features:
    - Manual transaction control (autocommit connection, explicit BEGIN)
    - Savepoints for nested transactions
    - Retry with backoff when the database is locked
    - Error translation into DatabaseConnectionError / SchemaError
    """

    SLOW_QUERY_THRESHOLD_MS = 100

    @staticmethod
    def _is_memory_database_url(db_path: str) -> bool:
        """Check if the database path refers to an in-memory database."""
        if not db_path:
            return False

        normalized_path = db_path.strip().lower()
        return (
            normalized_path == ":memory:"
            or normalized_path == "sqlite:///:memory:"
            or normalized_path == "sqlite://:memory:"
        )

    def __init__(
        self, db_path: str, connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT
    ) -> None:
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file or :memory:
            connection_timeout: Connection timeout in seconds
        Raises:
            DatabaseConnectionError: If connection fails
        """
        if not db_path or not str(db_path).strip():
            raise DatabaseConnectionError("Database path cannot be empty")

        self.is_memory_db = self._is_memory_database_url(str(db_path))
        if self.is_memory_db:
            self.db_path_str = ":memory:"
            self.db_path = None
        else:
            self.db_path = Path(str(db_path).removeprefix("sqlite://"))
            self.db_path_str = str(self.db_path)
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DatabaseConnectionError(
                    f"Cannot access database path: {e}"
                ) from e

        self.connection_timeout = connection_timeout
        self.transaction_level = 0
        self._savepoints: list[str] = []
        self._conn: sqlite3.Connection | None = self._create_connection()
        logger.info(f"Database connection established: {self.db_path_str}")

    def _create_connection(self) -> sqlite3.Connection:
        """Create the SQLite connection in autocommit mode."""
        try:
            conn = sqlite3.connect(
                self.db_path_str,
                timeout=self.connection_timeout,
                isolation_level=None,  # Autocommit mode for manual transaction control
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute(f"PRAGMA busy_timeout = {int(self.connection_timeout * 1000)}")
            return conn
        except sqlite3.Error as e:
            logger.error(f"Failed to create database connection: {e}")
            raise DatabaseConnectionError(f"Connection creation failed: {e}") from e

    def get_connection(self) -> sqlite3.Connection:
        """Return the underlying sqlite3 connection."""
        if self._conn is None:
            raise DatabaseConnectionError("Connection is closed")
        return self._conn

    @contextmanager
    def transaction(self, savepoint_name: str | None = None) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        Args:
            savepoint_name: Optional savepoint name for nested transactions
        Usage:
            with db.transaction() as tx:
                tx.execute("INSERT INTO ...", params)
        Raises:
            TransactionError: If the body or the commit fails; the
                transaction is rolled back first
        """
        conn = self.get_connection()
        is_nested = self.transaction_level > 0
        savepoint_name = (
            savepoint_name or f"sp_{self.transaction_level}_{int(time.time() * 1000)}"
        )

        if is_nested:
            try:
                conn.execute(f"SAVEPOINT {savepoint_name}")
                self.transaction_level += 1
                self._savepoints.append(savepoint_name)
                logger.debug(f"Started savepoint: {savepoint_name} (L{self.transaction_level})")

                yield conn

                conn.execute(f"RELEASE SAVEPOINT {savepoint_name}")
                self._savepoints.remove(savepoint_name)
                self.transaction_level -= 1
            except Exception as e:
                try:
                    conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
                    conn.execute(f"RELEASE SAVEPOINT {savepoint_name}")
                except sqlite3.Error as rollback_error:
                    logger.error(f"Failed rollback savepoint {savepoint_name}: {rollback_error}")
                if savepoint_name in self._savepoints:
                    self._savepoints.remove(savepoint_name)
                self.transaction_level -= 1
                logger.error(f"Transaction rolled back to savepoint {savepoint_name}: {e}")
                raise TransactionError(f"Nested transaction failed: {e}") from e
        else:
            try:
                conn.execute("BEGIN IMMEDIATE")
                self.transaction_level = 1
                logger.debug("Started new transaction")

                yield conn

                conn.execute("COMMIT")
                logger.debug("Transaction committed successfully")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                    logger.debug("Transaction rolled back successfully")
                except sqlite3.Error as rollback_error:
                    logger.error(f"Failed to rollback transaction: {rollback_error}")
                logger.error(f"Transaction failed and rolled back: {e}")
                raise TransactionError(f"Transaction failed: {e}") from e
            finally:
                self.transaction_level = 0
                self._savepoints.clear()

    def _handle_operational_error(
        self, e: sqlite3.OperationalError, attempt: int, max_retries: int
    ) -> bool:
        """Handle operational errors with retry logic. Returns True if should retry."""
        error_msg = str(e).lower()
        if "database is locked" in error_msg or "database is busy" in error_msg:
            if attempt < max_retries:
                wait_time = 0.1 * (2**attempt)
                logger.warning(f"DB busy, retrying in {wait_time}s (attempt {attempt + 1})")
                time.sleep(wait_time)
                return True
            raise DatabaseConnectionError(f"Database locked after retries: {e}") from e
        if "no such table" in error_msg or "no such column" in error_msg:
            logger.debug(f"Schema error: {e}")
            raise SchemaError(f"Schema error: {e}", log_level=logging.DEBUG) from e
        logger.error(f"Operational error in query execution: {e}")
        raise DatabaseConnectionError(f"Query execution failed: {e}") from e

    def execute(
        self, query: str, params: tuple[Any, ...] | None = None, max_retries: int = 3
    ) -> sqlite3.Cursor:
        """
        Execute SQL query with parameters and error handling.

        Args:
            query: SQL query string
            params: Query parameters tuple
            max_retries: Maximum number of retries for transient errors
        Returns:
            Cursor object with results
        Raises:
            DatabaseConnectionError: If query execution fails
        """
        conn = self.get_connection()
        start_time = time.time()

        for attempt in range(max_retries + 1):
            try:
                cursor = conn.execute(query, params) if params else conn.execute(query)
                execution_time = (time.time() - start_time) * 1000
                if execution_time > self.SLOW_QUERY_THRESHOLD_MS:
                    logger.warning(f"Slow query ({execution_time:.2f}ms): {query[:100]}...")
                else:
                    logger.debug(f"Executed query ({execution_time:.2f}ms): {query[:100]}...")
                return cursor
            except sqlite3.OperationalError as e:
                if self._handle_operational_error(e, attempt, max_retries):
                    continue
            except sqlite3.IntegrityError as e:
                raise DatabaseConnectionError(f"Integrity constraint violation: {e}") from e
            except sqlite3.Error as e:
                logger.error(f"Query: {query}")
                raise DatabaseConnectionError(f"Database error: {e}") from e

        raise DatabaseConnectionError("Maximum retries exceeded")

    def fetch_one(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> sqlite3.Row | None:
        """Execute query and fetch one row."""
        return self.execute(query, params).fetchone()

    def fetch_all(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[sqlite3.Row]:
        """Execute query and fetch all rows."""
        return self.execute(query, params).fetchall()

    def table_exists(self, table_name: str) -> bool:
        result = self.fetch_one(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug(f"Closed database connection: {self.db_path_str}")

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
