import logging
import random
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).parent.parent.parent / "sql"
SCHEMA_SCRIPT = "schema"


class DatabaseConnectionManager:
    """
    Keeps one DuckDB database handle per path for the lifetime of the process.

    Handles are opened lazily on first use and the schema is applied at that
    point. Callers never share the root handle directly: each one works on
    its own cursor, which DuckDB backs with the same database instance.
    Write transactions are serialized per path by a lock that is held only
    for the duration of a single transaction.
    """

    def __init__(self):
        self.connections: Dict[str, duckdb.DuckDBPyConnection] = {}
        self.write_locks: Dict[str, threading.Lock] = {}
        self.lock = threading.Lock()

    def get_connection(
        self, db_path: str, max_retries: int = 3
    ) -> duckdb.DuckDBPyConnection:
        """
        Get the process-wide handle for a database, opening it if needed.

        Safe to call repeatedly; only the first call per path connects.

        Args:
            db_path: Path to DuckDB file, or ":memory:"
            max_retries: Maximum number of connection attempts

        Returns:
            Root DuckDB connection for the path
        """
        with self.lock:
            conn = self.connections.get(db_path)
            if conn is not None:
                return conn

            conn = self._connect(db_path, max_retries)
            _apply_schema(conn)
            self.connections[db_path] = conn
            self.write_locks[db_path] = threading.Lock()
            logger.info(f"Database ready: {db_path}")
            return conn

    def _connect(self, db_path: str, max_retries: int) -> duckdb.DuckDBPyConnection:
        for attempt in range(max_retries):
            try:
                conn = duckdb.connect(db_path)
                logger.debug(f"Opened connection to {db_path}")
                return conn

            except duckdb.IOException as e:
                if "Conflicting lock" in str(e) and attempt < max_retries - 1:
                    # Exponential backoff with jitter
                    wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                    logger.warning(
                        f"Database locked, retrying in {wait_time:.2f}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                    continue
                else:
                    logger.error(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    )
                    raise

        raise duckdb.IOException(
            f"Could not establish database connection after {max_retries} attempts"
        )

    def cursor(self, db_path: str) -> duckdb.DuckDBPyConnection:
        """Open a cursor on the shared handle for one unit of work."""
        return self.get_connection(db_path).cursor()

    def write_lock(self, db_path: str) -> threading.Lock:
        self.get_connection(db_path)
        return self.write_locks[db_path]

    def close(self, db_path: str):
        """Close and forget the handle for a path."""
        with self.lock:
            conn = self.connections.pop(db_path, None)
            self.write_locks.pop(db_path, None)
        if conn is not None:
            try:
                conn.close()
                logger.debug(f"Closed database handle for {db_path}")
            except duckdb.Error as e:
                logger.warning(f"Error closing database handle: {e}")

    def close_all(self):
        for db_path in list(self.connections):
            self.close(db_path)


def _apply_schema(conn: duckdb.DuckDBPyConnection):
    script_path = SQL_DIR / f"{SCHEMA_SCRIPT}.sql"
    with open(script_path, "r") as f:
        conn.execute(f.read())


# Global connection manager instance
_connection_manager = DatabaseConnectionManager()


def get_connection_manager() -> DatabaseConnectionManager:
    return _connection_manager


def close_database(db_path: str):
    """Drop the process-wide handle for a database path."""
    _connection_manager.close(db_path)


class ElectionDatabase:
    """
    Unit-of-work wrapper around the shared DuckDB handle.

    Cheap to construct: one instance per request. The cursor is opened
    on demand and closed with the instance.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database access.

        Args:
            db_path: Path to DuckDB file. If None, uses an in-memory database.
        """
        self.db_path = db_path or ":memory:"
        self.sql_dir = SQL_DIR
        self._conn = None  # Will be created on-demand

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create a cursor on-demand."""
        if self._conn is None:
            self._conn = _connection_manager.cursor(self.db_path)
        return self._conn

    def execute_script(self, script_name: str) -> pd.DataFrame:
        """
        Execute a SQL script file.

        Args:
            script_name: Name of SQL file (without .sql extension)

        Returns:
            DataFrame with the result of the script's final statement
        """
        script_path = self.sql_dir / f"{script_name}.sql"

        if not script_path.exists():
            raise FileNotFoundError(f"SQL script not found: {script_path}")

        with open(script_path, "r") as f:
            sql = f.read()

        try:
            result = self.conn.execute(sql).fetchdf()
            logger.info(f"Executed script: {script_name}")
            return result
        except duckdb.Error as e:
            logger.error(f"Error executing script {script_name}: {e}")
            raise

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> pd.DataFrame:
        """
        Execute a SQL query and return results as DataFrame.

        Args:
            sql: SQL query to execute
            params: Positional parameters bound to ``?`` placeholders
        """
        return self.conn.execute(sql, list(params or [])).fetchdf()

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None):
        """Execute a statement and return the cursor for fetching."""
        return self.conn.execute(sql, list(params or []))

    @contextmanager
    def transaction(self):
        """
        Run a block of writes as one transaction.

        Commits on success; any exception rolls the transaction back and
        propagates unchanged.

        Yields:
            The cursor the transaction is bound to
        """
        with _connection_manager.write_lock(self.db_path):
            conn = self.conn
            conn.begin()
            try:
                yield conn
            except BaseException:
                try:
                    conn.rollback()
                except duckdb.Error as e:
                    logger.warning(f"Rollback failed: {e}")
                raise
            else:
                conn.commit()

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        sql = "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?"
        result = self.conn.execute(sql, [table_name]).fetchone()
        return result[0] > 0

    def get_table_info(self, table_name: str) -> pd.DataFrame:
        """Get column information for a table."""
        return self.conn.execute(f"DESCRIBE {table_name}").fetchdf()

    def close(self):
        """Close the cursor. The shared handle stays open."""
        if self._conn:
            try:
                self._conn.close()
                logger.debug(f"Closed cursor on {self.db_path}")
            except duckdb.Error as e:
                logger.warning(f"Error closing database cursor: {e}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
