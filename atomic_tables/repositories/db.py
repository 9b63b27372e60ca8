"""DuckDB connection management and SQL executor."""

import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from atomic_tables.repositories.base import ReadShape, SqlExecutor, WriteKind
from atomic_tables.settings import DB_PATH


class Database:
    """One DuckDB database shared by all threads, one cursor per thread."""

    def __init__(self, path: str | Path = DB_PATH, read_only: bool = False):
        self.path = str(path)
        self.read_only = read_only
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._lock = threading.Lock()
        self._local = threading.local()

    def exists(self) -> bool:
        """Check if database file exists."""
        return self.path == ":memory:" or Path(self.path).exists()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._conn is None:
                if not self.exists():
                    logger.warning("DB not found: {}. Creating empty DB.", self.path)
                self._conn = duckdb.connect(self.path, read_only=self.read_only)
                logger.debug("DB connected: {} (read_only={})", self.path, self.read_only)
            return self._conn

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local cursor."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            root = self._connect()
            with self._lock:
                conn = root.cursor()
            self._local.conn = conn
        return conn

    def close(self) -> None:
        """Close the database and drop every thread's cursor."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("DB connection closed")
            self._local = threading.local()


class DuckDBExecutor(SqlExecutor):
    """SqlExecutor over a Database.

    ``duckdb.Error`` never escapes: it is recorded as this thread's
    ``last_error`` and the call returns None (False for DDL).
    """

    def __init__(self, database: Database | None = None):
        self.db = database or Database()
        self._local = threading.local()

    def last_error(self) -> str | None:
        return getattr(self._local, "error", None)

    def insert_id(self) -> int | None:
        return getattr(self._local, "insert_id", None)

    def _reset(self) -> None:
        self._local.error = None

    def _fail(self, exc: Exception, sql: str) -> None:
        self._local.error = str(exc)
        logger.debug("SQL failed: {} | {}", exc, sql)

    def execute_read(self, sql: str, params: Sequence[Any] | None = None, shape: ReadShape = ReadShape.ROW) -> Any:
        self._reset()
        try:
            cursor = self.db.cursor().execute(sql, list(params or []))
            if shape is ReadShape.SCALAR:
                row = cursor.fetchone()
                return None if row is None else row[0]
            names = [d[0] for d in cursor.description]
            if shape is ReadShape.ROWS:
                return [dict(zip(names, r)) for r in cursor.fetchall()]
            row = cursor.fetchone()
            return None if row is None else dict(zip(names, row))
        except duckdb.Error as exc:
            self._fail(exc, sql)
            return None

    def execute_write(
        self,
        kind: WriteKind,
        table: str,
        data: Mapping[str, Any] | None = None,
        predicate: Mapping[str, Any] | None = None,
        returning: str | None = None,
    ) -> int | None:
        self._reset()
        self._local.insert_id = None
        try:
            sql, params = self._build_write(WriteKind(kind), table, data or {}, predicate or {}, returning)
        except ValueError as exc:
            self._fail(exc, str(kind))
            return None

        try:
            cursor = self.db.cursor().execute(sql, params)
            row = cursor.fetchone()
            rest = cursor.fetchall() if returning else []
        except duckdb.Error as exc:
            self._fail(exc, sql)
            return None

        if returning:
            if row is None:
                return 0
            self._local.insert_id = row[0]
            return 1 + len(rest)
        return int(row[0]) if row else 0

    def _build_write(
        self,
        kind: WriteKind,
        table: str,
        data: Mapping[str, Any],
        predicate: Mapping[str, Any],
        returning: str | None,
    ) -> tuple[str, list]:
        q = self.quote_identifier
        params: list = []

        if kind is WriteKind.INSERT:
            if data:
                columns = ", ".join(q(c) for c in data)
                placeholders = ", ".join("?" for _ in data)
                sql = f"INSERT INTO {q(table)} ({columns}) VALUES ({placeholders})"
                params.extend(data.values())
            else:
                sql = f"INSERT INTO {q(table)} DEFAULT VALUES"
            if returning:
                sql += f" RETURNING {q(returning)}"
            return sql, params

        if not predicate:
            raise ValueError(f"{kind.value} requires a predicate")
        where = " AND ".join(f"{q(c)} = ?" for c in predicate)

        if kind is WriteKind.UPDATE:
            if not data:
                raise ValueError("update requires data")
            assignments = ", ".join(f"{q(c)} = ?" for c in data)
            params.extend(data.values())
            params.extend(predicate.values())
            return f"UPDATE {q(table)} SET {assignments} WHERE {where}", params

        params.extend(predicate.values())
        return f"DELETE FROM {q(table)} WHERE {where}", params

    def execute_ddl(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        self._reset()
        try:
            self.db.cursor().execute(sql, list(params or []))
        except duckdb.Error as exc:
            self._fail(exc, sql)
            return False
        return True

    def table_exists(self, table: str) -> bool:
        count = self.execute_read(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table],
            ReadShape.SCALAR,
        )
        return bool(count)

    def column_names(self, table: str) -> list[str]:
        rows = self.execute_read(
            """
            SELECT column_name FROM information_schema.columns
            WHERE table_name = ?
            ORDER BY ordinal_position
            """,
            [table],
            ReadShape.ROWS,
        )
        return [r["column_name"] for r in rows or []]
