"""Table installer - CREATE/ALTER TABLE derived from a schema."""

import math
import re
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from atomic_tables.errors import ErrorKind
from atomic_tables.models.columns import ColumnType
from atomic_tables.models.result import Result
from atomic_tables.models.schema import TableSchema, is_identifier
from atomic_tables.repositories.base import ReadShape, SqlExecutor
from atomic_tables.settings import TEXT_COLUMN_WIDTH, VERSION_TABLE

COLUMN_SQL = {
    ColumnType.INTEGER: "BIGINT",
    ColumnType.FLOAT: "DOUBLE",
    ColumnType.TEXT: f"VARCHAR({TEXT_COLUMN_WIDTH})",
}

# Declared but never converted: stored as given and left nullable
PASS_THROUGH_SQL = {
    ColumnType.BOOLEAN: "BOOLEAN",
    ColumnType.NULL: "VARCHAR",
    ColumnType.PERCENT: "VARCHAR",
}

VERSION_DDL = f"""
CREATE TABLE IF NOT EXISTS {VERSION_TABLE} (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL,
    installed_at TIMESTAMP NOT NULL
)
"""

# Type and suffix fragments for ALTER TABLE: no statement separators or comments
_FRAGMENT = re.compile(r"^[A-Za-z0-9_ (),.'-]*$")


class AlterAction(str, Enum):
    ADD = "ADD"
    DROP = "DROP"
    ALTER = "ALTER"
    MODIFY = "MODIFY"


def sql_literal(value: Any) -> str:
    """Render a schema default as a SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value) if math.isfinite(value) else "0.0"
    return "'" + str(value).replace("'", "''") + "'"


class TableInstaller:
    """Creates and alters the table described by a schema.

    Runs rarely (install/upgrade time) and reports through Result like the
    repository does.
    """

    def __init__(self, schema: TableSchema, executor: SqlExecutor):
        self.schema = schema
        self.executor = executor

    def _invalid(self, message: str) -> Result:
        logger.warning("{}: {}", self.schema.table_name, message)
        return Result.failure(ErrorKind.INVALID_ARGUMENT, message)

    def _db_error(self, message: str | None) -> Result:
        message = message or "unknown database error"
        logger.error("{}: {}", self.schema.table_name, message)
        return Result.failure(ErrorKind.DATABASE, message)

    @property
    def sequence_name(self) -> str:
        return f"{self.schema.table_name}_{self.schema.primary_key}_seq"

    @property
    def auto_increment(self) -> bool:
        return self.schema.columns[self.schema.primary_key] is ColumnType.INTEGER

    def table_exists(self, table: str | None = None) -> bool:
        return self.executor.table_exists(table or self.schema.table_name)

    def installed(self) -> bool:
        """Check if the table was ever installed."""
        return self.table_exists()

    def column_definitions(self) -> list[str]:
        """One fragment per declared column plus the primary key constraint."""
        q = self.executor.quote_identifier
        pk = self.schema.primary_key
        defs = []
        for column, column_type in self.schema.columns.items():
            sql_type = COLUMN_SQL.get(column_type) or PASS_THROUGH_SQL[column_type]
            fragment = f"{q(column)} {sql_type}"
            if column == pk and self.auto_increment:
                fragment += f" DEFAULT nextval('{self.sequence_name}')"
            elif column in self.schema.defaults:
                fragment += f" DEFAULT {sql_literal(self.schema.defaults[column])}"
            if column_type.supported or column == pk:
                fragment += " NOT NULL"
            defs.append(fragment)
        defs.append(f"PRIMARY KEY ({q(pk)})")
        return defs

    def create_table(self, column_defs: Sequence[str] | None = None) -> Result:
        """Create the table unless it exists, then record the schema version.

        ``column_defs`` are trusted SQL fragments from the table definition;
        when omitted they are derived from the declared column types.
        """
        if self.table_exists():
            return Result.success(True)

        defs = list(column_defs or [])
        if not defs:
            if self.auto_increment and not self.executor.execute_ddl(
                f"CREATE SEQUENCE IF NOT EXISTS {self.sequence_name}"
            ):
                return self._db_error(self.executor.last_error())
            defs = self.column_definitions()

        sql = f"CREATE TABLE {self.executor.quote_identifier(self.schema.table_name)} ({', '.join(defs)})"
        if not self.executor.execute_ddl(sql):
            return self._db_error(self.executor.last_error())
        if not self._record_version():
            return self._db_error(self.executor.last_error())

        logger.info("Table {} created (version {})", self.schema.table_name, self.schema.version)
        return Result.success(True)

    def _record_version(self) -> bool:
        return self.executor.execute_ddl(VERSION_DDL) and self.executor.execute_ddl(
            f"INSERT OR REPLACE INTO {VERSION_TABLE} (table_name, version, installed_at) VALUES (?, ?, ?)",
            [self.schema.table_name, self.schema.version, datetime.now()],
        )

    def installed_version(self) -> str | None:
        """Version recorded by the last create_table, if any."""
        if not self.executor.table_exists(VERSION_TABLE):
            return None
        return self.executor.execute_read(
            f"SELECT version FROM {VERSION_TABLE} WHERE table_name = ?",
            [self.schema.table_name],
            ReadShape.SCALAR,
        )

    def needs_upgrade(self) -> bool:
        return self.installed_version() != self.schema.version

    def alter_table(
        self,
        action: AlterAction | str,
        column_name: str = "",
        data_type: str = "",
        suffix: str = "",
        suffix_column: str = "",
    ) -> Result:
        """ADD a missing column, or DROP/ALTER/MODIFY an existing one.

        Example: ``alter_table("ADD", "rating", "DOUBLE", "DEFAULT 0")``.
        """
        if isinstance(action, str) and not isinstance(action, AlterAction):
            action = action.strip().upper()
        try:
            action = AlterAction(action)
        except ValueError:
            return self._invalid(f"Invalid ALTER TABLE action: {action!r}")

        if not is_identifier(column_name):
            return self._invalid(f"column_name must be a plain identifier, got {column_name!r}")
        fragments = [f for f in (data_type, suffix, suffix_column) if f]
        for fragment in fragments:
            if not isinstance(fragment, str) or not _FRAGMENT.match(fragment) or "--" in fragment:
                return self._invalid(f"Invalid ALTER TABLE fragment: {fragment!r}")

        existing = self.executor.column_names(self.schema.table_name)
        if self.executor.last_error():
            return self._db_error(self.executor.last_error())
        if not existing:
            return self._invalid(f"Table {self.schema.table_name} does not exist")

        q = self.executor.quote_identifier
        prefix = f"ALTER TABLE {q(self.schema.table_name)}"
        tail = " ".join(fragments)
        present = column_name in existing

        if action is AlterAction.ADD and not present and data_type:
            sql = f"{prefix} ADD COLUMN {q(column_name)} {tail}"
        elif action is AlterAction.DROP and present:
            sql = f"{prefix} DROP COLUMN {q(column_name)}"
        elif action is AlterAction.ALTER and present and tail:
            sql = f"{prefix} ALTER COLUMN {q(column_name)} {tail}"
        elif action is AlterAction.MODIFY and present and data_type:
            sql = f"{prefix} ALTER COLUMN {q(column_name)} TYPE {tail}"
        else:
            return self._invalid("Invalid column or operation for ALTER TABLE")

        if not self.executor.execute_ddl(sql):
            return self._db_error(self.executor.last_error())
        logger.info("Table {} altered: {} {}", self.schema.table_name, action.value, column_name)
        return Result.success(True)
