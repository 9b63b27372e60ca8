"""Collaborator contracts: SQL executor and cache store."""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any


class ReadShape(str, Enum):
    """What ``execute_read`` returns."""

    ROW = "row"
    ROWS = "rows"
    SCALAR = "scalar"


class WriteKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class _Miss:
    """Cache miss marker (a cached None is a hit)."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


class SqlExecutor:
    """Base executor. Failures never raise: calls return None and ``last_error`` is set.

    Identifiers go through ``quote_identifier``; values are always bound.
    """

    def execute_read(self, sql: str, params: Sequence[Any] | None = None, shape: ReadShape = ReadShape.ROW) -> Any:
        raise NotImplementedError

    def execute_write(
        self,
        kind: WriteKind,
        table: str,
        data: Mapping[str, Any] | None = None,
        predicate: Mapping[str, Any] | None = None,
        returning: str | None = None,
    ) -> int | None:
        """Run an INSERT/UPDATE/DELETE and return the affected row count."""
        raise NotImplementedError

    def insert_id(self) -> int | None:
        """Value of ``returning`` for the last insert on this thread."""
        raise NotImplementedError

    def last_error(self) -> str | None:
        raise NotImplementedError

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def execute_ddl(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        raise NotImplementedError

    def table_exists(self, table: str) -> bool:
        raise NotImplementedError

    def column_names(self, table: str) -> list[str]:
        raise NotImplementedError


class CacheStore:
    """Base cache store. ``add`` must not overwrite an existing key."""

    def get(self, key: str, group: str) -> Any:
        """Return the cached value or MISS."""
        raise NotImplementedError

    def add(self, key: str, value: Any, group: str) -> bool:
        raise NotImplementedError

    def get_epoch(self, name: str) -> str | None:
        raise NotImplementedError

    def set_epoch(self, name: str, value: str) -> None:
        raise NotImplementedError

    def add_epoch(self, name: str, value: str) -> str:
        """Store ``value`` unless an epoch exists; return the epoch in force."""
        raise NotImplementedError
