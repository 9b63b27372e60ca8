"""Table repository - validated, cached CRUD over one declared schema."""

from collections.abc import Mapping, Sequence
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from typing import Any

from loguru import logger

from atomic_tables.errors import ErrorKind
from atomic_tables.models.columns import ColumnType
from atomic_tables.models.result import NOT_FOUND, Result
from atomic_tables.models.schema import TableSchema
from atomic_tables.repositories.base import MISS, CacheStore, ReadShape, SqlExecutor, WriteKind
from atomic_tables.repositories.ddl import AlterAction, TableInstaller
from atomic_tables.services import coercion
from atomic_tables.services.cache import CacheCoordinator, KeyHook, fingerprint

_SCALARS = (str, bytes, int, float, Decimal)


class TableRepository:
    """CRUD facade for a single table.

    Every caller-supplied column name is checked against ``schema.columns``
    before it reaches SQL; values are always bound. Reads go through the
    epoch-keyed cache, writes replace the epoch once the executor confirms
    them. Operations return a Result instead of raising.

    A concrete table can subclass and set ``schema`` as a class attribute,
    or pass one to the constructor.
    """

    schema: TableSchema | None = None

    def __init__(
        self,
        executor: SqlExecutor,
        cache: CacheStore | None = None,
        schema: TableSchema | None = None,
        *,
        escape_hook: coercion.Override | None = None,
        sanitize_hook: coercion.Override | None = None,
        cache_key_hook: KeyHook | None = None,
    ):
        self.schema = schema or self.schema
        if self.schema is None:
            raise TypeError(f"{self.__class__.__name__} requires a TableSchema")
        self.executor = executor
        self.escape_hook = escape_hook
        self.sanitize_hook = sanitize_hook
        self.cache = CacheCoordinator(self.schema.table_name, self.schema.cache_group, cache, cache_key_hook)
        logger.debug("{} initialized for {}", self.__class__.__name__, self.schema.table_name)

    @property
    def table_name(self) -> str:
        return self.schema.table_name

    @property
    def primary_key(self) -> str:
        return self.schema.primary_key

    # Result helpers

    def _invalid(self, message: str) -> Result:
        logger.warning("{}: {}", self.table_name, message)
        return Result.failure(ErrorKind.INVALID_ARGUMENT, message)

    def _db_error(self, message: str | None) -> Result:
        message = message or "unknown database error"
        logger.error("{}: {}", self.table_name, message)
        return Result.failure(ErrorKind.DATABASE, message)

    # Validation

    def _column_error(self, column: Any, name: str = "column") -> str | None:
        if not isinstance(column, str) or not column:
            return f"{name} must be a non-empty string"
        if not self.schema.has_column(column):
            return f"{name} must be a valid column"
        return None

    def _q(self, name: str) -> str:
        return self.executor.quote_identifier(name)

    def _select_list(self) -> str:
        return ", ".join(self._q(c) for c in self.schema.columns)

    def _bind(self, column: str, value: Any) -> Any:
        return coercion.bind_value(self.schema.columns[column], value)

    # Read path

    def _cached_read(self, sql: str, params: list, shape: ReadShape) -> tuple[Any, str | None]:
        """Cache lookup, falling back to the executor; returns (raw value, error)."""
        key = self.cache.make_cache_key(fingerprint(sql, params))
        value = self.cache.read(key)
        if value is not MISS:
            return value, None

        value = self.executor.execute_read(sql, params, shape)
        error = self.executor.last_error()
        if error:
            return None, error
        self.cache.write(key, value)
        return value, None

    def _row_where(self, column: str, value: Any) -> Result:
        sql = f"SELECT {self._select_list()} FROM {self._q(self.table_name)} WHERE {self._q(column)} = ? LIMIT 1"
        raw, error = self._cached_read(sql, [self._bind(column, value)], ReadShape.ROW)
        if error:
            return self._db_error(error)
        if raw is None:
            return Result.success(NOT_FOUND)
        return Result.success(coercion.coerce_row(self.schema, raw, self.escape_hook))

    def _value_where(self, column: str, where_column: str, value: Any) -> Result:
        sql = (
            f"SELECT {self._q(column)} FROM {self._q(self.table_name)} "
            f"WHERE {self._q(where_column)} = ? LIMIT 1"
        )
        raw, error = self._cached_read(sql, [self._bind(where_column, value)], ReadShape.ROW)
        if error:
            return self._db_error(error)
        if raw is None:
            return Result.success(NOT_FOUND)
        return Result.success(coercion.coerce_column(self.schema, column, raw.get(column), self.escape_hook))

    def get(self, row_id: Any) -> Result:
        """Row by primary key, or NOT_FOUND."""
        row_id = coercion.to_positive_int(row_id)
        if row_id is None:
            return self._invalid("row_id must be a positive integer")
        return self._row_where(self.primary_key, row_id)

    def get_by(self, column: str, row_id: Any) -> Result:
        """Row by a numeric value in ``column``, or NOT_FOUND."""
        error = self._column_error(column)
        if error:
            return self._invalid(error)
        row_id = coercion.to_positive_int(row_id)
        if row_id is None:
            return self._invalid("row_id must be a positive integer")
        return self._row_where(column, row_id)

    def get_column(self, column: str, row_id: Any) -> Result:
        """Single column value by primary key, or NOT_FOUND."""
        error = self._column_error(column)
        if error:
            return self._invalid(error)
        row_id = coercion.to_positive_int(row_id)
        if row_id is None:
            return self._invalid("row_id must be a positive integer")
        return self._value_where(column, self.primary_key, row_id)

    def get_column_by(self, column: str, where_column: str, where_value: Any) -> Result:
        """Single column value of the first row where ``where_column = where_value``."""
        error = self._column_error(column) or self._column_error(where_column, "where_column")
        if error:
            return self._invalid(error)
        if isinstance(where_value, bool) or not isinstance(where_value, _SCALARS):
            return self._invalid("where_value must be a string or number")
        return self._value_where(column, where_column, where_value)

    def exists(self, value: Any = "", field: str = "id") -> bool:
        """Whether a row has ``field = value``; False for undeclared fields or on error."""
        if not self.schema.has_column(field):
            return False
        result = self.get_column_by(self.primary_key, field, value)
        return result.found and bool(result.value)

    def find(self, where: Mapping[str, Any] | None = None, order_by: str = "", limit: int | None = None) -> Result:
        """All rows matching an equality conjunction, coerced."""
        where = dict(where or {})
        for column in where:
            error = self._column_error(column, "where")
            if error:
                return self._invalid(error)
        if order_by:
            error = self._column_error(order_by, "order_by")
            if error:
                return self._invalid(error)
        if limit is not None:
            limit = coercion.to_positive_int(limit)
            if limit is None:
                return self._invalid("limit must be a positive integer")

        sql = f"SELECT {self._select_list()} FROM {self._q(self.table_name)}"
        params = [self._bind(c, v) for c, v in where.items()]
        if where:
            sql += " WHERE " + " AND ".join(f"{self._q(c)} = ?" for c in where)
        if order_by:
            sql += f" ORDER BY {self._q(order_by)}"
        if limit is not None:
            sql += f" LIMIT {limit}"

        rows, error = self._cached_read(sql, params, ReadShape.ROWS)
        if error:
            return self._db_error(error)
        return Result.success([coercion.coerce_row(self.schema, r, self.escape_hook) for r in rows or []])

    # Write path

    @staticmethod
    def _as_mapping(data: Any) -> Mapping[str, Any] | None:
        if isinstance(data, Mapping):
            return data
        if hasattr(data, "model_dump"):
            return data.model_dump()
        if is_dataclass(data) and not isinstance(data, type):
            return asdict(data)
        if hasattr(data, "__dict__"):
            return vars(data)
        return None

    def _prepare(self, data: Any, sanitized: bool) -> tuple[dict[str, Any] | None, str | None]:
        """Payload for a write; returns (payload, error message)."""
        if sanitized:
            if not isinstance(data, Mapping):
                return None, "sanitized data must be a mapping"
            unknown = [str(c) for c in data if not self.schema.has_column(c)]
            if unknown:
                return None, f"data references unknown columns: {', '.join(unknown)}"
            return dict(data), None

        mapping = self._as_mapping(data)
        if mapping is None:
            return None, "data must be a mapping or an object"
        return coercion.sanitize_row(self.schema, mapping, self.sanitize_hook), None

    def _backfill(self, data: dict[str, Any]) -> dict[str, Any]:
        for column, value in self.schema.defaults.items():
            if data.get(column) is None:
                data[column] = value
        return data

    def insert(self, data: Any, sanitized: bool = False) -> Result:
        """Insert a row and return its new primary key.

        With ``sanitized=True`` the mapping is trusted and used as-is (its keys
        must still be declared columns); otherwise every declared column is
        sanitized by type and undeclared keys are dropped.
        """
        payload, error = self._prepare(data, sanitized)
        if error:
            return self._invalid(error)
        payload = self._backfill(payload)

        affected = self.executor.execute_write(WriteKind.INSERT, self.table_name, payload, returning=self.primary_key)
        error = self.executor.last_error()
        if error or not affected:
            return self._db_error(error or "insert affected no rows")
        self.cache.bump_epoch()

        new_id = self.executor.insert_id()
        if self.schema.columns[self.primary_key] is ColumnType.INTEGER:
            new_id = coercion.to_positive_int(new_id)
        if new_id is None:
            return self._db_error("insert returned no primary key")
        logger.debug("{}: inserted {}={}", self.table_name, self.primary_key, new_id)
        return Result.success(new_id)

    def insert_raw(self, data: Any) -> Result:
        return self.insert(data, sanitized=False)

    def insert_sanitized(self, data: Mapping[str, Any]) -> Result:
        return self.insert(data, sanitized=True)

    def update(self, row_id: Any, data: Any, where: str = "", sanitized: bool = False) -> Result:
        """Update rows where ``where`` (default: primary key) equals ``row_id``.

        Returns the affected row count; 0 means nothing matched. The primary
        key is never written through this path.
        """
        row_id = coercion.to_positive_int(row_id)
        if row_id is None:
            return self._invalid("row_id must be a positive integer")
        if where:
            error = self._column_error(where, "where")
            if error:
                return self._invalid(error)
        else:
            where = self.primary_key

        payload, error = self._prepare(data, sanitized)
        if error:
            return self._invalid(error)
        payload.pop(self.primary_key, None)
        if not payload:
            return self._invalid("data has no columns to update")

        affected = self.executor.execute_write(
            WriteKind.UPDATE, self.table_name, payload, {where: self._bind(where, row_id)}
        )
        error = self.executor.last_error()
        if error or affected is None:
            return self._db_error(error)
        self.cache.bump_epoch()
        logger.debug("{}: updated {} row(s) where {}={}", self.table_name, affected, where, row_id)
        return Result.success(affected)

    def update_raw(self, row_id: Any, data: Any, where: str = "") -> Result:
        return self.update(row_id, data, where, sanitized=False)

    def update_sanitized(self, row_id: Any, data: Mapping[str, Any], where: str = "") -> Result:
        return self.update(row_id, data, where, sanitized=True)

    def delete(self, row_id: Any) -> Result:
        """Delete by primary key; returns the affected row count."""
        row_id = coercion.to_positive_int(row_id)
        if row_id is None:
            return self._invalid("row_id must be a positive integer")

        affected = self.executor.execute_write(
            WriteKind.DELETE, self.table_name, predicate={self.primary_key: self._bind(self.primary_key, row_id)}
        )
        error = self.executor.last_error()
        if error or affected is None:
            return self._db_error(error)
        self.cache.bump_epoch()
        logger.debug("{}: deleted {} row(s) with {}={}", self.table_name, affected, self.primary_key, row_id)
        return Result.success(affected)

    # DDL

    @property
    def installer(self) -> TableInstaller:
        return TableInstaller(self.schema, self.executor)

    def installed(self) -> bool:
        return self.installer.installed()

    def create_table(self, column_defs: Sequence[str] | None = None) -> Result:
        return self.installer.create_table(column_defs)

    def alter_table(self, action: AlterAction | str, *args: str) -> Result:
        """See TableInstaller.alter_table; cached reads are invalidated on success."""
        result = self.installer.alter_table(action, *args)
        if result.ok:
            self.cache.bump_epoch()
        return result
