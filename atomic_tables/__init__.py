"""Schema-driven, cached and validated access to custom tables."""

from atomic_tables.errors import DatabaseError, ErrorKind, InvalidArgument, TableError
from atomic_tables.models import NOT_FOUND, ColumnType, Failure, Result, TableSchema

# repositories before services: services.cache imports repositories.base
from atomic_tables.repositories import (
    AlterAction,
    CacheStore,
    Database,
    DuckDBCacheStore,
    DuckDBExecutor,
    MemoryCacheStore,
    SqlExecutor,
    TableInstaller,
    TableRepository,
)
from atomic_tables.services import CacheCoordinator, coercion

__version__ = "1.0.0"

__all__ = [
    "ColumnType",
    "TableSchema",
    "Result",
    "Failure",
    "NOT_FOUND",
    "ErrorKind",
    "TableError",
    "InvalidArgument",
    "DatabaseError",
    "SqlExecutor",
    "CacheStore",
    "Database",
    "DuckDBExecutor",
    "MemoryCacheStore",
    "DuckDBCacheStore",
    "TableRepository",
    "TableInstaller",
    "AlterAction",
    "CacheCoordinator",
    "coercion",
]
