"""Repositories package - data access layer."""

from atomic_tables.repositories.base import MISS, CacheStore, ReadShape, SqlExecutor, WriteKind
from atomic_tables.repositories.cache import DuckDBCacheStore, MemoryCacheStore
from atomic_tables.repositories.db import Database, DuckDBExecutor
from atomic_tables.repositories.ddl import AlterAction, TableInstaller
from atomic_tables.repositories.table import TableRepository

__all__ = [
    # Contracts
    "SqlExecutor",
    "CacheStore",
    "ReadShape",
    "WriteKind",
    "MISS",
    # DB
    "Database",
    "DuckDBExecutor",
    # Cache
    "MemoryCacheStore",
    "DuckDBCacheStore",
    # Tables
    "TableRepository",
    "TableInstaller",
    "AlterAction",
]
