"""Models package - schema, column types and results."""

from atomic_tables.models.base import BaseEntity
from atomic_tables.models.columns import ColumnType
from atomic_tables.models.result import NOT_FOUND, Failure, Result
from atomic_tables.models.schema import TableSchema, is_identifier

__all__ = [
    "BaseEntity",
    "ColumnType",
    "TableSchema",
    "is_identifier",
    "Result",
    "Failure",
    "NOT_FOUND",
]
