"""Table schema declaration."""

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from atomic_tables.models.columns import ColumnType

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_identifier(name: Any) -> bool:
    """Check that a name is a plain SQL identifier."""
    return isinstance(name, str) and bool(IDENTIFIER.match(name))


class TableSchema(BaseModel):
    """Immutable description of a logical table.

    Built once by the concrete table definition and shared read-only by the
    repository, the coercer and the installer; ``columns`` and ``defaults``
    are read-only mappings. An empty ``cache_group`` turns caching off for
    the table.
    """

    table_name: str
    columns: Mapping[str, ColumnType]
    primary_key: str = "id"
    defaults: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    version: str = "1.0.0"
    cache_group: str = ""

    class Config:
        frozen = True

    @field_validator("table_name")
    @classmethod
    def check_table_name(cls, value: str) -> str:
        if not is_identifier(value):
            raise ValueError(f"table_name must be a plain identifier, got {value!r}")
        return value

    @field_validator("columns", mode="before")
    @classmethod
    def parse_columns(cls, value: Any) -> dict[str, ColumnType]:
        if not isinstance(value, Mapping) or not value:
            raise ValueError("columns must be a non-empty mapping of name -> type")
        parsed = {}
        for name, column_type in value.items():
            if not is_identifier(name):
                raise ValueError(f"column name must be a plain identifier, got {name!r}")
            parsed[name] = ColumnType.parse(column_type)
        return parsed

    @field_validator("columns", "defaults")
    @classmethod
    def read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def check_keys(self) -> "TableSchema":
        if self.primary_key not in self.columns:
            raise ValueError(f"primary_key {self.primary_key!r} is not a declared column")
        unknown = set(self.defaults) - set(self.columns)
        if unknown:
            raise ValueError(f"defaults reference undeclared columns: {sorted(unknown)}")
        return self

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    @property
    def caching_enabled(self) -> bool:
        return bool(self.cache_group)

    def has_column(self, name: Any) -> bool:
        """Whitelist check for caller-supplied column names."""
        return isinstance(name, str) and name in self.columns

    def column_type(self, name: str) -> ColumnType | None:
        return self.columns.get(name)
