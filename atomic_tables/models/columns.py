"""Declared column types."""

from enum import Enum


class ColumnType(str, Enum):
    """Closed set of column type tags.

    Only INTEGER, FLOAT and TEXT are converted. BOOLEAN, NULL and PERCENT are
    accepted in declarations but pass through every conversion unchanged.
    """

    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    # Unsupported: declared but never converted
    BOOLEAN = "boolean"
    NULL = "null"
    PERCENT = "percent"

    @property
    def supported(self) -> bool:
        return self in SUPPORTED_TYPES

    @classmethod
    def parse(cls, value: "str | ColumnType") -> "ColumnType":
        """Accept enum values, names or printf-style tokens (``%d``, ``%s``...)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown column type: {value!r}")
        token = value.strip()
        if token in FORMAT_TOKENS:
            return FORMAT_TOKENS[token]
        try:
            return cls(token.lower())
        except ValueError:
            raise ValueError(f"Unknown column type: {value!r}") from None


SUPPORTED_TYPES = frozenset({ColumnType.INTEGER, ColumnType.FLOAT, ColumnType.TEXT})

FORMAT_TOKENS = {
    "%d": ColumnType.INTEGER,
    "%f": ColumnType.FLOAT,
    "%s": ColumnType.TEXT,
    "%b": ColumnType.BOOLEAN,
    "%n": ColumnType.NULL,
    "%%": ColumnType.PERCENT,
}
