"""Column type coercion and sanitization.

Pure functions mapping a declared ColumnType and a raw value to the
type-correct, escaped value. ``sanitize_for_write`` is the inbound path,
``coerce`` the outbound one; both agree on every supported type so that
reading back a written value is a no-op.
"""

import math
import re
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

import nh3

from atomic_tables.models.columns import ColumnType
from atomic_tables.models.schema import TableSchema
from atomic_tables.settings import ALLOWED_ATTRIBUTES, ALLOWED_TAGS

# (column, value, row) -> replacement or None to fall through
Override = Callable[[str, Any, Mapping[str, Any]], Any]

_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def _numeric_prefix(text: str) -> float | None:
    match = _NUMERIC_PREFIX.match(text)
    if not match:
        return None
    return float(match.group(0))


def to_int(value: Any) -> int:
    """Parse or truncate to int; anything unparseable becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if not math.isfinite(value):
            return 0
        return int(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if not match:
            return 0
        token = match.group(0)
        # Plain digits keep full precision; only fractions and exponents go through float
        if "." not in token and match.group(3) is None:
            return int(token)
        number = float(token)
        return int(number) if math.isfinite(number) else 0
    return 0


def to_float(value: Any) -> float:
    """Parse to float; unparseable or non-finite values become 0.0."""
    if isinstance(value, (bool, int, Decimal)):
        return float(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else 0.0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        number = _numeric_prefix(value)
        if number is None or not math.isfinite(number):
            return 0.0
        return number
    return 0.0


def clean_markup(value: Any) -> str:
    """Strip markup down to the allowed tags and attributes."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    return nh3.clean(str(value), tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def to_positive_int(value: Any) -> int | None:
    """Row identifier check: an int > 0, or None."""
    if value is None or isinstance(value, bool):
        return None
    number = to_int(value)
    return number if number > 0 else None


_CONVERTERS: dict[ColumnType, Callable[[Any], Any]] = {
    ColumnType.INTEGER: to_int,
    ColumnType.FLOAT: to_float,
    ColumnType.TEXT: clean_markup,
}


def _convert(column_type: ColumnType, value: Any) -> Any:
    if value is None:
        return None
    converter = _CONVERTERS.get(column_type)
    if converter is None:
        # Known gap: BOOLEAN, NULL and PERCENT were never converted; values pass through as-is.
        return value
    return converter(value)


def coerce(column_type: ColumnType, value: Any) -> Any:
    """Outbound conversion for a value read from storage."""
    return _convert(column_type, value)


def sanitize_for_write(column_type: ColumnType, value: Any) -> Any:
    """Inbound conversion for a caller-supplied value."""
    return _convert(column_type, value)


def bind_value(column_type: ColumnType, value: Any) -> Any:
    """Conversion for predicate parameters; text is not run through the sanitizer."""
    if value is None or column_type is not ColumnType.TEXT:
        return _convert(column_type, value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def _apply(
    schema: TableSchema,
    data: Mapping[str, Any],
    convert: Callable[[ColumnType, Any], Any],
    override: Override | None,
) -> dict[str, Any]:
    result = {}
    for column, column_type in schema.columns.items():
        if column not in data:
            continue
        value = data[column]
        if override is not None:
            replaced = override(column, value, data)
            if replaced is not None:
                result[column] = replaced
                continue
        result[column] = convert(column_type, value)
    return result


def coerce_row(schema: TableSchema, row: Mapping[str, Any], override: Override | None = None) -> dict[str, Any]:
    """Coerce every declared column present in ``row``; other keys are dropped."""
    return _apply(schema, row, coerce, override)


def sanitize_row(schema: TableSchema, data: Mapping[str, Any], override: Override | None = None) -> dict[str, Any]:
    """Sanitize every declared column present in ``data``; other keys are dropped."""
    return _apply(schema, data, sanitize_for_write, override)


def coerce_column(
    schema: TableSchema, column: str, value: Any, override: Override | None = None
) -> Any:
    """Coerce a single scalar read from ``column``."""
    column_type = schema.column_type(column)
    if column_type is None:
        return None
    if override is not None:
        replaced = override(column, value, {column: value})
        if replaced is not None:
            return replaced
    return coerce(column_type, value)
