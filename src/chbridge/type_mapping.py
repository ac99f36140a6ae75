"""Translation between ClickHouse column types and flat-file text."""

import json
import re
from typing import Any

from chbridge.errors import ValidationError

FLAT_FILE_TYPE = "text"
TEXT_COLUMN_TYPE = "String"

_WRAPPER_PATTERN = re.compile(r"^(Nullable|LowCardinality)\((.*)\)$")


def unwrap_type(native_type: str) -> str:
    """Strip Nullable(...) and LowCardinality(...) wrappers from a type name.

    Examples:
        >>> unwrap_type("LowCardinality(Nullable(String))")
        'String'
        >>> unwrap_type("Array(Nullable(Int32))")
        'Array(Nullable(Int32))'
    """
    current = native_type.strip()
    while match := _WRAPPER_PATTERN.match(current):
        current = match.group(2).strip()
    return current


def is_nullable(native_type: str) -> bool:
    """Check whether a column type admits NULL at the top level."""
    current = native_type.strip()
    while match := _WRAPPER_PATTERN.match(current):
        if match.group(1) == "Nullable":
            return True
        current = match.group(2).strip()
    return False


def to_flat_type(native_type: str) -> str:
    """Map a ClickHouse type to the flat-file type, which is always text.

    Raises:
        ValidationError: If the type name is empty
    """
    if not native_type or not native_type.strip():
        raise ValidationError("Column type cannot be empty")
    return FLAT_FILE_TYPE


def to_native_type(flat_type: str = FLAT_FILE_TYPE) -> str:
    """Map a flat-file type to the ClickHouse column type used for imports."""
    if flat_type != FLAT_FILE_TYPE:
        raise ValidationError(f"Unsupported flat-file type: {flat_type}")
    return TEXT_COLUMN_TYPE


def render_value(value: Any) -> str:
    """Render a database value as flat-file text.

    NULL becomes the empty string; the original type is not recoverable.

    Examples:
        >>> render_value(None)
        ''
        >>> render_value(True)
        'true'
        >>> render_value([1, 2])
        '[1, 2]'
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, default=render_value)
    return str(value)


def quote_literal(text: str) -> str:
    """Quote text as a ClickHouse string literal.

    Single quotes are doubled. Backslashes are doubled as well since
    ClickHouse reads them as escapes inside string literals.

    Examples:
        >>> quote_literal("O'Brien")
        "'O''Brien'"
    """
    return "'" + text.replace("\\", "\\\\").replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """Quote a table or column name with backticks.

    Examples:
        >>> quote_identifier("order")
        '`order`'
    """
    return "`" + name.replace("`", "``") + "`"
