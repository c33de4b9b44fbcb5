"""Dynamic field value helpers.

A dynamic field stores its value in exactly one typed column chosen by
``field_type``. These helpers move values in and out of that shape.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from utils.time_utils import isoformat, parse_datetime

FIELD_TYPES = ("text", "number", "boolean", "date", "json")

VALUE_COLUMNS = {
    "text": "field_value_text",
    "number": "field_value_number",
    "boolean": "field_value_boolean",
    "date": "field_value_date",
    "json": "field_value_json",
}


def parse_primitive(text: str | None):
    """Parse a primitive value that arrived as text (e.g. a query param).

    - None/"" -> None
    - booleans: true/false (case-insensitive)
    - ints, then floats
    - otherwise the original string
    """

    if text is None:
        return None

    s = str(text).strip()
    if s == "":
        return None

    low = s.lower()
    if low == "true":
        return True
    if low == "false":
        return False

    if s.isdigit() or (s.startswith("-") and s[1:].isdigit()):
        return int(s)

    try:
        return float(s)
    except ValueError:
        return s


def parse_bool_param(text: str | None, default: bool = False) -> bool:
    if text is None or str(text).strip() == "":
        return default
    return str(text).strip().lower() in {"1", "true", "yes", "y", "on"}


def infer_field_type(value: Any) -> str:
    """Pick a field type for a bare value."""

    # bool before number: bool is an int subclass.
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, (dict, list)):
        return "json"
    return "text"


def coerce_field_value(field_type: str, value: Any) -> Any:
    """Convert `value` to the Python type stored in the column for `field_type`.

    Raises:
        ValueError: unknown field type or a value that cannot be converted.
    """

    if field_type not in VALUE_COLUMNS:
        raise ValueError(
            f"Unknown field_type '{field_type}'. Expected one of: {', '.join(FIELD_TYPES)}"
        )
    if value is None:
        return None

    if field_type == "text":
        return value if isinstance(value, str) else str(value)
    if field_type == "number":
        if isinstance(value, bool):
            raise ValueError("boolean is not a number")
        try:
            return float(value)
        except TypeError:
            raise ValueError(f"Cannot interpret {type(value).__name__} as number") from None
    if field_type == "boolean":
        if isinstance(value, bool):
            return value
        parsed = parse_primitive(str(value))
        if not isinstance(parsed, bool):
            raise ValueError(f"Cannot interpret {value!r} as boolean")
        return parsed
    if field_type == "date":
        return parse_datetime(value)
    # json
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def typed_columns(field_type: str, value: Any) -> dict[str, Any]:
    """Column assignments for a dynamic field row: the typed column gets the
    value, every other value column is cleared."""

    coerced = coerce_field_value(field_type, value)
    cols = {col: None for col in VALUE_COLUMNS.values()}
    cols[VALUE_COLUMNS[field_type]] = coerced
    return cols


def read_typed_value(row) -> Any:
    """Return the JSON-ready value held by a dynamic field row."""

    col = VALUE_COLUMNS.get(row.field_type or "text", "field_value_text")
    value = getattr(row, col)
    if row.field_type == "date":
        return isoformat(value)
    if row.field_type == "number" and value is not None:
        # 3.0 -> 3 keeps integer-valued quantities readable.
        return int(value) if float(value).is_integer() else float(value)
    return value
