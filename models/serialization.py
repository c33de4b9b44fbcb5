from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import inspect as sa_inspect

from utils.time_utils import isoformat, parse_datetime
from utils.value_parsing import parse_bool_param


def column_attr_map(model) -> dict[str, str]:
    """Map column name -> mapped attribute key (e.g. "metadata" -> "metadata_")."""

    mapper = sa_inspect(model)
    out: dict[str, str] = {}
    for col in mapper.columns:
        out[col.name] = mapper.get_property_by_column(col).key
    return out


def row_to_dict(row) -> dict[str, Any]:
    """JSON-ready dict of a model row, keyed by column name."""

    out: dict[str, Any] = {}
    for col_name, attr in column_attr_map(type(row)).items():
        value = getattr(row, attr)
        if isinstance(value, (datetime, date)):
            value = isoformat(value)
        out[col_name] = value
    return out


def assign_columns(row, data: dict[str, Any]) -> None:
    """Set attributes on `row` from a column-keyed dict; unknown keys are ignored."""

    attrs = column_attr_map(type(row))
    for key, value in data.items():
        attr = attrs.get(key)
        if attr is not None:
            setattr(row, attr, value)


def coerce_column_values(model, data: dict[str, Any]) -> dict[str, Any]:
    """Convert JSON-ish input to the Python types the model's columns expect.

    Raises:
        ValueError: a value that cannot be converted (bad date, non-numeric amount).
    """

    columns = {col.name: col for col in sa_inspect(model).columns}
    out: dict[str, Any] = {}
    for key, value in data.items():
        col = columns.get(key)
        if col is None or value is None:
            out[key] = value
            continue

        python_type = _python_type(col)
        if python_type in (float, int) and isinstance(value, (dict, list)):
            raise ValueError(f"{key}: expected a number, got {type(value).__name__}")
        if python_type is datetime:
            if isinstance(value, (dict, list)):
                raise ValueError(f"{key}: expected a date, got {type(value).__name__}")
            value = parse_datetime(value)
        elif python_type is float and not isinstance(value, float):
            value = float(value)
        elif python_type is int and not isinstance(value, int):
            value = int(value)
        elif python_type is bool and not isinstance(value, bool):
            value = parse_bool_param(str(value))
        out[key] = value
    return out


def _python_type(col):
    try:
        return col.type.python_type
    except NotImplementedError:
        return None
