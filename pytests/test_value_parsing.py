from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from utils.time_utils import parse_datetime
from utils.value_parsing import (
    coerce_field_value,
    infer_field_type,
    parse_bool_param,
    parse_primitive,
    read_typed_value,
    typed_columns,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, None),
        ("", None),
        ("true", True),
        ("FALSE", False),
        ("42", 42),
        ("-7", -7),
        ("3.5", 3.5),
        ("abc", "abc"),
    ],
)
def test_parse_primitive(raw, expected):
    assert parse_primitive(raw) == expected


def test_parse_bool_param():
    assert parse_bool_param("yes") is True
    assert parse_bool_param("0") is False
    assert parse_bool_param(None) is False
    assert parse_bool_param("", default=True) is True


@pytest.mark.parametrize(
    "value,expected",
    [(True, "boolean"), (3, "number"), (2.5, "number"), ({"a": 1}, "json"), ([1], "json"), ("x", "text")],
)
def test_infer_field_type(value, expected):
    assert infer_field_type(value) == expected


def test_coerce_rejects_unknown_type_and_bad_values():
    with pytest.raises(ValueError):
        coerce_field_value("money", 1)
    with pytest.raises(ValueError):
        coerce_field_value("number", True)
    with pytest.raises(ValueError):
        coerce_field_value("number", {"kg": 1})
    with pytest.raises(ValueError):
        coerce_field_value("number", [1, 2])
    with pytest.raises(ValueError):
        coerce_field_value("boolean", "maybe")
    with pytest.raises(ValueError):
        coerce_field_value("date", "31/12/2024")


def test_json_field_accepts_encoded_strings():
    assert coerce_field_value("json", '{"a": [1, 2]}') == {"a": [1, 2]}
    assert coerce_field_value("json", "not json") == "not json"


def test_typed_columns_clears_other_columns():
    cols = typed_columns("date", "2024-03-01")
    assert cols["field_value_date"] == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert cols["field_value_text"] is None
    assert len(cols) == 5


def test_read_typed_value():
    row = SimpleNamespace(field_type="number", field_value_number=3.0)
    assert read_typed_value(row) == 3
    row = SimpleNamespace(field_type="date", field_value_date=datetime(2024, 3, 1))
    assert read_typed_value(row) == "2024-03-01T00:00:00+00:00"


def test_parse_datetime_accepts_z_suffix():
    assert parse_datetime("2024-01-15T09:30:00Z") == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
    assert parse_datetime("") is None
