from __future__ import annotations

import pytest

from api.services.errors import UnknownTableError
from api.services.table_registry import (
    TABLES,
    describe,
    get_table,
    missing_required_fields,
    table_names,
    unknown_fields,
)


def test_registry_covers_six_tables():
    assert set(table_names()) == {
        "core_organizations",
        "core_entities",
        "core_dynamic_data",
        "core_relationships",
        "universal_transactions",
        "universal_transaction_lines",
    }


def test_only_organizations_skip_the_org_filter():
    unscoped = [name for name, s in TABLES.items() if not s.has_org_filter]
    assert unscoped == ["core_organizations"]


def test_entity_required_fields():
    assert get_table("core_entities").required_fields == ("entity_type", "entity_name", "smart_code")


def test_unknown_table_lists_valid_tables():
    with pytest.raises(UnknownTableError) as exc:
        get_table("core_nope")
    assert "core_entities" in exc.value.details["valid_tables"]
    assert exc.value.status_code == 400


def test_missing_table_name():
    with pytest.raises(UnknownTableError):
        get_table(None)


def test_missing_required_fields_treats_blank_as_missing():
    schema = get_table("core_entities")
    missing = missing_required_fields(schema, {"entity_type": "CUSTOMER", "entity_name": "  "})
    assert missing == ["entity_name", "smart_code"]


def test_unknown_fields_ignores_aliases_and_auto_fields():
    schema = get_table("core_dynamic_data")
    data = {"entity_id": "e", "field_name": "f", "field_value": 1, "id": "x", "colour": "red"}
    assert unknown_fields(schema, data) == ["colour"]


def test_has_status():
    assert get_table("core_entities").has_status
    assert not get_table("core_dynamic_data").has_status


def test_describe_all_and_one():
    everything = describe()
    assert everything["table_count"] == 6
    assert "batch_create" in everything["endpoints"]
    assert everything["tables"]["core_relationships"]["has_org_filter"] is True

    one = describe("universal_transactions")
    assert one["table"] == "universal_transactions"
    assert one["schema"]["primary_key"] == "id"
    assert "created_at" in one["schema"]["auto_fields"]
