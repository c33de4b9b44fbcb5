from __future__ import annotations

from datetime import timedelta

import pytest

from api.auth import issue_token
from models.dynamic_data import DynamicData

URL = "/api/v2/entities"


def _payload(**overrides):
    body = {
        "entity_type": "product",
        "entity_name": "Espresso Beans 1kg",
        "entity_code": "PROD-001",
        "smart_code": "HERA.INV.PRODUCT.ENTITY.ITEM.v1",
        "dynamic": {
            "price": {"value": 24.5, "smart_code": "HERA.INV.PRODUCT.FIELD.PRICE.v1"},
            "organic": {"field_type": "boolean", "value": "true", "smart_code": "HERA.INV.PRODUCT.FIELD.FLAG.v1"},
            "origin": {"field_value_text": "Colombia", "smart_code": "HERA.INV.PRODUCT.FIELD.TEXT.v1"},
        },
    }
    body.update(overrides)
    return body


def _create(client, headers, **overrides):
    resp = client.post(URL, json=_payload(**overrides), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer not-a-jwt"},
        {"Authorization": "Basic dXNlcjpwYXNz"},
    ],
)
def test_requests_without_valid_token_are_401(client, headers):
    resp = client.get(URL, headers=headers)
    assert resp.status_code == 401
    body = resp.get_json()
    assert body["ok"] is False
    assert body["error"]["code"] == "unauthorized"


def test_expired_token_is_401(client, org_id):
    token = issue_token("user-1", org_id, expires_in=timedelta(seconds=-5))
    resp = client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_create_round_trips_typed_dynamic_fields(client, auth_headers, org_id):
    body = _create(client, auth_headers)

    data = body["data"]
    assert data["entity_type"] == "PRODUCT"
    assert data["organization_id"] == org_id
    assert data["created_by"] == "user-1"
    assert data["failed_fields"] == []
    assert data["dynamic_data"]["price"] == {
        "field_type": "number",
        "value": 24.5,
        "smart_code": "HERA.INV.PRODUCT.FIELD.PRICE.v1",
    }
    assert data["dynamic_data"]["organic"]["value"] is True
    assert data["dynamic_data"]["origin"]["field_type"] == "text"
    assert data["dynamic_data"]["origin"]["value"] == "Colombia"
    assert body["meta"]["api_version"] == "v2"
    assert body["meta"]["warnings"] is None

    fetched = client.get(f"{URL}/{data['id']}", headers=auth_headers).get_json()["data"]
    assert fetched["dynamic_data"]["price"]["value"] == 24.5


def test_scalar_dynamic_shorthand(client, auth_headers):
    body = _create(client, auth_headers, dynamic={"stock": 12, "tags": ["a", "b"]})
    dyn = body["data"]["dynamic_data"]
    assert dyn["stock"] == {"field_type": "number", "value": 12, "smart_code": None}
    assert dyn["tags"]["field_type"] == "json"
    assert dyn["tags"]["value"] == ["a", "b"]


def test_bad_dynamic_field_is_reported_not_fatal(client, auth_headers, db_session):
    body = _create(
        client,
        auth_headers,
        dynamic={
            "weight": {"field_type": "number", "value": "heavy"},
            "colour": {"value": "brown"},
        },
    )

    data = body["data"]
    assert data["failed_fields"] == ["weight"]
    assert set(data["dynamic_data"]) == {"colour"}
    assert db_session.query(DynamicData).count() == 1


def test_non_scalar_number_field_is_reported_not_fatal(client, auth_headers, db_session):
    body = _create(
        client,
        auth_headers,
        dynamic={
            "weight": {"field_type": "number", "value": {"kg": 1}},
            "colour": {"value": "brown"},
        },
    )

    data = body["data"]
    assert data["failed_fields"] == ["weight"]
    assert set(data["dynamic_data"]) == {"colour"}
    assert db_session.query(DynamicData).count() == 1


def test_guardrail_warnings_do_not_block_the_write(client, auth_headers):
    body = _create(
        client,
        auth_headers,
        smart_code="product-item",
        metadata={"price": 10},
        dynamic={"note": {"value": "x"}},
    )

    codes = [w["code"] for w in body["meta"]["warnings"]]
    assert codes == ["SMARTCODE-FORMAT", "FIELD-PLACEMENT", "DYNAMIC-FIELD-SMARTCODE"]


def test_invalid_payload_is_400_with_violations(client, auth_headers):
    resp = client.post(URL, json={"entity_type": "PRODUCT"}, headers=auth_headers)
    assert resp.status_code == 400
    err = resp.get_json()["error"]
    assert err["code"] == "validation_error"
    fields = {v["field"] for v in err["details"]["violations"]}
    assert {"entity_name", "smart_code"} <= fields


def test_unknown_dynamic_key_is_rejected(client, auth_headers):
    resp = client.post(
        URL, json=_payload(dynamic={"x": {"value": 1, "bogus": True}}), headers=auth_headers
    )
    assert resp.status_code == 400


def test_relationships_are_created_with_default_smart_code(client, auth_headers):
    supplier = _create(
        client,
        auth_headers,
        entity_type="SUPPLIER",
        entity_name="Bean Co",
        entity_code="SUP-1",
        smart_code="HERA.P2P.SUPPLIER.ENTITY.v1",
        dynamic={},
    )["data"]

    product = _create(
        client,
        auth_headers,
        relationships=[{"to_entity_id": supplier["id"], "relationship_type": "SUPPLIED_BY"}],
    )
    rels = product["data"]["relationships"]
    assert len(rels) == 1
    assert rels[0]["to_entity_id"] == supplier["id"]
    assert rels[0]["smart_code"] == "HERA.REL.SUPPLIED_BY.GEN.v1"
    assert [w["code"] for w in product["meta"]["warnings"]] == ["RELATIONSHIP-SMARTCODE"]


def test_list_filters_and_pagination(client, auth_headers):
    _create(client, auth_headers)
    _create(client, auth_headers, entity_name="Green Tea", entity_code="PROD-002")
    _create(
        client,
        auth_headers,
        entity_type="CUSTOMER",
        entity_name="Cafe Uno",
        entity_code="CUST-1",
        smart_code="HERA.CRM.CUSTOMER.ENTITY.PROFILE.v1",
        dynamic={},
    )

    body = client.get(URL, query_string={"entity_type": "product"}, headers=auth_headers).get_json()
    assert body["data"]["total"] == 2
    assert {i["entity_name"] for i in body["data"]["items"]} == {"Espresso Beans 1kg", "Green Tea"}
    assert "dynamic_data" not in body["data"]["items"][0]

    page = client.get(URL, query_string={"limit": 1, "offset": 1}, headers=auth_headers).get_json()
    assert page["data"]["total"] == 3
    assert len(page["data"]["items"]) == 1
    assert page["meta"]["count"] == 1

    search = client.get(
        URL, query_string={"q": "tea", "include_dynamic_data": "true"}, headers=auth_headers
    ).get_json()
    assert [i["entity_code"] for i in search["data"]["items"]] == ["PROD-002"]
    assert search["data"]["items"][0]["dynamic_data"]["price"]["value"] == 24.5


def test_list_limit_above_100_is_rejected(client, auth_headers):
    resp = client.get(URL, query_string={"limit": 101}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "validation_error"


def test_other_tenant_cannot_see_entity(client, auth_headers, other_org_id):
    created = _create(client, auth_headers)["data"]
    other = {"Authorization": f"Bearer {issue_token('user-2', other_org_id)}"}

    assert client.get(f"{URL}/{created['id']}", headers=other).status_code == 404
    assert client.get(URL, headers=other).get_json()["data"]["total"] == 0


def test_update_only_touches_sent_columns(client, auth_headers):
    created = _create(client, auth_headers)["data"]

    resp = client.put(
        f"{URL}/{created['id']}",
        json={"entity_name": "Espresso Beans 2kg", "dynamic": {"price": 44}},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["entity_name"] == "Espresso Beans 2kg"
    assert data["entity_code"] == "PROD-001"
    assert data["dynamic_data"]["price"]["value"] == 44
    assert data["dynamic_data"]["origin"]["value"] == "Colombia"


def test_update_missing_entity_is_404(client, auth_headers):
    resp = client.put(f"{URL}/nope", json={"entity_name": "x"}, headers=auth_headers)
    assert resp.status_code == 404


def test_soft_delete_then_hidden_from_list(client, auth_headers):
    created = _create(client, auth_headers)["data"]

    resp = client.delete(f"{URL}/{created['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["deleted"] == "soft"

    assert client.get(URL, headers=auth_headers).get_json()["data"]["total"] == 0
    fetched = client.get(f"{URL}/{created['id']}", headers=auth_headers).get_json()["data"]
    assert fetched["status"] == "archived"


def test_hard_delete_removes_dynamic_data(client, auth_headers, db_session):
    created = _create(client, auth_headers)["data"]

    resp = client.delete(
        f"{URL}/{created['id']}", query_string={"hard_delete": "true"}, headers=auth_headers
    )
    assert resp.get_json()["data"]["deleted"] == "hard"
    assert client.get(f"{URL}/{created['id']}", headers=auth_headers).status_code == 404
    assert db_session.query(DynamicData).count() == 0


def test_delete_falls_back_when_procedure_disabled(client, auth_headers, monkeypatch, db_session):
    monkeypatch.setenv("DISABLED_PROCEDURES", "hera_entity_delete_v1")
    created = _create(client, auth_headers)["data"]

    resp = client.delete(
        f"{URL}/{created['id']}", query_string={"hard_delete": "1"}, headers=auth_headers
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data == {"id": created["id"], "deleted": "hard", "fallback": True}
    assert db_session.query(DynamicData).count() == 0


def test_disabled_dynamic_procedure_reports_every_field(client, auth_headers, monkeypatch):
    monkeypatch.setenv("DISABLED_PROCEDURES", "hera_dynamic_data_set_v1")
    body = _create(client, auth_headers)
    assert sorted(body["data"]["failed_fields"]) == ["organic", "origin", "price"]
    assert body["data"]["dynamic_data"] == {}


def test_disabled_upsert_procedure_is_501(client, auth_headers, monkeypatch):
    monkeypatch.setenv("DISABLED_PROCEDURES", "hera_entity_upsert_v1")
    resp = client.post(URL, json=_payload(), headers=auth_headers)
    assert resp.status_code == 501
    assert resp.get_json()["error"]["code"] == "procedure_unavailable"
