"""Static rows served by `/api/v1/universal` when no database is configured."""

from __future__ import annotations

import copy
from typing import Any

from models.identifiers import new_id
from utils.time_utils import isoformat, utcnow

MOCK_ORGANIZATION_ID = "00000000-0000-4000-8000-000000000001"

_TS = "2024-01-15T09:30:00+00:00"

_CUSTOMER_ID = "00000000-0000-4000-8000-000000000101"
_PRODUCT_ID = "00000000-0000-4000-8000-000000000102"
_ORDER_ID = "00000000-0000-4000-8000-000000000201"

MOCK_ROWS: dict[str, list[dict[str, Any]]] = {
    "core_organizations": [
        {
            "id": MOCK_ORGANIZATION_ID,
            "organization_name": "Demo Trading Co",
            "organization_code": "DEMO",
            "organization_type": "business_unit",
            "industry_classification": "retail",
            "status": "active",
            "created_at": _TS,
            "updated_at": _TS,
        }
    ],
    "core_entities": [
        {
            "id": _CUSTOMER_ID,
            "organization_id": MOCK_ORGANIZATION_ID,
            "entity_type": "CUSTOMER",
            "entity_name": "Acme Retail",
            "entity_code": "CUST-001",
            "smart_code": "HERA.CRM.CUSTOMER.ENTITY.PROFILE.v1",
            "status": "active",
            "metadata": None,
            "created_at": _TS,
            "updated_at": _TS,
        },
        {
            "id": _PRODUCT_ID,
            "organization_id": MOCK_ORGANIZATION_ID,
            "entity_type": "PRODUCT",
            "entity_name": "Espresso Beans 1kg",
            "entity_code": "PROD-001",
            "smart_code": "HERA.INV.PRODUCT.ENTITY.ITEM.v1",
            "status": "active",
            "metadata": None,
            "created_at": _TS,
            "updated_at": _TS,
        },
    ],
    "core_dynamic_data": [
        {
            "id": "00000000-0000-4000-8000-000000000301",
            "organization_id": MOCK_ORGANIZATION_ID,
            "entity_id": _PRODUCT_ID,
            "field_name": "price",
            "field_type": "number",
            "field_value_number": 24.5,
            "smart_code": "HERA.INV.PRODUCT.FIELD.PRICE.v1",
            "created_at": _TS,
            "updated_at": _TS,
        }
    ],
    "core_relationships": [
        {
            "id": "00000000-0000-4000-8000-000000000401",
            "organization_id": MOCK_ORGANIZATION_ID,
            "from_entity_id": _CUSTOMER_ID,
            "to_entity_id": _PRODUCT_ID,
            "relationship_type": "prefers",
            "is_bidirectional": False,
            "status": "active",
            "smart_code": "HERA.REL.PREFERS.GEN.v1",
            "created_at": _TS,
            "updated_at": _TS,
        }
    ],
    "universal_transactions": [
        {
            "id": _ORDER_ID,
            "organization_id": MOCK_ORGANIZATION_ID,
            "transaction_type": "SALE",
            "transaction_code": "SO-1001",
            "transaction_date": _TS,
            "source_entity_id": _CUSTOMER_ID,
            "total_amount": 49.0,
            "currency": "USD",
            "status": "completed",
            "smart_code": "HERA.CRM.SALE.TXN.ORDER.v1",
            "metadata": None,
            "created_at": _TS,
            "updated_at": _TS,
        }
    ],
    "universal_transaction_lines": [
        {
            "id": "00000000-0000-4000-8000-000000000501",
            "organization_id": MOCK_ORGANIZATION_ID,
            "transaction_id": _ORDER_ID,
            "line_number": 1,
            "line_type": "ITEM",
            "line_entity_id": _PRODUCT_ID,
            "quantity": 2,
            "unit_price": 24.5,
            "line_amount": 49.0,
            "smart_code": "HERA.CRM.SALE.LINE.ITEM.v1",
            "created_at": _TS,
            "updated_at": _TS,
        }
    ],
}


def mock_read(table: str, *, record_id: str | None = None) -> list[dict[str, Any]]:
    rows = copy.deepcopy(MOCK_ROWS.get(table, []))
    if record_id:
        rows = [r for r in rows if r.get("id") == record_id]
    return rows


def mock_write(row: dict[str, Any]) -> dict[str, Any]:
    """Echo a written row back with a generated id and timestamps."""

    now = isoformat(utcnow())
    out = dict(row)
    out.setdefault("id", new_id())
    out.setdefault("created_at", now)
    out["updated_at"] = now
    return out
