"""Static descriptors for the six universal tables.

The generic CRUD dispatcher is driven entirely by these descriptors: which
fields a create must carry, which fields are writable, and whether rows are
scoped by `organization_id`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from api.services.errors import UnknownTableError
from models.dynamic_data import DynamicData
from models.entities import Entity
from models.organizations import Organization
from models.relationships import Relationship
from models.transaction_lines import TransactionLine
from models.transactions import Transaction

_AUTO_FIELDS = ("id", "created_at", "updated_at")


@dataclass(frozen=True)
class TableSchema:
    name: str
    model: Any
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...]
    has_org_filter: bool
    description: str
    primary_key: str = "id"
    auto_fields: tuple[str, ...] = _AUTO_FIELDS
    # Extra request-only keys accepted on create (mapped before insert).
    input_aliases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_status(self) -> bool:
        return "status" in self.optional_fields or "status" in self.required_fields

    @property
    def writable_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    def as_dict(self) -> dict[str, Any]:
        return {
            "primary_key": self.primary_key,
            "required_fields": list(self.required_fields),
            "optional_fields": list(self.optional_fields),
            "auto_fields": list(self.auto_fields),
            "has_org_filter": self.has_org_filter,
            "description": self.description,
        }


TABLES: dict[str, TableSchema] = {
    "core_organizations": TableSchema(
        name="core_organizations",
        model=Organization,
        required_fields=("organization_name",),
        optional_fields=(
            "organization_code",
            "organization_type",
            "industry_classification",
            "description",
            "parent_organization_id",
            "settings",
            "status",
        ),
        has_org_filter=False,
        description="Tenants. Every other table is scoped by organization_id.",
    ),
    "core_entities": TableSchema(
        name="core_entities",
        model=Entity,
        required_fields=("entity_type", "entity_name", "smart_code"),
        optional_fields=(
            "organization_id",
            "entity_code",
            "entity_description",
            "status",
            "parent_entity_id",
            "metadata",
            "business_rules",
            "created_by",
            "updated_by",
        ),
        has_org_filter=True,
        description="Business objects: customers, products, suppliers, accounts.",
    ),
    "core_dynamic_data": TableSchema(
        name="core_dynamic_data",
        model=DynamicData,
        required_fields=("entity_id", "field_name"),
        optional_fields=(
            "organization_id",
            "field_type",
            "field_value_text",
            "field_value_number",
            "field_value_boolean",
            "field_value_date",
            "field_value_json",
            "smart_code",
        ),
        has_org_filter=True,
        description="Typed custom fields attached to entities.",
        input_aliases=("field_value",),
    ),
    "core_relationships": TableSchema(
        name="core_relationships",
        model=Relationship,
        required_fields=("from_entity_id", "to_entity_id", "relationship_type"),
        optional_fields=(
            "organization_id",
            "is_bidirectional",
            "relationship_data",
            "status",
            "smart_code",
        ),
        has_org_filter=True,
        description="Directed edges between entities, with workflow status.",
    ),
    "universal_transactions": TableSchema(
        name="universal_transactions",
        model=Transaction,
        required_fields=("transaction_type", "smart_code"),
        optional_fields=(
            "organization_id",
            "transaction_code",
            "transaction_date",
            "reference_number",
            "source_entity_id",
            "target_entity_id",
            "total_amount",
            "currency",
            "status",
            "metadata",
        ),
        has_org_filter=True,
        description="Business event headers: orders, invoices, payments.",
    ),
    "universal_transaction_lines": TableSchema(
        name="universal_transaction_lines",
        model=TransactionLine,
        required_fields=("transaction_id", "line_number"),
        optional_fields=(
            "organization_id",
            "line_type",
            "line_entity_id",
            "description",
            "quantity",
            "unit_price",
            "line_amount",
            "smart_code",
            "line_data",
        ),
        has_org_filter=True,
        description="Line items of a transaction header.",
    ),
}


def table_names() -> list[str]:
    return list(TABLES.keys())


def get_table(name: str | None) -> TableSchema:
    if not name:
        raise UnknownTableError(
            "table is required", details={"valid_tables": table_names()}
        )
    schema = TABLES.get(name)
    if schema is None:
        raise UnknownTableError(
            f"Unknown table '{name}'. Valid tables: {', '.join(table_names())}",
            details={"valid_tables": table_names()},
        )
    return schema


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def missing_required_fields(schema: TableSchema, data: dict[str, Any]) -> list[str]:
    """Required fields that are absent, None, or an empty string (in declared order)."""

    data = data or {}
    return [f for f in schema.required_fields if _is_blank(data.get(f))]


def unknown_fields(schema: TableSchema, data: dict[str, Any]) -> list[str]:
    known = set(schema.writable_fields) | set(schema.auto_fields) | set(schema.input_aliases)
    return sorted(k for k in (data or {}) if k not in known)


def describe(name: str | None = None) -> dict[str, Any]:
    """JSON-ready description of one table, or of all of them."""

    if name:
        schema = get_table(name)
        return {"table": schema.name, "schema": schema.as_dict()}

    return {
        "tables": {n: s.as_dict() for n, s in TABLES.items()},
        "table_count": len(TABLES),
        "endpoints": {
            "schema": "GET /api/v1/universal?action=schema[&table=...]",
            "health": "GET /api/v1/universal?action=health",
            "read": "GET /api/v1/universal?action=read&table=...&organization_id=...[&id=...]",
            "create": "POST /api/v1/universal {action:create, table, data, organization_id}",
            "batch_create": "POST /api/v1/universal {action:batch_create, table, data:[...], organization_id}",
            "validate": "POST /api/v1/universal {action:validate, table, data}",
            "update": "PUT /api/v1/universal {table, id, data, organization_id}",
            "delete": "DELETE /api/v1/universal?table=...&id=...&organization_id=...[&hard_delete=true]",
        },
    }
