"""Generic CRUD over the six universal tables.

Every function takes an open SQLAlchemy session and leaves commit/rollback of
read-only work to the caller; writes commit here. Inputs and outputs are
column-keyed dicts (``metadata`` rather than the ``metadata_`` attribute).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from api.services import mock_data
from api.services.errors import (
    InvalidPayloadError,
    MissingFieldsError,
    OrganizationRequiredError,
    RecordNotFoundError,
)
from api.services.table_registry import (
    TABLES,
    TableSchema,
    get_table,
    missing_required_fields,
    unknown_fields,
)
from config import get_setting
from logging_utils import get_logger
from models.serialization import assign_columns, coerce_column_values, row_to_dict
from utils.value_parsing import VALUE_COLUMNS, read_typed_value, typed_columns

logger = get_logger(__name__)

ARCHIVED_STATUS = "archived"


def max_rows() -> int:
    try:
        return max(1, int(get_setting("UNIVERSAL_MAX_ROWS", 100)))
    except (TypeError, ValueError):
        return 100


def default_relationship_smart_code(relationship_type: str) -> str:
    return f"HERA.REL.{str(relationship_type).upper()}.GEN.v1"


def require_org(schema: TableSchema, organization_id: Optional[str]) -> None:
    if schema.has_org_filter and not organization_id:
        raise OrganizationRequiredError(schema.name)


def _scoped_query(session: Session, schema: TableSchema, organization_id: Optional[str]):
    q = session.query(schema.model)
    if schema.has_org_filter:
        q = q.filter(schema.model.organization_id == organization_id)
    return q


def prepare_row(
    table: str, data: Dict[str, Any], organization_id: Optional[str] = None
) -> Dict[str, Any]:
    """Validate one create payload and return the column dict to insert.

    - request-level `organization_id` wins over one inside `data`
    - `core_dynamic_data`: `field_value` goes to the column picked by `field_type`
    - `core_relationships`: a missing smart code gets the generic relationship code

    Raises:
        MissingFieldsError / OrganizationRequiredError / InvalidPayloadError
    """

    schema = get_table(table)
    if not isinstance(data, dict):
        raise InvalidPayloadError(f"{table}: data must be an object")

    missing = missing_required_fields(schema, data)
    if missing:
        raise MissingFieldsError(missing, table=table)

    row = {k: v for k, v in data.items() if k in schema.writable_fields}

    if schema.has_org_filter:
        org_id = organization_id or data.get("organization_id")
        require_org(schema, org_id)
        row["organization_id"] = org_id

    if table == "core_dynamic_data":
        row.update(_dynamic_value_columns(data, field_name=data.get("field_name")))

    if table == "core_relationships" and not row.get("smart_code"):
        row["smart_code"] = default_relationship_smart_code(row["relationship_type"])

    try:
        return coerce_column_values(schema.model, row)
    except ValueError as exc:
        raise InvalidPayloadError(f"{table}: {exc}") from exc


def validate_record(table: str, data: Dict[str, Any]) -> Dict[str, Any]:
    schema = get_table(table)
    data = data if isinstance(data, dict) else {}
    missing = missing_required_fields(schema, data)
    return {
        "table": table,
        "valid": not missing,
        "missing_fields": missing,
        "unknown_fields": unknown_fields(schema, data),
    }


def read_records(
    session: Session,
    table: str,
    *,
    organization_id: Optional[str] = None,
    record_id: Optional[str] = None,
    status: Optional[str] = None,
    include_archived: bool = False,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Newest-first rows of `table`, capped at `max_rows()`.

    Archived rows are hidden unless `status` is given or `include_archived`.
    """

    schema = get_table(table)
    require_org(schema, organization_id)

    cap = max_rows()
    if limit is not None and 0 < limit < cap:
        cap = limit

    model = schema.model
    q = _scoped_query(session, schema, organization_id)
    if record_id:
        q = q.filter(model.id == record_id)
    if schema.has_status:
        if status:
            q = q.filter(model.status == status)
        elif not include_archived:
            q = q.filter(model.status != ARCHIVED_STATUS)

    rows = q.order_by(model.created_at.desc()).limit(cap).all()
    return [row_to_dict(r) for r in rows]


def create_record(
    session: Session,
    table: str,
    data: Dict[str, Any],
    organization_id: Optional[str] = None,
) -> Dict[str, Any]:
    schema = get_table(table)
    values = prepare_row(table, data, organization_id)

    row = schema.model()
    assign_columns(row, values)
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info("create table=%s id=%s org=%s", table, row.id, organization_id)
    return row_to_dict(row)


def batch_create(
    session: Session,
    table: str,
    rows: List[Dict[str, Any]],
    organization_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Insert all rows in one commit; nothing is written if any row is invalid."""

    schema = get_table(table)
    if not isinstance(rows, list) or not rows:
        raise InvalidPayloadError("batch_create requires a non-empty data array")

    prepared = []
    for index, data in enumerate(rows):
        try:
            prepared.append(prepare_row(table, data, organization_id))
        except MissingFieldsError as exc:
            raise MissingFieldsError(exc.missing, table=f"{table}[{index}]") from exc

    objs = []
    for values in prepared:
        obj = schema.model()
        assign_columns(obj, values)
        objs.append(obj)

    session.add_all(objs)
    session.commit()
    for obj in objs:
        session.refresh(obj)
    logger.info("batch_create table=%s count=%d org=%s", table, len(objs), organization_id)
    return [row_to_dict(o) for o in objs]


def _dynamic_value_columns(
    data: Dict[str, Any],
    *,
    field_name: Any,
    stored_type: Optional[str] = None,
    stored_value: Any = None,
) -> Dict[str, Any]:
    """`field_type` plus every value column for a dynamic field write.

    The value may arrive as `field_value`, as one `field_value_*` column, or
    not at all (a bare `field_type` change re-types `stored_value`). Exactly
    one value column is left set.
    """

    sent = [t for t, col in VALUE_COLUMNS.items() if col in data]
    if data.get("field_type"):
        field_type = str(data["field_type"]).strip().lower()
    elif "field_value" not in data and len(sent) == 1:
        field_type = sent[0]
    else:
        field_type = stored_type or "text"
    if field_type not in VALUE_COLUMNS:
        raise InvalidPayloadError(
            f"Unknown field_type '{field_type}'", details={"field_name": field_name}
        )

    if "field_value" in data:
        value = data["field_value"]
    elif VALUE_COLUMNS[field_type] in data:
        value = data[VALUE_COLUMNS[field_type]]
    elif sent:
        raise InvalidPayloadError(
            f"field_type '{field_type}' does not match the value columns sent",
            details={"field_name": field_name, "columns": [VALUE_COLUMNS[t] for t in sent]},
        )
    else:
        value = stored_value

    try:
        columns = typed_columns(field_type, value)
    except ValueError as exc:
        raise InvalidPayloadError(str(exc), details={"field_name": field_name}) from exc
    return {"field_type": field_type, **columns}


def update_record(
    session: Session,
    table: str,
    record_id: str,
    data: Dict[str, Any],
    organization_id: Optional[str] = None,
) -> Dict[str, Any]:
    schema = get_table(table)
    require_org(schema, organization_id)
    if not record_id:
        raise MissingFieldsError(["id"], table=table)
    if not isinstance(data, dict) or not data:
        raise InvalidPayloadError("update requires a non-empty data object")

    row = _scoped_query(session, schema, organization_id).filter(
        schema.model.id == record_id
    ).one_or_none()
    if row is None:
        raise RecordNotFoundError(f"{table} record {record_id} not found")

    writable = {
        k: v
        for k, v in data.items()
        if k in schema.writable_fields and k != "organization_id"
    }
    if table == "core_dynamic_data" and (
        {"field_type", "field_value", *VALUE_COLUMNS.values()} & data.keys()
    ):
        writable.update(
            _dynamic_value_columns(
                data,
                field_name=row.field_name,
                stored_type=row.field_type,
                stored_value=read_typed_value(row),
            )
        )

    try:
        values = coerce_column_values(schema.model, writable)
    except ValueError as exc:
        raise InvalidPayloadError(f"{table}: {exc}") from exc

    assign_columns(row, values)
    session.commit()
    session.refresh(row)
    logger.info("update table=%s id=%s fields=%s", table, record_id, sorted(values))
    return row_to_dict(row)


def delete_record(
    session: Session,
    table: str,
    record_id: str,
    organization_id: Optional[str] = None,
    *,
    hard_delete: bool = False,
) -> Dict[str, Any]:
    """Archive the row (status=archived) or remove it.

    Tables without a status column are always hard-deleted.
    """

    schema = get_table(table)
    require_org(schema, organization_id)
    if not record_id:
        raise MissingFieldsError(["id"], table=table)

    row = _scoped_query(session, schema, organization_id).filter(
        schema.model.id == record_id
    ).one_or_none()
    if row is None:
        raise RecordNotFoundError(f"{table} record {record_id} not found")

    if hard_delete or not schema.has_status:
        session.delete(row)
        session.commit()
        logger.info("hard delete table=%s id=%s", table, record_id)
        return {"id": record_id, "deleted": "hard"}

    row.status = ARCHIVED_STATUS
    session.commit()
    logger.info("soft delete table=%s id=%s", table, record_id)
    return {"id": record_id, "deleted": "soft", "status": ARCHIVED_STATUS}


def health(session: Optional[Session]) -> Dict[str, Any]:
    """Connectivity summary. `session=None` means mock mode."""

    if session is None:
        return {
            "status": "healthy",
            "mode": "mock",
            "tables": {t: len(rows) for t, rows in mock_data.MOCK_ROWS.items()},
        }

    session.execute(text("SELECT 1"))
    counts = {name: session.query(s.model).count() for name, s in TABLES.items()}
    return {"status": "healthy", "mode": "database", "tables": counts}
