"""Named stored procedures for the entity API.

Each procedure is a plain function registered under its database name and
invoked through `call_procedure`. Names listed in the ``DISABLED_PROCEDURES``
setting raise `ProcedureUnavailable`, the same failure a deployment without
the procedure installed produces.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from api.services.errors import InvalidPayloadError, ProcedureUnavailable, RecordNotFoundError
from config import get_list_setting
from logging_utils import get_logger
from models.dynamic_data import DynamicData
from models.entities import Entity
from models.relationships import Relationship
from models.serialization import row_to_dict
from utils.value_parsing import read_typed_value, typed_columns

logger = get_logger(__name__)

PROCEDURES: Dict[str, Callable[..., Any]] = {}

ENTITY_COLUMNS = (
    "entity_type",
    "entity_name",
    "entity_code",
    "entity_description",
    "smart_code",
    "status",
    "parent_entity_id",
    "metadata",
    "business_rules",
)


def procedure(name: str):
    def register(fn: Callable[..., Any]) -> Callable[..., Any]:
        PROCEDURES[name] = fn
        return fn

    return register


def is_available(name: str) -> bool:
    return name in PROCEDURES and name not in get_list_setting("DISABLED_PROCEDURES")


def call_procedure(session: Session, name: str, **params: Any) -> Any:
    if not is_available(name):
        raise ProcedureUnavailable(f"Procedure {name} is not available")
    logger.debug("call %s params=%s", name, sorted(params))
    return PROCEDURES[name](session, **params)


def _entity_in_org(session: Session, organization_id: str, entity_id: str) -> Entity:
    row = (
        session.query(Entity)
        .filter(Entity.organization_id == organization_id, Entity.id == entity_id)
        .one_or_none()
    )
    if row is None:
        raise RecordNotFoundError(f"Entity {entity_id} not found")
    return row


def dynamic_fields_for(
    session: Session, organization_id: str, entity_ids: List[str]
) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """entity_id -> {field_name: {field_type, value, smart_code}}"""

    out: Dict[str, Dict[str, Dict[str, Any]]] = {eid: {} for eid in entity_ids}
    if not entity_ids:
        return out
    rows = (
        session.query(DynamicData)
        .filter(
            DynamicData.organization_id == organization_id,
            DynamicData.entity_id.in_(entity_ids),
        )
        .order_by(DynamicData.field_name)
        .all()
    )
    for r in rows:
        out[r.entity_id][r.field_name] = {
            "field_type": r.field_type,
            "value": read_typed_value(r),
            "smart_code": r.smart_code,
        }
    return out


def relationships_for(
    session: Session, organization_id: str, entity_ids: List[str]
) -> Dict[str, List[Dict[str, Any]]]:
    out: Dict[str, List[Dict[str, Any]]] = {eid: [] for eid in entity_ids}
    if not entity_ids:
        return out
    rows = (
        session.query(Relationship)
        .filter(
            Relationship.organization_id == organization_id,
            or_(
                Relationship.from_entity_id.in_(entity_ids),
                Relationship.to_entity_id.in_(entity_ids),
            ),
        )
        .order_by(Relationship.created_at)
        .all()
    )
    for r in rows:
        data = row_to_dict(r)
        if r.from_entity_id in out:
            out[r.from_entity_id].append(data)
        if r.to_entity_id in out and r.to_entity_id != r.from_entity_id:
            out[r.to_entity_id].append(data)
    return out


@procedure("hera_entity_upsert_v1")
def hera_entity_upsert_v1(
    session: Session,
    *,
    organization_id: str,
    entity_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    **columns: Any,
) -> Dict[str, Any]:
    """Insert an entity, or update the given columns of an existing one."""

    values = {k: v for k, v in columns.items() if k in ENTITY_COLUMNS}

    if entity_id:
        row = _entity_in_org(session, organization_id, entity_id)
        for key, value in values.items():
            setattr(row, "metadata_" if key == "metadata" else key, value)
        row.updated_by = actor_user_id
    else:
        missing = [f for f in ("entity_type", "entity_name", "smart_code") if not values.get(f)]
        if missing:
            raise InvalidPayloadError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing_fields": missing},
            )
        row = Entity(
            organization_id=organization_id,
            created_by=actor_user_id,
            updated_by=actor_user_id,
        )
        for key, value in values.items():
            setattr(row, "metadata_" if key == "metadata" else key, value)
        if not row.status:
            row.status = "active"
        session.add(row)

    session.commit()
    session.refresh(row)
    return row_to_dict(row)


@procedure("hera_dynamic_data_set_v1")
def hera_dynamic_data_set_v1(
    session: Session,
    *,
    organization_id: str,
    entity_id: str,
    field_name: str,
    field_type: str = "text",
    field_value: Any = None,
    smart_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Upsert one dynamic field on (organization, entity, field_name).

    Raises:
        ValueError: `field_value` does not fit `field_type`.
    """

    columns = typed_columns(field_type, field_value)

    row = (
        session.query(DynamicData)
        .filter(
            DynamicData.organization_id == organization_id,
            DynamicData.entity_id == entity_id,
            DynamicData.field_name == field_name,
        )
        .one_or_none()
    )
    if row is None:
        row = DynamicData(
            organization_id=organization_id, entity_id=entity_id, field_name=field_name
        )
        session.add(row)

    row.field_type = field_type
    for col, value in columns.items():
        setattr(row, col, value)
    if smart_code is not None:
        row.smart_code = smart_code

    session.commit()
    session.refresh(row)
    return row_to_dict(row)


@procedure("hera_entity_read_v1")
def hera_entity_read_v1(
    session: Session,
    *,
    organization_id: str,
    entity_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    status: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    include_dynamic_data: bool = False,
    include_relationships: bool = False,
) -> Dict[str, Any]:
    """Page of entities in one organization, newest first.

    Archived entities are skipped unless a `status` filter or `entity_id` is given.
    """

    qry = session.query(Entity).filter(Entity.organization_id == organization_id)
    if entity_id:
        qry = qry.filter(Entity.id == entity_id)
    if entity_type:
        qry = qry.filter(Entity.entity_type == entity_type)
    if status:
        qry = qry.filter(Entity.status == status)
    elif not entity_id:
        qry = qry.filter(Entity.status != "archived")
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(Entity.entity_name.ilike(like), Entity.entity_code.ilike(like)))

    total = qry.count()
    rows = qry.order_by(Entity.created_at.desc()).offset(offset).limit(limit).all()

    items = [row_to_dict(r) for r in rows]
    ids = [r.id for r in rows]
    if include_dynamic_data:
        dynamic = dynamic_fields_for(session, organization_id, ids)
        for item in items:
            item["dynamic_data"] = dynamic[item["id"]]
    if include_relationships:
        rels = relationships_for(session, organization_id, ids)
        for item in items:
            item["relationships"] = rels[item["id"]]

    return {"items": items, "total": total, "limit": limit, "offset": offset}


@procedure("hera_entity_delete_v1")
def hera_entity_delete_v1(
    session: Session,
    *,
    organization_id: str,
    entity_id: str,
    hard_delete: bool = False,
    actor_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    row = _entity_in_org(session, organization_id, entity_id)
    if hard_delete:
        session.delete(row)
        session.commit()
        return {"id": entity_id, "deleted": "hard"}

    row.status = "archived"
    row.updated_by = actor_user_id
    session.commit()
    return {"id": entity_id, "deleted": "soft", "status": "archived"}
