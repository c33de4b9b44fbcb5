"""Entity API orchestration on top of the named procedures.

Create is not atomic across tables: the entity row is committed first, then
each dynamic field is written on its own. A field that fails is logged,
skipped, and reported back by name.
"""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.auth import AuthContext
from api.schemas.entities import EntityCreate, EntityListQuery, EntityUpdate, RelationshipInput
from api.services.errors import ProcedureUnavailable, RecordNotFoundError
from api.services.procedures import call_procedure
from api.services.universal_service import default_relationship_smart_code
from logging_utils import get_logger
from models.dynamic_data import DynamicData
from models.entities import Entity
from models.relationships import Relationship
from models.serialization import row_to_dict

logger = get_logger(__name__)


def _set_dynamic_fields(
    session: Session, auth: AuthContext, entity_id: str, payload
) -> List[str]:
    """Write each dynamic field; return the names that failed."""

    failed: List[str] = []
    for name, spec in payload.dynamic.items():
        field_type, value = spec.resolved()
        try:
            call_procedure(
                session,
                "hera_dynamic_data_set_v1",
                organization_id=auth.organization_id,
                entity_id=entity_id,
                field_name=name,
                field_type=field_type,
                field_value=value,
                smart_code=spec.smart_code,
            )
        except (ValueError, SQLAlchemyError, ProcedureUnavailable) as exc:
            session.rollback()
            logger.warning(
                "dynamic field skipped entity=%s field=%s error=%s", entity_id, name, exc
            )
            failed.append(name)
    return failed


def _add_relationships(
    session: Session, auth: AuthContext, entity_id: str, relationships: List[RelationshipInput]
) -> List[Dict[str, Any]]:
    if not relationships:
        return []
    rows = []
    for rel in relationships:
        row = Relationship(
            organization_id=auth.organization_id,
            from_entity_id=entity_id,
            to_entity_id=rel.to_entity_id,
            relationship_type=rel.relationship_type,
            relationship_data=rel.relationship_data,
            smart_code=rel.smart_code or default_relationship_smart_code(rel.relationship_type),
        )
        session.add(row)
        rows.append(row)
    session.commit()
    return [row_to_dict(r) for r in rows]


def get_entity(session: Session, auth: AuthContext, entity_id: str) -> Dict[str, Any]:
    result = call_procedure(
        session,
        "hera_entity_read_v1",
        organization_id=auth.organization_id,
        entity_id=entity_id,
        include_dynamic_data=True,
        include_relationships=True,
    )
    if not result["items"]:
        raise RecordNotFoundError(f"Entity {entity_id} not found")
    return result["items"][0]


def list_entities(session: Session, auth: AuthContext, query: EntityListQuery) -> Dict[str, Any]:
    return call_procedure(
        session,
        "hera_entity_read_v1",
        organization_id=auth.organization_id,
        entity_type=query.entity_type,
        status=query.status,
        q=query.q,
        limit=query.limit,
        offset=query.offset,
        include_dynamic_data=query.include_dynamic_data,
        include_relationships=query.include_relationships,
    )


def create_entity(session: Session, auth: AuthContext, payload: EntityCreate) -> Dict[str, Any]:
    columns = payload.model_dump(exclude={"dynamic", "relationships"}, exclude_none=True)
    entity = call_procedure(
        session,
        "hera_entity_upsert_v1",
        organization_id=auth.organization_id,
        actor_user_id=auth.user_id,
        **columns,
    )
    logger.info(
        "entity created id=%s type=%s org=%s",
        entity["id"],
        entity["entity_type"],
        auth.organization_id,
    )

    failed = _set_dynamic_fields(session, auth, entity["id"], payload)
    _add_relationships(session, auth, entity["id"], payload.relationships)

    result = get_entity(session, auth, entity["id"])
    result["failed_fields"] = failed
    return result


def update_entity(
    session: Session, auth: AuthContext, entity_id: str, payload: EntityUpdate
) -> Dict[str, Any]:
    columns = payload.entity_columns()
    call_procedure(
        session,
        "hera_entity_upsert_v1",
        organization_id=auth.organization_id,
        entity_id=entity_id,
        actor_user_id=auth.user_id,
        **columns,
    )

    failed = _set_dynamic_fields(session, auth, entity_id, payload)
    _add_relationships(session, auth, entity_id, payload.relationships)

    result = get_entity(session, auth, entity_id)
    result["failed_fields"] = failed
    return result


def _inline_delete(
    session: Session, auth: AuthContext, entity_id: str, *, hard_delete: bool
) -> Dict[str, Any]:
    row = (
        session.query(Entity)
        .filter(Entity.organization_id == auth.organization_id, Entity.id == entity_id)
        .one_or_none()
    )
    if row is None:
        raise RecordNotFoundError(f"Entity {entity_id} not found")

    if not hard_delete:
        row.status = "archived"
        row.updated_by = auth.user_id
        session.commit()
        return {"id": entity_id, "deleted": "soft", "status": "archived", "fallback": True}

    session.query(DynamicData).filter(
        DynamicData.organization_id == auth.organization_id,
        DynamicData.entity_id == entity_id,
    ).delete(synchronize_session=False)
    session.query(Relationship).filter(
        Relationship.organization_id == auth.organization_id,
        (Relationship.from_entity_id == entity_id) | (Relationship.to_entity_id == entity_id),
    ).delete(synchronize_session=False)
    session.delete(row)
    session.commit()
    return {"id": entity_id, "deleted": "hard", "fallback": True}


def delete_entity(
    session: Session, auth: AuthContext, entity_id: str, *, hard_delete: bool = False
) -> Dict[str, Any]:
    try:
        return call_procedure(
            session,
            "hera_entity_delete_v1",
            organization_id=auth.organization_id,
            entity_id=entity_id,
            hard_delete=hard_delete,
            actor_user_id=auth.user_id,
        )
    except ProcedureUnavailable as exc:
        logger.warning("delete falling back to inline path entity=%s: %s", entity_id, exc.message)

    return _inline_delete(session, auth, entity_id, hard_delete=hard_delete)

