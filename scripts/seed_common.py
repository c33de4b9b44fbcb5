"""Shared helpers for the demo seed scripts.

Seeds are re-runnable: organizations are matched on `organization_code` and
entities on (organization, entity_type, entity_code).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlalchemy.orm import Session

import db
import models  # noqa: F401
from api.services.procedures import call_procedure
from models.entities import Entity
from models.organizations import Organization
from utils.value_parsing import infer_field_type


def ensure_schema() -> None:
    db.Base.metadata.create_all(bind=db.engine)


def ensure_organization(
    session: Session, *, name: str, code: str, industry: str | None = None
) -> str:
    org = session.query(Organization).filter(Organization.organization_code == code).one_or_none()
    if org is None:
        org = Organization(
            organization_name=name,
            organization_code=code,
            organization_type="business_unit",
            industry_classification=industry,
            status="active",
        )
        session.add(org)
        session.commit()
    return org.id


def seed_entity(
    session: Session,
    org_id: str,
    *,
    entity_type: str,
    name: str,
    code: str,
    smart_code: str,
    fields: dict[str, Any] | None = None,
    field_smart_code: str | None = None,
) -> str:
    """Insert (or rename) an entity and set its dynamic fields."""

    existing = (
        session.query(Entity.id)
        .filter(
            Entity.organization_id == org_id,
            Entity.entity_type == entity_type,
            Entity.entity_code == code,
        )
        .first()
    )
    entity = call_procedure(
        session,
        "hera_entity_upsert_v1",
        organization_id=org_id,
        entity_id=existing[0] if existing else None,
        entity_type=entity_type,
        entity_name=name,
        entity_code=code,
        smart_code=smart_code,
    )
    for field_name, value in (fields or {}).items():
        call_procedure(
            session,
            "hera_dynamic_data_set_v1",
            organization_id=org_id,
            entity_id=entity["id"],
            field_name=field_name,
            field_type=infer_field_type(value),
            field_value=value,
            smart_code=field_smart_code,
        )
    return entity["id"]
