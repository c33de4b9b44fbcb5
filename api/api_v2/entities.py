from __future__ import annotations

from flask import Blueprint, g, jsonify, request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

import db
from api.auth import require_auth
from api.responses import database_error_response, error_response
from api.schemas.api_responses import ApiMeta, fail, ok
from api.schemas.entities import (
    EntityCreate,
    EntityListQuery,
    EntityUpdate,
    guardrail_warnings,
    validation_details,
)
from api.services import entity_service
from api.services.errors import UniversalError
from logging_utils import get_logger
from utils.value_parsing import parse_bool_param

logger = get_logger(__name__)

entities_v2_bp = Blueprint("entities_v2", __name__)


def _meta(*, count: int | None = None, warnings=None) -> ApiMeta:
    return ApiMeta(api_version="v2", table="core_entities", count=count, warnings=warnings or None)


def _invalid(err: ValidationError):
    return (
        jsonify(
            fail(
                "Invalid entity payload",
                code="validation_error",
                details=validation_details(err),
                meta=_meta(),
            )
        ),
        400,
    )


def _run(fn, *args, **kwargs):
    """Open a session, run a service call, map failures to envelopes."""

    session = db.SessionLocal()
    try:
        return fn(session, g.auth, *args, **kwargs), None
    except UniversalError as err:
        session.rollback()
        return None, error_response(err, _meta())
    except SQLAlchemyError as err:
        session.rollback()
        logger.exception("entity API database failure")
        return None, database_error_response(err, _meta())
    finally:
        session.close()


@entities_v2_bp.post("/entities")
@require_auth
def create_entity():
    try:
        payload = EntityCreate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _invalid(err)

    warnings = guardrail_warnings(payload)
    data, error = _run(entity_service.create_entity, payload)
    if error:
        return error
    return jsonify(ok(data, meta=_meta(count=1, warnings=warnings))), 201


@entities_v2_bp.get("/entities")
@require_auth
def list_entities():
    """List entities of the caller's organization.

    Query params: entity_type, status, q, limit (<=100), offset,
    include_dynamic_data, include_relationships.
    """

    args = request.args.to_dict()
    for flag in ("include_dynamic_data", "include_relationships"):
        if flag in args:
            args[flag] = parse_bool_param(args[flag])
    try:
        query = EntityListQuery.model_validate(args)
    except ValidationError as err:
        return _invalid(err)

    data, error = _run(entity_service.list_entities, query)
    if error:
        return error
    return jsonify(ok(data, meta=_meta(count=len(data["items"])))), 200


@entities_v2_bp.get("/entities/<entity_id>")
@require_auth
def get_entity(entity_id: str):
    data, error = _run(entity_service.get_entity, entity_id)
    if error:
        return error
    return jsonify(ok(data, meta=_meta(count=1))), 200


@entities_v2_bp.put("/entities/<entity_id>")
@require_auth
def update_entity(entity_id: str):
    try:
        payload = EntityUpdate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _invalid(err)

    warnings = guardrail_warnings(payload)
    data, error = _run(entity_service.update_entity, entity_id, payload)
    if error:
        return error
    return jsonify(ok(data, meta=_meta(count=1, warnings=warnings))), 200


@entities_v2_bp.delete("/entities/<entity_id>")
@require_auth
def delete_entity(entity_id: str):
    hard = parse_bool_param(request.args.get("hard_delete"))
    data, error = _run(entity_service.delete_entity, entity_id, hard_delete=hard)
    if error:
        return error
    return jsonify(ok(data, meta=_meta(count=1))), 200
