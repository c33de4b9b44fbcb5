from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

import db
from api.responses import database_error_response, error_response
from api.schemas.api_responses import ApiMeta, ok
from api.services import mock_data
from api.services import universal_service as svc
from api.services.errors import (
    InvalidPayloadError,
    MissingFieldsError,
    UniversalError,
    UnknownActionError,
)
from api.services.table_registry import describe, get_table
from logging_utils import get_logger
from utils.value_parsing import parse_bool_param

logger = get_logger(__name__)

universal_v1_bp = Blueprint("universal_v1", __name__)

GET_ACTIONS = ("schema", "health", "read")
POST_ACTIONS = ("create", "batch_create", "validate")


def _body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _param(body: Dict[str, Any], name: str) -> Optional[Any]:
    """Body value first (POST/PUT), then query string."""

    value = body.get(name)
    if value is None or value == "":
        value = (request.args.get(name) or "").strip() or None
    return value


def _limit_param() -> Optional[int]:
    raw = (request.args.get("limit") or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _meta(table: Optional[str], *, count: Optional[int] = None) -> ApiMeta:
    return ApiMeta(
        api_version="v1",
        table=table,
        count=count,
        mode="mock" if db.is_mock_mode() else "database",
    )


@universal_v1_bp.route("/universal", methods=["GET", "POST", "PUT", "DELETE"])
def universal():
    """Generic CRUD over the six tables.

    GET    ?action=schema|health|read&table=...&organization_id=...
    POST   {action: create|batch_create|validate, table, data, organization_id}
    PUT    {table, id, data, organization_id}
    DELETE ?table=...&id=...&organization_id=...&hard_delete=true
    """

    body = _body() if request.method in ("POST", "PUT", "DELETE") else {}
    table = _param(body, "table")
    org_id = _param(body, "organization_id")

    if request.method == "GET":
        action = (request.args.get("action") or "read").strip()
        if action not in GET_ACTIONS:
            return error_response(
                UnknownActionError(
                    f"Unknown GET action '{action}'. Valid actions: {', '.join(GET_ACTIONS)}"
                ),
                _meta(table),
            )
    elif request.method == "POST":
        action = (_param(body, "action") or "create").strip()
        if action not in POST_ACTIONS:
            return error_response(
                UnknownActionError(
                    f"Unknown POST action '{action}'. Valid actions: {', '.join(POST_ACTIONS)}"
                ),
                _meta(table),
            )
    elif request.method == "PUT":
        action = "update"
    else:
        action = "delete"

    try:
        if action == "schema":
            return jsonify(ok(describe(table), meta=_meta(table))), 200

        if action == "validate":
            result = svc.validate_record(table, body.get("data"))
            return jsonify(ok(result, meta=_meta(table))), 200

        if db.is_mock_mode():
            return _mock_dispatch(action, table, org_id, body)

        return _db_dispatch(action, table, org_id, body)

    except UniversalError as err:
        logger.info("universal %s rejected: %s", action, err.message)
        return error_response(err, _meta(table))


def _db_dispatch(action: str, table: Optional[str], org_id: Optional[str], body: Dict[str, Any]):
    session = db.SessionLocal()
    try:
        if action == "health":
            return jsonify(ok(svc.health(session), meta=_meta(None))), 200

        if action == "read":
            rows = svc.read_records(
                session,
                table,
                organization_id=org_id,
                record_id=(request.args.get("id") or "").strip() or None,
                status=(request.args.get("status") or "").strip() or None,
                include_archived=parse_bool_param(request.args.get("include_archived")),
                limit=_limit_param(),
            )
            return jsonify(ok(rows, meta=_meta(table, count=len(rows)))), 200

        if action == "create":
            row = svc.create_record(session, table, body.get("data"), org_id)
            return jsonify(ok(row, meta=_meta(table, count=1))), 201

        if action == "batch_create":
            rows = svc.batch_create(session, table, body.get("data"), org_id)
            return jsonify(ok(rows, meta=_meta(table, count=len(rows)))), 201

        if action == "update":
            row = svc.update_record(session, table, _param(body, "id"), body.get("data"), org_id)
            return jsonify(ok(row, meta=_meta(table, count=1))), 200

        hard = parse_bool_param(str(_param(body, "hard_delete") or ""))
        result = svc.delete_record(session, table, _param(body, "id"), org_id, hard_delete=hard)
        return jsonify(ok(result, meta=_meta(table, count=1))), 200

    except SQLAlchemyError as err:
        session.rollback()
        logger.exception("universal %s failed table=%s", action, table)
        return database_error_response(err, _meta(table))
    finally:
        session.close()


def _mock_dispatch(action: str, table: Optional[str], org_id: Optional[str], body: Dict[str, Any]):
    """Same contract as the database path, backed by static rows."""

    if action == "health":
        return jsonify(ok(svc.health(None), meta=_meta(None))), 200

    schema = get_table(table)

    if action == "read":
        rows = mock_data.mock_read(table, record_id=(request.args.get("id") or "").strip() or None)
        return jsonify(ok(rows, meta=_meta(table, count=len(rows)))), 200

    if action == "create":
        row = mock_data.mock_write(svc.prepare_row(table, body.get("data"), org_id))
        return jsonify(ok(row, meta=_meta(table, count=1))), 201

    if action == "batch_create":
        data = body.get("data")
        if not isinstance(data, list) or not data:
            data = [data]
        rows = [mock_data.mock_write(svc.prepare_row(table, d, org_id)) for d in data]
        return jsonify(ok(rows, meta=_meta(table, count=len(rows)))), 201

    svc.require_org(schema, org_id)
    record_id = _param(body, "id")
    if not record_id:
        raise MissingFieldsError(["id"], table=table)

    if action == "update":
        data = body.get("data")
        if not isinstance(data, dict) or not data:
            raise InvalidPayloadError("update requires a non-empty data object")
        row = {k: v for k, v in data.items() if k in schema.writable_fields}
        if schema.has_org_filter:
            row["organization_id"] = org_id
        row = mock_data.mock_write({**row, "id": record_id})
        return jsonify(ok(row, meta=_meta(table, count=1))), 200

    hard = parse_bool_param(str(_param(body, "hard_delete") or "")) or not schema.has_status
    result = {"id": record_id, "deleted": "hard" if hard else "soft"}
    return jsonify(ok(result, meta=_meta(table, count=1))), 200
