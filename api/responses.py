"""Map service-layer failures to JSON envelopes with HTTP status codes."""

from __future__ import annotations

from typing import Optional

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from api.schemas.api_responses import ApiMeta, fail
from api.services.errors import UniversalError


def error_response(err: UniversalError, meta: Optional[ApiMeta] = None):
    return (
        jsonify(fail(err.message, code=err.code, details=err.details, meta=meta)),
        err.status_code,
    )


def database_error_response(err: SQLAlchemyError, meta: Optional[ApiMeta] = None):
    """500 carrying the driver's own message (not the SQLAlchemy wrapper text)."""

    message = str(getattr(err, "orig", None) or err)
    return jsonify(fail(message, code="database_error", meta=meta)), 500
