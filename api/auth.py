"""Bearer-token authentication for the /api/v2 routes.

Tokens are HS256 JWTs signed with ``AUTH_JWT_SECRET``. The subject claim is the
user id; ``organization_id`` scopes every query the caller makes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import wraps
from typing import Callable, Optional

import jwt
from flask import g, jsonify, request

from api.schemas.api_responses import ApiMeta, fail
from config import get_setting
from logging_utils import get_logger
from utils.time_utils import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    organization_id: str


def _secret() -> str:
    return str(get_setting("AUTH_JWT_SECRET"))


def _algorithm() -> str:
    return str(get_setting("AUTH_JWT_ALGORITHM", "HS256"))


def issue_token(
    user_id: str,
    organization_id: str,
    *,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Sign a token for `user_id` scoped to `organization_id` (used by tests and seeds)."""

    now = utcnow()
    payload = {
        "sub": user_id,
        "organization_id": organization_id,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, _secret(), algorithm=_algorithm())


def verify_auth(authorization: Optional[str]) -> Optional[AuthContext]:
    """Decode an ``Authorization`` header value; None when missing or invalid."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None

    try:
        payload = jwt.decode(token.strip(), _secret(), algorithms=[_algorithm()])
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        return None

    user_id = payload.get("sub")
    org_id = payload.get("organization_id") or payload.get("org_id")
    if not user_id or not org_id:
        logger.info("Rejected bearer token: missing sub/organization_id claim")
        return None
    return AuthContext(user_id=str(user_id), organization_id=str(org_id))


def require_auth(view: Callable):
    """Route decorator: 401 envelope unless a valid bearer token is present.

    The resolved context is available as ``flask.g.auth``.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        ctx = verify_auth(request.headers.get("Authorization"))
        if ctx is None:
            return (
                jsonify(
                    fail(
                        "Unauthorized",
                        code="unauthorized",
                        meta=ApiMeta(api_version="v2"),
                    )
                ),
                401,
            )
        g.auth = ctx
        return view(*args, **kwargs)

    return wrapper
