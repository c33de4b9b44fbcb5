from __future__ import annotations

from typing import Any, Dict, Generic, Optional, TypeVar

from flask import g, has_request_context
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiError(BaseModel):
    """Standard error payload for API responses."""

    code: str = Field(default="error")
    message: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")


class ApiMeta(BaseModel):
    """Optional metadata attached to responses.

    `mode` is "database" or "mock"; `warnings` carries non-blocking guardrail
    findings from the entity API.
    """

    request_id: Optional[str] = None
    api_version: Optional[str] = None
    table: Optional[str] = None
    count: Optional[int] = None
    mode: Optional[str] = None
    warnings: Optional[list[Dict[str, Any]]] = None

    model_config = ConfigDict(extra="ignore")


class ApiResponse(BaseModel, Generic[T]):
    """Standard envelope for all API responses."""

    ok: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None
    meta: ApiMeta = Field(default_factory=ApiMeta)

    model_config = ConfigDict(extra="ignore")


def _with_request_id(meta: Optional[ApiMeta]) -> ApiMeta:
    """Fill `request_id` from the current Flask request, when there is one."""

    meta = meta or ApiMeta()
    if meta.request_id is None and has_request_context():
        meta.request_id = g.get("request_id")
    return meta


def ok(data: T = None, *, meta: Optional[ApiMeta] = None) -> Dict[str, Any]:
    """Create a success envelope as a JSON-serializable dict."""

    payload = ApiResponse[Any](ok=True, data=data, error=None, meta=_with_request_id(meta))
    return payload.model_dump(mode="json")


def fail(
    message: str,
    *,
    code: str = "error",
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[ApiMeta] = None,
) -> Dict[str, Any]:
    """Create an error envelope as a JSON-serializable dict."""

    payload = ApiResponse[None](
        ok=False,
        data=None,
        error=ApiError(code=code, message=message, details=details),
        meta=_with_request_id(meta),
    )
    return payload.model_dump(mode="json")
