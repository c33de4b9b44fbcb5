"""Minimal MCP tool server over stdio (JSON-RPC 2.0, one message per line).

Supported methods: ``initialize``, ``tools/list``, ``tools/call``, ``ping``.
Notifications (messages without an ``id``) are accepted and never answered.

Tools are plain functions registered with `ToolServer.tool`; each declares a
pydantic model for its arguments, which doubles as the advertised JSON schema.
Handlers receive an open database session and the validated arguments.

stdout carries protocol messages only; logs go to stderr and log files.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

import db
from api.services.errors import OrganizationRequiredError, UniversalError
from config import get_setting
from logging_utils import get_logger

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class ToolSpec(BaseModel):
    """Tool definition as advertised by tools/list."""

    name: str
    description: str
    inputSchema: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    content: List[Dict[str, Any]] = Field(default_factory=list)
    isError: bool = False

    @classmethod
    def from_data(cls, data: Any) -> "ToolResult":
        return cls(content=[{"type": "text", "text": json.dumps(data, default=str)}])

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=[{"type": "text", "text": message}], isError=True)


@dataclass
class RegisteredTool:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[..., Any]
    needs_session: bool = True

    def spec(self) -> ToolSpec:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return ToolSpec(name=self.name, description=self.description, inputSchema=schema)


class OrgScopedArgs(BaseModel):
    """Base for tool arguments scoped to one organization."""

    organization_id: Optional[str] = Field(
        default=None,
        description="Owning organization; defaults to DEFAULT_ORGANIZATION_ID",
    )

    def org(self) -> str:
        org_id = self.organization_id or str(get_setting("DEFAULT_ORGANIZATION_ID", "") or "")
        if not org_id:
            raise OrganizationRequiredError()
        return org_id


class ToolServer:
    def __init__(self, name: str, version: str = "1.0.0"):
        self.name = name
        self.version = version
        self._tools: Dict[str, RegisteredTool] = {}

    def tool(
        self,
        name: str,
        description: str,
        args_model: Type[BaseModel],
        *,
        needs_session: bool = True,
    ):
        """Register `fn(session, args)` (or `fn(args)` when `needs_session=False`)."""

        def register(fn: Callable[..., Any]) -> Callable[..., Any]:
            if name in self._tools:
                raise ValueError(f"Tool already registered: {name}")
            self._tools[name] = RegisteredTool(name, description, args_model, fn, needs_session)
            return fn

        return register

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[ToolSpec]:
        return [t.spec() for t in self._tools.values()]

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        registered = self._tools.get(name)
        if registered is None:
            return ToolResult.error(f"Tool not found: {name}")

        try:
            args = registered.args_model.model_validate(arguments or {})
        except ValidationError as err:
            return ToolResult.error(f"Invalid arguments for {name}: {err}")

        if not registered.needs_session:
            return self._run(name, registered.handler, args)

        session = db.SessionLocal()
        try:
            result = self._run(name, registered.handler, session, args)
            if result.isError:
                session.rollback()
            return result
        finally:
            session.close()

    def _run(self, name: str, handler: Callable[..., Any], *call_args: Any) -> ToolResult:
        try:
            data = handler(*call_args)
        except UniversalError as err:
            logger.info("tool %s rejected: %s", name, err.message)
            return ToolResult.error(err.message)
        except SQLAlchemyError as err:
            logger.exception("tool %s database failure", name)
            return ToolResult.error(str(getattr(err, "orig", None) or err))
        logger.info("tool %s ok", name)
        return ToolResult.from_data(data)

    # --- JSON-RPC ---

    def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """Answer one decoded JSON-RPC message; None for notifications."""

        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            return _error_response(None, INVALID_REQUEST, "Invalid Request")

        msg_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}
        is_notification = "id" not in message

        if method == "initialize":
            result: Any = {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": self.name, "version": self.version},
            }
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = {"tools": [t.model_dump() for t in self.list_tools()]}
        elif method == "tools/call":
            if not isinstance(params, dict) or not params.get("name"):
                return _error_response(msg_id, INVALID_PARAMS, "tools/call requires a tool name")
            result = self.call_tool(params["name"], params.get("arguments")).model_dump()
        elif is_notification:
            # notifications/initialized and friends
            return None
        else:
            return _error_response(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    def serve(self, stdin=None, stdout=None) -> None:
        """Read newline-delimited JSON-RPC from stdin until EOF."""

        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        logger.info("%s %s serving %d tools on stdio", self.name, self.version, len(self._tools))

        for line in stdin:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as err:
                response = _error_response(None, PARSE_ERROR, f"Parse error: {err.msg}")
            else:
                response = self.handle_message(message)

            if response is not None:
                stdout.write(json.dumps(response, default=str) + "\n")
                stdout.flush()


def _error_response(msg_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}
