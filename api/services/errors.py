"""Domain errors raised by the service layer.

Route handlers map these to HTTP status codes; the MCP servers report them as
tool errors. Database driver errors (SQLAlchemyError) are not wrapped.
"""

from __future__ import annotations

from typing import Any


class UniversalError(Exception):
    """Base class. `code` is the machine-readable error code in API envelopes."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class UnknownTableError(UniversalError):
    code = "unknown_table"


class UnknownActionError(UniversalError):
    code = "unknown_action"


class MissingFieldsError(UniversalError):
    code = "missing_required_fields"

    def __init__(self, missing: list[str], *, table: str | None = None):
        prefix = f"{table}: " if table else ""
        super().__init__(
            f"{prefix}Missing required fields: {', '.join(missing)}",
            details={"missing_fields": list(missing), "table": table},
        )
        self.missing = list(missing)


class InvalidPayloadError(UniversalError):
    code = "invalid_payload"


class OrganizationRequiredError(UniversalError):
    code = "organization_required"

    def __init__(self, table: str | None = None):
        where = f" for table {table}" if table else ""
        super().__init__(f"organization_id is required{where}")


class RecordNotFoundError(UniversalError):
    code = "not_found"
    status_code = 404


class ProcedureUnavailable(UniversalError):
    """A stored procedure is not installed (or disabled) in this deployment."""

    code = "procedure_unavailable"
    status_code = 501


class EdgeFunctionError(UniversalError):
    code = "edge_function_error"
    status_code = 502
