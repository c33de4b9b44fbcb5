"""Request models and guardrail checks for the /api/v2/entities routes."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.value_parsing import VALUE_COLUMNS, infer_field_type

FieldType = Literal["text", "number", "boolean", "date", "json"]

# HERA.<INDUSTRY>.<MODULE>...<TYPE>.v<N>
SMART_CODE_RE = re.compile(r"^HERA\.[A-Z0-9_]+(\.[A-Z0-9_]+){2,}\.[vV]\d+$")

# Business attributes that belong in dynamic fields rather than metadata.
BUSINESS_KEYS_IN_METADATA = ("price", "quantity", "description", "category", "status", "type")


class DynamicFieldInput(BaseModel):
    """One dynamic field: either `value` (+ optional type) or an explicit `field_value_*`."""

    field_type: Optional[FieldType] = None
    value: Any = None
    field_value_text: Optional[str] = None
    field_value_number: Optional[float] = None
    field_value_boolean: Optional[bool] = None
    field_value_date: Optional[str] = None
    field_value_json: Any = None
    smart_code: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def has_value(self) -> bool:
        fields = {"value", *VALUE_COLUMNS.values()}
        return any(name in self.model_fields_set for name in fields)

    def resolved(self) -> tuple[str, Any]:
        """(field_type, raw value) after applying defaults and type inference."""

        if "value" in self.model_fields_set:
            return self.field_type or infer_field_type(self.value), self.value

        for field_type, column in VALUE_COLUMNS.items():
            if column in self.model_fields_set:
                if self.field_type and self.field_type != field_type:
                    continue
                return field_type, getattr(self, column)

        return self.field_type or "text", None


class RelationshipInput(BaseModel):
    to_entity_id: str = Field(min_length=1)
    relationship_type: str = Field(min_length=1)
    smart_code: Optional[str] = None
    relationship_data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")


def _wrap_scalar_fields(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    out = {}
    for name, spec in value.items():
        if isinstance(spec, dict):
            out[name] = spec
        else:
            # {"price": 12.5} shorthand
            out[name] = {"value": spec}
    return out


class _EntityBody(BaseModel):
    entity_type: Optional[str] = None
    entity_name: Optional[str] = None
    smart_code: Optional[str] = None
    entity_code: Optional[str] = None
    entity_description: Optional[str] = None
    parent_entity_id: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    business_rules: Optional[Dict[str, Any]] = None
    dynamic: Dict[str, DynamicFieldInput] = Field(default_factory=dict)
    relationships: List[RelationshipInput] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("dynamic", mode="before")
    @classmethod
    def _dynamic_shorthand(cls, value: Any) -> Any:
        return _wrap_scalar_fields(value) if value is not None else {}

    @field_validator("entity_type", mode="after")
    @classmethod
    def _upper_entity_type(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


class EntityCreate(_EntityBody):
    entity_type: str = Field(min_length=1)
    entity_name: str = Field(min_length=1)
    smart_code: str = Field(min_length=1)


class EntityUpdate(_EntityBody):
    def entity_columns(self) -> Dict[str, Any]:
        """Columns explicitly sent by the caller (dynamic/relationships excluded)."""

        return {
            k: getattr(self, k)
            for k in self.model_fields_set
            if k not in ("dynamic", "relationships")
        }


class EntityListQuery(BaseModel):
    entity_type: Optional[str] = None
    status: Optional[str] = None
    q: Optional[str] = None
    limit: int = Field(default=100, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    include_dynamic_data: bool = False
    include_relationships: bool = False

    model_config = ConfigDict(extra="ignore")

    @field_validator("entity_type", mode="after")
    @classmethod
    def _upper_entity_type(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


def validation_details(err: ValidationError) -> Dict[str, Any]:
    """Compact, JSON-safe list of pydantic violations."""

    return {
        "violations": [
            {
                "field": ".".join(str(p) for p in e.get("loc", ())),
                "message": e.get("msg"),
                "type": e.get("type"),
            }
            for e in err.errors()
        ]
    }


def guardrail_warnings(payload: _EntityBody) -> List[Dict[str, Any]]:
    """Non-blocking findings returned alongside a successful write."""

    warnings: List[Dict[str, Any]] = []

    smart_code = getattr(payload, "smart_code", None)
    if smart_code and not SMART_CODE_RE.match(smart_code):
        warnings.append(
            {
                "code": "SMARTCODE-FORMAT",
                "message": f"smart_code '{smart_code}' does not match HERA.<SEGMENTS>.v<N>",
            }
        )

    if payload.metadata:
        found = [k for k in BUSINESS_KEYS_IN_METADATA if k in payload.metadata]
        if found:
            warnings.append(
                {
                    "code": "FIELD-PLACEMENT",
                    "message": (
                        f"Business fields [{', '.join(found)}] detected in metadata. "
                        "Consider moving to dynamic fields"
                    ),
                    "fields": found,
                }
            )

    for name, spec in payload.dynamic.items():
        if not spec.smart_code:
            warnings.append(
                {
                    "code": "DYNAMIC-FIELD-SMARTCODE",
                    "message": f"Dynamic field '{name}' missing smart_code",
                    "field_name": name,
                }
            )
        if not spec.has_value():
            warnings.append(
                {
                    "code": "DYNAMIC-FIELD-VALUE",
                    "message": f"Dynamic field '{name}' missing value",
                    "field_name": name,
                }
            )

    for index, rel in enumerate(payload.relationships, start=1):
        if not rel.smart_code:
            warnings.append(
                {
                    "code": "RELATIONSHIP-SMARTCODE",
                    "message": f"Relationship {index} missing smart_code",
                }
            )

    return warnings
