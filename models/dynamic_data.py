from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class DynamicData(Base):
    """One typed attribute of one entity.

    Exactly one of the `field_value_*` columns is populated, selected by
    `field_type` (text, number, boolean, date, json).
    """

    __tablename__ = "core_dynamic_data"
    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "entity_id",
            "field_name",
            name="uq_core_dynamic_data_org_entity_field",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    field_name = Column(String, nullable=False)
    field_type = Column(String, nullable=False, default="text")

    field_value_text = Column(Text, nullable=True)
    field_value_number = Column(Float, nullable=True)
    field_value_boolean = Column(Boolean, nullable=True)
    field_value_date = Column(DateTime(timezone=True), nullable=True)
    field_value_json = Column(JSON, nullable=True)

    smart_code = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
