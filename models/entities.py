from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class Entity(Base):
    """Typed, named business object (customer, product, supplier, GL account...).

    `entity_type` + `smart_code` classify the row; everything business-specific
    beyond the name/code lives in `core_dynamic_data`.
    """

    __tablename__ = "core_entities"
    __table_args__ = (
        # NULL codes never collide, so this only binds rows that carry a code.
        UniqueConstraint(
            "organization_id",
            "entity_type",
            "entity_code",
            name="uq_core_entities_org_type_code",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    entity_type = Column(String, nullable=False, index=True)
    entity_name = Column(String, nullable=False)
    entity_code = Column(String, nullable=True)
    entity_description = Column(Text, nullable=True)
    smart_code = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")

    parent_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="SET NULL"),
        nullable=True,
    )

    # "metadata" is reserved on declarative classes.
    metadata_ = Column("metadata", JSON, nullable=True)
    business_rules = Column(JSON, nullable=True)

    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
