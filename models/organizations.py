from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class Organization(Base):
    """Tenant boundary. Every other universal row points at one of these."""

    __tablename__ = "core_organizations"

    id = Column(String(36), primary_key=True, default=new_id)

    organization_name = Column(String, nullable=False)
    organization_code = Column(String, nullable=True, unique=True)
    organization_type = Column(String, nullable=True)
    industry_classification = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    parent_organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="SET NULL"),
        nullable=True,
    )

    settings = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="active")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
