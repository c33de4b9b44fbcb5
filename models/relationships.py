from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class Relationship(Base):
    """Directed, typed edge between two entities ("account has contact").

    `status` doubles as the workflow state of the edge.
    """

    __tablename__ = "core_relationships"

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    from_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    to_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    relationship_type = Column(String, nullable=False)
    is_bidirectional = Column(Boolean, nullable=False, default=False)
    relationship_data = Column(JSON, nullable=True)

    status = Column(String, nullable=False, default="active")
    smart_code = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
