from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, String

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class Transaction(Base):
    """Business event header: order, invoice, payment, goods receipt, thread..."""

    __tablename__ = "universal_transactions"

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    transaction_type = Column(String, nullable=False, index=True)
    transaction_code = Column(String, nullable=True)
    transaction_date = Column(
        DateTime(timezone=True), nullable=False, default=utcnow_sa_default
    )
    reference_number = Column(String, nullable=True)

    source_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    target_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="SET NULL"),
        nullable=True,
    )

    total_amount = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=True)
    status = Column(String, nullable=False, default="pending")
    smart_code = Column(String, nullable=False)

    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
