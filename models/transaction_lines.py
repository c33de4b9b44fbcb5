from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text

from db import Base
from models.identifiers import new_id
from utils.time_utils import utcnow_sa_default


class TransactionLine(Base):
    """Line item of a transaction header."""

    __tablename__ = "universal_transaction_lines"

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("core_organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id = Column(
        String(36),
        ForeignKey("universal_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_number = Column(Integer, nullable=False)
    line_type = Column(String, nullable=True)
    line_entity_id = Column(
        String(36),
        ForeignKey("core_entities.id", ondelete="SET NULL"),
        nullable=True,
    )
    description = Column(Text, nullable=True)

    quantity = Column(Float, nullable=True)
    unit_price = Column(Float, nullable=True)
    line_amount = Column(Float, nullable=False, default=0.0)

    smart_code = Column(String, nullable=True)
    line_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow_sa_default)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
