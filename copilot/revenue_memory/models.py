"""Revenue memory models - persisted win patterns and the win log."""
from sqlalchemy import Column, String, DateTime, Float, Integer, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from copilot.database import Base
from copilot.base import generate_id


class WinPatternRow(Base):
    """
    One extracted pattern per row.

    The full pattern document lives in `document`; the scalar columns are
    copies kept for filtering and dashboards.
    """

    __tablename__ = "win_patterns"

    id = Column(String, primary_key=True)  # Store-generated "win_..." id
    organization_id = Column(String, nullable=False, index=True)

    category = Column(String, nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    success_rate = Column(Float, nullable=False, default=0.0)
    avg_deal_value = Column(Float, nullable=False, default=0.0)

    document = Column(JSONB, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class WinRecordRow(Base):
    """Append-only log of closed deals."""

    __tablename__ = "win_records"

    id = Column(String, primary_key=True, default=lambda: generate_id("winrec"))
    organization_id = Column(String, nullable=False)
    deal_id = Column(String, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)

    document = Column(JSONB, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_win_records_org_recorded", "organization_id", "recorded_at"),
    )
