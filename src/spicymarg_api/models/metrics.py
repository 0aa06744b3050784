"""Monthly business metrics model."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, func
from sqlalchemy.dialects.postgresql import UUID

from spicymarg_api.db.base import Base
from spicymarg_api.models.guest import utcnow


class MonthlyMetric(Base):
    """Per-month funnel counters plus manually entered spend and revenue."""

    __tablename__ = "monthly_metrics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    month = Column(Date, nullable=False, unique=True, index=True)

    # Aggregated by the monthly job
    new_leads = Column(Integer, nullable=False, default=0, server_default="0")
    vouchers_claimed = Column(Integer, nullable=False, default=0, server_default="0")
    first_visits = Column(Integer, nullable=False, default=0, server_default="0")
    second_visits = Column(Integer, nullable=False, default=0, server_default="0")
    third_visits = Column(Integer, nullable=False, default=0, server_default="0")
    stage1_sms_cost = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")

    # Entered by hand; never written by the aggregation job
    ad_spend = Column(Numeric(12, 2), nullable=True)
    total_ad_clicks = Column(Integer, nullable=True)
    stage1_cogs = Column(Numeric(12, 2), nullable=True)
    stage2_cogs = Column(Numeric(12, 2), nullable=True)
    stage3_cogs = Column(Numeric(12, 2), nullable=True)
    total_revenue = Column(Numeric(12, 2), nullable=True)

    aggregated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
