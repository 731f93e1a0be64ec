from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.db.base import Base


class SubscriptionRenewal(Base):
    """One row per account per billing period; guards the monthly top-up against re-runs."""

    __tablename__ = "subscription_renewals"
    __table_args__ = (UniqueConstraint("user_id", "period_key", name="uq_subscription_renewal_period"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    period_key = Column(String, nullable=False)  # YYYY-MM
    plan = Column(String, nullable=False)
    credits_granted = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
