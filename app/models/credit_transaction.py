from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base

KIND_CREDIT = "credit"  # balance_after tracks user_profiles.credits_balance
KIND_TRIAL = "trial"  # balance_after tracks remaining trial generations


class CreditTransaction(Base):
    """Append-only ledger line; authoritative history of the account counters."""

    __tablename__ = "credit_transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String, nullable=False, default=KIND_CREDIT)
    amount = Column(Integer, nullable=False)  # signed
    balance_after = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)  # generation, subscription_renewal, refund, ...
    reference_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
