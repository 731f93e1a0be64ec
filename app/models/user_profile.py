from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from app.core.config import settings
from app.db.base import Base

PLAN_FREE = "free"
PLANS = (PLAN_FREE, "starter", "pro", "one_time")


def _default_trial_limit() -> int:
    return settings.trial_generations_limit


class UserProfile(Base):
    """Account: plan and entitlement counters. Counters are written only by LedgerService."""

    __tablename__ = "user_profiles"
    __table_args__ = (
        CheckConstraint("credits_balance >= 0", name="ck_user_profiles_credits_non_negative"),
        CheckConstraint("trial_generations_used >= 0", name="ck_user_profiles_trials_non_negative"),
    )

    id = Column(String, primary_key=True)  # id from the external auth provider
    email = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    locale = Column(String, nullable=False, default="en")  # en | ar
    plan = Column(String, nullable=False, default=PLAN_FREE)
    credits_balance = Column(Integer, nullable=False, default=0)
    trial_generations_used = Column(Integer, nullable=False, default=0)
    trial_generations_limit = Column(Integer, nullable=False, default=_default_trial_limit)
    credits_reset_at = Column(DateTime(timezone=True), nullable=True)
    onboarding_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_free(self) -> bool:
        return self.plan == PLAN_FREE

    @property
    def trials_remaining(self) -> int:
        return max(0, (self.trial_generations_limit or 0) - (self.trial_generations_used or 0))
