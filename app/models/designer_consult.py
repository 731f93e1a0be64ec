from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from app.db.base import Base


class DesignerConsult(Base):
    __tablename__ = "designer_consults"
    __table_args__ = (UniqueConstraint("user_id", "month_key", name="uq_designer_consult_month"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    month_key = Column(String, nullable=False)  # YYYY-MM
    used = Column(Boolean, nullable=False, default=False)
    iterations_used = Column(Integer, nullable=False, default=0)
    iterations_limit = Column(Integer, nullable=False, default=5)
    notes = Column(Text, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
