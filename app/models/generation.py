from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from app.db.base import Base, JSONType


class Generation(Base):
    """Append-only audit row: one per generation attempt, never updated."""

    __tablename__ = "generations"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    asset_id = Column(String, ForeignKey("assets.id", ondelete="SET NULL"), nullable=True, index=True)
    request = Column(JSONType, nullable=False, default=dict)
    response = Column(JSONType, nullable=True)  # null on failure
    provider = Column(String, nullable=False)
    model = Column(String, nullable=True)
    credits_used = Column(Integer, nullable=False, default=0)
    is_trial = Column(Boolean, nullable=False, default=False)
    processing_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    error_kind = Column(String, nullable=True)  # provider_error | timeout | no_image | ...
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
