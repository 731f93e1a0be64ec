from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from app.db.base import Base, JSONType


class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    brand_name = Column(String, nullable=False)
    brand_name_ar = Column(String, nullable=True)
    industry = Column(String, nullable=True)
    keywords = Column(JSONType, nullable=False, default=list)
    palette = Column(JSONType, nullable=False, default=dict)  # primary / secondary / accent
    style = Column(JSONType, nullable=False, default=dict)  # mood / complexity
    target_audience = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
