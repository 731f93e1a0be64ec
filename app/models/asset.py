from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from app.db.base import Base, JSONType

ASSET_TYPES = ("logo", "icon", "pattern", "social_post", "stationery", "favicon", "wordmark")

STATUS_TODO = "todo"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DONE = "done"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = frozenset({STATUS_DONE, STATUS_FAILED})


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=STATUS_TODO)
    prompt = Column(Text, nullable=True)
    model = Column(String, nullable=True)
    image_url = Column(Text, nullable=True)
    storage_path = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSONType, nullable=False, default=dict)
    is_watermarked = Column(Boolean, nullable=False, default=False)
    is_favorite = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    parent_asset_id = Column(String, ForeignKey("assets.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
