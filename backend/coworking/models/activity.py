"""Append-only user activity log."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import JSONType


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)
    description = Column(Text, nullable=False)
    activity_metadata = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_activities_user_created", "user_id", "created_at"),)
