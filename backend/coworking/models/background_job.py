from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from ..core.enums import JobStatus
from ..database import Base
from .types import JSONType


class BackgroundJob(Base):
    """Persisted background job entry for retryable workflows and scheduled reminders."""

    __tablename__ = "background_jobs"

    id = Column(String(26), primary_key=True, index=True)
    type = Column(String(100), nullable=False)
    payload = Column(JSONType, nullable=False)
    status = Column(String(20), nullable=False, default=JobStatus.QUEUED.value)
    attempts = Column(Integer, nullable=False, default=0)
    available_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_background_jobs_status_available", "status", "available_at"),)
