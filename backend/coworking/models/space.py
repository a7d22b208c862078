# backend/coworking/models/space.py
"""Bookable workspace model (desk, office, meeting or conference room)."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
import ulid

from ..core.enums import SpaceStatus
from ..database import Base
from .types import JSONType


class Space(Base):
    __tablename__ = "spaces"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, index=True)
    capacity = Column(Integer, nullable=False, default=1)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    amenities = Column(JSONType, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=SpaceStatus.AVAILABLE.value, index=True)
    location = Column(String(255), nullable=True)
    image_url = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_capacity_positive"),
        CheckConstraint("hourly_rate >= 0", name="check_rate_non_negative"),
        CheckConstraint(
            "type IN ('desk', 'office', 'meeting_room', 'conference_room')",
            name="ck_spaces_type",
        ),
        CheckConstraint(
            "status IN ('available', 'occupied', 'maintenance')",
            name="ck_spaces_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Space {self.id}: {self.name} ({self.type}) @ {self.hourly_rate}/h>"

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_available) and self.status == SpaceStatus.AVAILABLE.value
