"""
Workspace catalog service.

Members browse bookable spaces and check availability; administrators
manage the catalog. A space with pending or confirmed bookings cannot be
deleted.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import SpaceStatus, SpaceType
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..models.space import Space
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

SPACE_TYPE_LABELS = {
    SpaceType.DESK: "Hot Desk",
    SpaceType.OFFICE: "Private Office",
    SpaceType.MEETING_ROOM: "Meeting Room",
    SpaceType.CONFERENCE_ROOM: "Conference Room",
}

EDITABLE_FIELDS = (
    "name",
    "type",
    "capacity",
    "hourly_rate",
    "description",
    "amenities",
    "is_available",
    "status",
    "location",
    "image_url",
)


class SpaceService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_space_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def list_available(self, space_type: Optional[str] = None) -> List[Space]:
        return self.repository.list_available(space_type)

    def list_all(self) -> List[Space]:
        return self.repository.list_all()

    def get_space(self, space_id: str) -> Space:
        space = self.repository.get_by_id(space_id)
        if space is None:
            raise NotFoundException("Workspace not found", code="SPACE_NOT_FOUND")
        return space

    @staticmethod
    def get_types() -> List[Dict[str, str]]:
        return [{"value": t.value, "label": SPACE_TYPE_LABELS[t]} for t in SpaceType]

    @BaseService.measure_operation("check_availability")
    def check_availability(self, space_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        """Whether [start, end) is free, plus the blocking bookings when it is not."""
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ValidationException("End time must be after start time")
        space = self.get_space(space_id)
        conflicts = self.booking_repository.find_conflicts(space.id, start, end)
        return {
            "space_id": space.id,
            "available": space.is_bookable and not conflicts,
            "conflicting_bookings": [
                {
                    "id": b.id,
                    "start_time": ensure_utc(b.start_time),
                    "end_time": ensure_utc(b.end_time),
                    "status": b.status,
                }
                for b in conflicts
            ],
        }

    def _validate(self, data: Dict[str, Any]) -> None:
        if "name" in data and not str(data["name"] or "").strip():
            raise ValidationException("Name is required")
        if "type" in data and data["type"] not in {t.value for t in SpaceType}:
            raise ValidationException(f"Invalid space type: {data['type']}")
        if "status" in data and data["status"] not in {s.value for s in SpaceStatus}:
            raise ValidationException(f"Invalid space status: {data['status']}")
        if "capacity" in data and (data["capacity"] is None or int(data["capacity"]) <= 0):
            raise ValidationException("Capacity must be greater than zero")
        if "hourly_rate" in data:
            if data["hourly_rate"] is None or Decimal(str(data["hourly_rate"])) < 0:
                raise ValidationException("Hourly rate must not be negative")

    @BaseService.measure_operation("create_space")
    def create_space(self, data: Dict[str, Any]) -> Space:
        fields = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        for required in ("name", "type", "capacity", "hourly_rate"):
            if fields.get(required) is None:
                raise ValidationException(f"{required} is required")
        self._validate(fields)
        fields.setdefault("amenities", [])
        with self.transaction():
            space = self.repository.create(**fields)
        self.log_operation("space_created", space_id=space.id)
        return space

    @BaseService.measure_operation("update_space")
    def update_space(self, space_id: str, data: Dict[str, Any]) -> Space:
        space = self.get_space(space_id)
        changes = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        self._validate(changes)
        with self.transaction():
            updated = self.repository.update(space.id, **changes)
        self.log_operation("space_updated", space_id=space.id, fields=sorted(changes))
        return updated or space

    @BaseService.measure_operation("delete_space")
    def delete_space(self, space_id: str) -> None:
        space = self.get_space(space_id)
        if self.booking_repository.count_active_for_space(space.id):
            raise BusinessRuleException(
                "Cannot delete a workspace with active bookings", code="SPACE_HAS_BOOKINGS"
            )
        try:
            with self.transaction():
                self.repository.delete(space.id)
        except RepositoryException as e:
            self.logger.warning(f"Could not delete space {space.id}: {str(e)}")
            raise ConflictException(
                "Workspace has booking history and cannot be deleted; mark it unavailable instead",
                code="SPACE_HAS_HISTORY",
            )
        self.log_operation("space_deleted", space_id=space.id)
