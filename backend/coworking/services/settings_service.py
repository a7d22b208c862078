"""
Platform settings service.

Settings are stored as JSON text keyed by name. Missing keys fall back to
``DEFAULT_SETTINGS`` so a fresh database behaves sensibly.
"""

from dataclasses import dataclass
import json
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "workingHours": {
        "value": {"start": "09:00", "end": "18:00"},
        "description": "Default working hours",
    },
    "bookingRules": {
        "value": {"maxDurationHours": 8, "minAdvanceHours": 1, "maxAdvanceDays": 30},
        "description": "Booking rules and restrictions",
    },
    "notifications": {
        "value": {"emailEnabled": True, "smsEnabled": False},
        "description": "Notification settings",
    },
}


@dataclass(frozen=True)
class BookingRules:
    max_duration_hours: float
    min_advance_hours: float
    max_advance_days: float


class SettingsService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_settings_repository(db)

    def get_value(self, key: str) -> Any:
        setting = self.repository.get_by_key(key)
        if setting is None:
            default = DEFAULT_SETTINGS.get(key)
            return default["value"] if default else None
        try:
            return json.loads(setting.value)
        except ValueError:
            self.logger.warning(f"Setting {key} holds invalid JSON; using raw value")
            return setting.value

    @BaseService.measure_operation("get_all_settings")
    def get_all(self) -> List[Dict[str, Any]]:
        stored = {setting.key: setting for setting in self.repository.list_all()}
        keys = sorted(set(stored) | set(DEFAULT_SETTINGS))
        result = []
        for key in keys:
            setting = stored.get(key)
            description = (
                setting.description
                if setting is not None and setting.description is not None
                else DEFAULT_SETTINGS.get(key, {}).get("description")
            )
            result.append(
                {
                    "key": key,
                    "value": self.get_value(key),
                    "description": description,
                    "updated_at": setting.updated_at if setting is not None else None,
                }
            )
        return result

    @BaseService.measure_operation("update_settings")
    def update(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for item in items:
            key = item.get("key")
            if not key:
                raise ValidationException("Each setting requires a key")
            if key == "bookingRules":
                self._validate_booking_rules(item.get("value"))

        with self.transaction():
            for item in items:
                self.repository.upsert(
                    item["key"], json.dumps(item.get("value")), item.get("description")
                )
        self.log_operation("settings_updated", keys=[item["key"] for item in items])
        return self.get_all()

    def _validate_booking_rules(self, value: Any) -> None:
        if not isinstance(value, dict):
            raise ValidationException("bookingRules must be an object")
        for field in ("maxDurationHours", "minAdvanceHours", "maxAdvanceDays"):
            raw = value.get(field, DEFAULT_SETTINGS["bookingRules"]["value"][field])
            if not isinstance(raw, (int, float)) or isinstance(raw, bool) or raw < 0:
                raise ValidationException(f"bookingRules.{field} must be a non-negative number")

    def get_booking_rules(self) -> BookingRules:
        defaults = DEFAULT_SETTINGS["bookingRules"]["value"]
        value = self.get_value("bookingRules")
        if not isinstance(value, dict):
            value = {}
        return BookingRules(
            max_duration_hours=float(value.get("maxDurationHours", defaults["maxDurationHours"])),
            min_advance_hours=float(value.get("minAdvanceHours", defaults["minAdvanceHours"])),
            max_advance_days=float(value.get("maxAdvanceDays", defaults["maxAdvanceDays"])),
        )

    def email_notifications_enabled(self) -> bool:
        value = self.get_value("notifications")
        if not isinstance(value, dict):
            return True
        return bool(value.get("emailEnabled", True))
