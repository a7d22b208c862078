# backend/coworking/schemas/settings.py
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel


class SettingItem(StrictRequestModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any
    description: Optional[str] = None


class SettingsUpdate(StrictRequestModel):
    settings: List[SettingItem] = Field(..., min_length=1)


class SettingResponse(StandardizedModel):
    key: str
    value: Any = None
    description: Optional[str] = None
    updated_at: Optional[datetime] = None
