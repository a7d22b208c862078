# backend/coworking/schemas/user.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, EmailStr, Field

from .base import Money, StandardizedModel, StrictRequestModel


class ProfileUpdate(StrictRequestModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    company: Optional[str] = Field(None, max_length=255)
    billing_address: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("billing_address", "billingAddress")
    )
    notification_preferences: Optional[Dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("notification_preferences", "notificationPreferences"),
    )


class PasswordChange(StrictRequestModel):
    current_password: str = Field(
        ..., validation_alias=AliasChoices("current_password", "currentPassword")
    )
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        validation_alias=AliasChoices("new_password", "newPassword"),
    )


class ActivityResponse(StandardizedModel):
    id: str
    type: str
    description: str
    activity_metadata: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
    created_at: Optional[datetime] = None


class DashboardStats(StandardizedModel):
    active_bookings: int
    total_hours: float
    total_spent: Money


class AccountDeletionResponse(StandardizedModel):
    message: str
    deletion_requested_at: Optional[datetime] = None
    side_effects: Dict[str, str] = Field(default_factory=dict)


class MessageResponse(StandardizedModel):
    message: str


class ActivityListResponse(StandardizedModel):
    items: List[ActivityResponse]
