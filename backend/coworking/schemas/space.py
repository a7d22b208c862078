# backend/coworking/schemas/space.py
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, Field

from ..core.enums import SpaceStatus, SpaceType
from .base import Money, StandardizedModel, StrictRequestModel


class SpaceBase(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: SpaceType
    capacity: int = Field(..., gt=0)
    hourly_rate: Money = Field(..., validation_alias=AliasChoices("hourly_rate", "hourlyRate"))
    description: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    is_available: bool = Field(True, validation_alias=AliasChoices("is_available", "isAvailable"))
    status: SpaceStatus = SpaceStatus.AVAILABLE
    location: Optional[str] = Field(None, max_length=255)
    image_url: Optional[str] = Field(
        None, max_length=512, validation_alias=AliasChoices("image_url", "imageUrl")
    )


class SpaceCreate(SpaceBase):
    pass


class SpaceUpdate(StrictRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[SpaceType] = None
    capacity: Optional[int] = Field(None, gt=0)
    hourly_rate: Optional[Money] = Field(
        None, validation_alias=AliasChoices("hourly_rate", "hourlyRate")
    )
    description: Optional[str] = None
    amenities: Optional[List[str]] = None
    is_available: Optional[bool] = Field(
        None, validation_alias=AliasChoices("is_available", "isAvailable")
    )
    status: Optional[SpaceStatus] = None
    location: Optional[str] = Field(None, max_length=255)
    image_url: Optional[str] = Field(
        None, max_length=512, validation_alias=AliasChoices("image_url", "imageUrl")
    )


class SpaceResponse(StandardizedModel):
    id: str
    name: str
    type: str
    capacity: int
    hourly_rate: Money
    description: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    is_available: bool
    status: str
    location: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class SpaceTypeOption(StandardizedModel):
    value: str
    label: str


class ConflictingBooking(StandardizedModel):
    id: str
    start_time: datetime
    end_time: datetime
    status: str


class AvailabilityResponse(StandardizedModel):
    space_id: str
    available: bool
    conflicting_bookings: List[ConflictingBooking] = Field(default_factory=list)
