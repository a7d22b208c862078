# backend/coworking/schemas/booking.py
"""
Booking schemas.

Request bodies use snake_case field names and also accept the camelCase
names used by the web client (``startTime``, ``paymentMethod``,
``isRecurring`` and so on).
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator

from ..core.enums import BookingStatus, PaymentMethod
from .base import Money, StandardizedModel, StrictRequestModel


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class RecurrenceFields(StrictRequestModel):
    is_recurring: Optional[bool] = Field(
        None, validation_alias=_alias("is_recurring", "isRecurring")
    )
    recurring_days: Optional[List[int]] = Field(
        None,
        validation_alias=_alias("recurring_days", "recurringDays"),
        description="Weekdays to repeat on; 0 is Monday, 6 is Sunday",
    )
    recurring_end_date: Optional[date] = Field(
        None, validation_alias=_alias("recurring_end_date", "recurringEndDate")
    )

    @field_validator("recurring_end_date", mode="before")
    @classmethod
    def _date_part(cls, v: Any) -> Any:
        # Accept full ISO timestamps from date pickers
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v

    @model_validator(mode="after")
    def _recurrence_complete(self) -> "RecurrenceFields":
        if self.is_recurring:
            if not self.recurring_days:
                raise ValueError("recurring_days is required for recurring bookings")
            if self.recurring_end_date is None:
                raise ValueError("recurring_end_date is required for recurring bookings")
        return self


class BookingCreate(RecurrenceFields):
    """Create a booking for one space over [start_time, end_time)."""

    space_id: str = Field(..., validation_alias=_alias("space_id", "spaceId", "workspaceId"))
    start_time: datetime = Field(..., validation_alias=_alias("start_time", "startTime"))
    end_time: datetime = Field(..., validation_alias=_alias("end_time", "endTime"))
    payment_method: PaymentMethod = Field(
        ..., validation_alias=_alias("payment_method", "paymentMethod")
    )
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class BookingUpdate(RecurrenceFields):
    """Change the time range, notes or recurrence of an existing booking."""

    start_time: Optional[datetime] = Field(None, validation_alias=_alias("start_time", "startTime"))
    end_time: Optional[datetime] = Field(None, validation_alias=_alias("end_time", "endTime"))
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)


class SpaceSummary(StandardizedModel):
    id: str
    name: str
    type: str
    hourly_rate: Money


class PaymentSummary(StandardizedModel):
    id: str
    amount: Money
    status: str
    payment_method: str
    stripe_session_id: Optional[str] = None
    refund_amount: Optional[Money] = None


class BookingResponse(StandardizedModel):
    id: str
    user_id: str
    space_id: str
    start_time: datetime
    end_time: datetime
    status: str
    payment_method: str
    payment_status: str
    total_amount: Money
    notes: Optional[str] = None
    recurring_group_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    space: Optional[SpaceSummary] = None
    payments: List[PaymentSummary] = Field(default_factory=list)


class CheckoutInfo(StandardizedModel):
    session_id: Optional[str] = None
    url: Optional[str] = None


class BookingCreateResponse(StandardizedModel):
    booking: BookingResponse
    recurring_bookings: List[BookingResponse] = Field(default_factory=list)
    skipped_dates: List[str] = Field(default_factory=list)
    checkout: Optional[CheckoutInfo] = None
    side_effects: Dict[str, str] = Field(default_factory=dict)


class BookingModifyResponse(StandardizedModel):
    booking: BookingResponse
    price_difference: Money
    additional_payment: Optional[Dict[str, Any]] = None
    refund: Optional[Dict[str, Any]] = None
    recurring_bookings: List[BookingResponse] = Field(default_factory=list)
    skipped_dates: List[str] = Field(default_factory=list)
    side_effects: Dict[str, str] = Field(default_factory=dict)


class BookingCancelResponse(StandardizedModel):
    booking: BookingResponse
    refund: Dict[str, Any]
    cancelled_siblings: List[str] = Field(default_factory=list)
    side_effects: Dict[str, str] = Field(default_factory=dict)


class BookingListResponse(StandardizedModel):
    items: List[BookingResponse]
    total: int
    skip: int = 0
    limit: int = 0
