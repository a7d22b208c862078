# backend/coworking/schemas/payment.py
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field

from .base import Money, StandardizedModel, StrictRequestModel


class PaymentBookingRequest(StrictRequestModel):
    booking_id: str = Field(..., validation_alias=AliasChoices("booking_id", "bookingId"))


class PaymentIntentResponse(StandardizedModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    amount: Money


class CheckoutSessionResponse(StandardizedModel):
    session_id: str
    url: Optional[str] = None


class PaymentMethodResponse(StandardizedModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PaymentResponse(StandardizedModel):
    id: str
    booking_id: str
    user_id: str
    amount: Money
    currency: str
    status: str
    payment_method: str
    description: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_session_id: Optional[str] = None
    refund_amount: Optional[Money] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PaymentListResponse(StandardizedModel):
    items: List[PaymentResponse]
    total: int
    skip: int = 0
    limit: int = 0


class RefundRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class PaymentStatsResponse(StandardizedModel):
    start_date: date
    end_date: date
    total_revenue: float
    method_stats: List[Dict[str, Any]] = Field(default_factory=list)
    daily_revenue: List[Dict[str, Any]] = Field(default_factory=list)


class WebhookResponse(StandardizedModel):
    received: bool = True
    event_type: Optional[str] = None
    handled: bool = False
