# backend/coworking/routes/payments.py
"""
Member payment routes and the Stripe webhook.

Endpoints:
    POST /payments/create-payment-intent - PaymentIntent for a booking's pending payment
    POST /payments/create-checkout-session - Checkout Session for the same
    GET /payments/payment-methods - Saved cards
    GET /payments/history - Current user's payments
    POST /payments/webhook - Stripe event delivery (signature verified)
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request

from ..api.dependencies import get_current_user, get_payment_service
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.payment import (
    CheckoutSessionResponse,
    PaymentBookingRequest,
    PaymentIntentResponse,
    PaymentMethodResponse,
    PaymentResponse,
    WebhookResponse,
)
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    payload: PaymentBookingRequest,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(
            payment_service.create_payment_intent, current_user, payload.booking_id
        )
        return PaymentIntentResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: PaymentBookingRequest,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CheckoutSessionResponse:
    try:
        result = await asyncio.to_thread(
            payment_service.create_checkout_session, current_user, payload.booking_id
        )
        return CheckoutSessionResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def list_payment_methods(
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> List[PaymentMethodResponse]:
    try:
        methods = await asyncio.to_thread(payment_service.list_payment_methods, current_user)
        return [PaymentMethodResponse(**method) for method in methods]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history", response_model=List[PaymentResponse])
async def payment_history(
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> List[PaymentResponse]:
    payments = await asyncio.to_thread(payment_service.payment_history, current_user)
    return [PaymentResponse.model_validate(payment) for payment in payments]


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """Verify and apply a Stripe event. The body must be read raw for the signature."""
    payload = await request.body()
    try:
        result = await asyncio.to_thread(
            payment_service.handle_webhook, payload, stripe_signature
        )
        return WebhookResponse(**result)
    except DomainException as e:
        logger.warning(f"Rejected Stripe webhook: {e.message}")
        handle_domain_exception(e)
