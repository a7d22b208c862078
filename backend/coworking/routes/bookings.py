# backend/coworking/routes/bookings.py
"""
Member booking routes.

All business logic is delegated to BookingService; these handlers only
translate between HTTP and the service.

Endpoints:
    POST /bookings/create - Create a booking (optionally recurring)
    GET /bookings/my-bookings - Current user's bookings
    GET /bookings/{booking_id} - One booking
    PUT /bookings/{booking_id} - Change time range, notes or recurrence
    POST /bookings/{booking_id}/cancel - Cancel with policy refund
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, status

from ..api.dependencies import get_booking_service, get_current_user
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.booking import Booking
from ..models.user import User
from ..schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingModifyResponse,
    BookingResponse,
    BookingUpdate,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def to_response(service: BookingService, booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(service.serialize_booking(booking))


def to_responses(service: BookingService, bookings: List[Booking]) -> List[BookingResponse]:
    return [to_response(service, booking) for booking in bookings]


@router.post("/create", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    try:
        result: Dict[str, Any] = await asyncio.to_thread(
            booking_service.create_booking, current_user, payload
        )
        return BookingCreateResponse(
            booking=to_response(booking_service, result["booking"]),
            recurring_bookings=to_responses(booking_service, result["recurring_bookings"]),
            skipped_dates=result["skipped_dates"],
            checkout=result["checkout"],
            side_effects=result["side_effects"],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/my-bookings", response_model=List[BookingResponse])
async def list_my_bookings(
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    bookings = await asyncio.to_thread(booking_service.list_user_bookings, current_user)
    return to_responses(booking_service, bookings)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, current_user, booking_id)
        return to_response(booking_service, booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}", response_model=BookingModifyResponse)
async def modify_booking(
    booking_id: str,
    payload: BookingUpdate,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingModifyResponse:
    try:
        result: Dict[str, Any] = await asyncio.to_thread(
            booking_service.modify_booking, current_user, booking_id, payload
        )
        return BookingModifyResponse(
            booking=to_response(booking_service, result["booking"]),
            price_difference=result["price_difference"],
            additional_payment=result["additional_payment"],
            refund=result["refund"],
            recurring_bookings=to_responses(booking_service, result["recurring_bookings"]),
            skipped_dates=result["skipped_dates"],
            side_effects=result["side_effects"],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancelRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCancelResponse:
    try:
        result: Dict[str, Any] = await asyncio.to_thread(
            booking_service.cancel_booking,
            current_user,
            booking_id,
            payload.reason if payload else None,
        )
        return BookingCancelResponse(
            booking=to_response(booking_service, result["booking"]),
            refund=result["refund"],
            cancelled_siblings=result["cancelled_siblings"],
            side_effects=result["side_effects"],
        )
    except DomainException as e:
        handle_domain_exception(e)
