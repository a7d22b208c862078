# backend/coworking/routes/admin/bookings.py
"""Admin booking oversight."""

import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_booking_service, require_admin
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.enums import BookingStatus
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.booking import BookingListResponse, BookingResponse, BookingStatusUpdate
from ...services.booking_service import BookingService
from ..bookings import to_response, to_responses

router = APIRouter(prefix="/bookings", tags=["admin-bookings"])


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    space_id: Optional[str] = Query(None, alias="spaceId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    _: User = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    bookings, total = await asyncio.to_thread(
        booking_service.list_bookings,
        status=booking_status.value if booking_status else None,
        space_id=space_id,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return BookingListResponse(
        items=to_responses(booking_service, bookings), total=total, skip=skip, limit=limit
    )


@router.put("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    admin: User = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status, admin, booking_id, payload.status, payload.reason
        )
        return to_response(booking_service, booking)
    except DomainException as e:
        handle_domain_exception(e)
