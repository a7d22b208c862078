# backend/coworking/routes/user.py
"""
Account self-service routes.

Endpoints:
    GET /user/profile, PUT /user/profile - Read and edit the profile
    PUT /user/security/password - Change password
    GET /user/activities - Latest account activity
    POST /user/account/delete - Request account deletion
    DELETE /user/account/delete - Withdraw the deletion request
    GET /user/dashboard/stats - Booking totals
    GET /user/dashboard/recent-bookings - Latest bookings
"""

import asyncio
from typing import List

from fastapi import APIRouter, Depends

from ..api.dependencies import get_booking_service, get_current_user, get_user_service
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.auth import UserResponse
from ..schemas.booking import BookingResponse
from ..schemas.user import (
    AccountDeletionResponse,
    ActivityResponse,
    DashboardStats,
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
)
from ..services.booking_service import BookingService
from ..services.user_service import UserService
from .bookings import to_responses

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    try:
        user = await asyncio.to_thread(
            user_service.update_profile, current_user, payload.model_dump(exclude_unset=True)
        )
        return UserResponse.model_validate(user)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/security/password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    try:
        await asyncio.to_thread(
            user_service.change_password,
            current_user,
            payload.current_password,
            payload.new_password,
        )
        return MessageResponse(message="Password updated successfully")
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/activities", response_model=List[ActivityResponse])
async def list_activities(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> List[ActivityResponse]:
    activities = await asyncio.to_thread(user_service.get_activities, current_user)
    return [ActivityResponse.model_validate(activity) for activity in activities]


@router.post("/account/delete", response_model=AccountDeletionResponse)
async def request_account_deletion(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> AccountDeletionResponse:
    try:
        result = await asyncio.to_thread(user_service.request_account_deletion, current_user)
        return AccountDeletionResponse(message="Account deletion requested", **result)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/account/delete", response_model=MessageResponse)
async def cancel_account_deletion(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    try:
        await asyncio.to_thread(user_service.cancel_account_deletion, current_user)
        return MessageResponse(message="Account deletion request cancelled")
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> DashboardStats:
    stats = await asyncio.to_thread(user_service.get_dashboard_stats, current_user)
    return DashboardStats(**stats)


@router.get("/dashboard/recent-bookings", response_model=List[BookingResponse])
async def recent_bookings(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    bookings = await asyncio.to_thread(user_service.get_recent_bookings, current_user)
    return to_responses(booking_service, bookings)
