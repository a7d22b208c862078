# backend/coworking/schemas/admin.py
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, EmailStr, Field

from ..core.enums import MembershipType, UserRole, UserStatus
from .auth import UserResponse
from .base import StandardizedModel, StrictRequestModel


class AdminUserUpdate(StrictRequestModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    membership_type: Optional[MembershipType] = Field(
        None, validation_alias=AliasChoices("membership_type", "membershipType")
    )
    status: Optional[UserStatus] = None
    phone: Optional[str] = Field(None, max_length=32)
    company: Optional[str] = Field(None, max_length=255)


class UserStatusUpdate(StrictRequestModel):
    status: UserStatus


class UserListResponse(StandardizedModel):
    items: List[UserResponse]
    total: int
    skip: int = 0
    limit: int = 0


class AnalyticsTotals(StandardizedModel):
    revenue: float
    bookings: int
    active_spaces: int


class AnalyticsResponse(StandardizedModel):
    start_date: date
    end_date: date
    revenue_by_day: List[Dict[str, Any]]
    bookings_by_day: List[Dict[str, Any]]
    occupancy_by_day: List[Dict[str, Any]]
    payment_methods: List[Dict[str, Any]]
    popular_spaces: List[Dict[str, Any]]
    totals: AnalyticsTotals


class AdminDashboardStats(StandardizedModel):
    total_users: int
    total_spaces: int
    active_bookings: int
    total_revenue: float
