# backend/coworking/repositories/booking_repository.py
"""
Booking Repository for the coworking platform.

This repository handles:
- Booking CRUD operations
- Time-range conflict queries per space
- Recurring group lookups
- Per-user listings and counters used by dashboards
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BLOCKING_BOOKING_STATUSES, BookingStatus
from ..core.exceptions import RepositoryException
from ..domain.time_ranges import find_overlapping, has_overlap
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def find_conflicts(
        self,
        space_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
        statuses: Sequence[str] = BLOCKING_BOOKING_STATUSES,
    ) -> List[Booking]:
        """
        Bookings on ``space_id`` whose interval overlaps [start_time, end_time).

        Only bookings in a blocking status are considered.
        """
        candidates = self._conflict_candidates(space_id, start_time, end_time, statuses)
        return find_overlapping(start_time, end_time, candidates, exclude_booking_id)

    def has_conflict(
        self,
        space_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        candidates = self._conflict_candidates(
            space_id, start_time, end_time, BLOCKING_BOOKING_STATUSES
        )
        return has_overlap(start_time, end_time, candidates, exclude_booking_id)

    def _conflict_candidates(
        self,
        space_id: str,
        start_time: datetime,
        end_time: datetime,
        statuses: Sequence[str],
    ) -> List[Booking]:
        # Closed window in SQL; the half-open test runs in find_overlapping
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.space_id == space_id,
                    Booking.status.in_(list(statuses)),
                    Booking.start_time <= end_time,
                    Booking.end_time >= start_time,
                )
                .order_by(Booking.start_time.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def get_for_user(self, booking_id: str, user_id: str) -> Optional[Booking]:
        return self.find_one_by(id=booking_id, user_id=user_id)

    def get_user_bookings(self, user_id: str, limit: Optional[int] = None) -> List[Booking]:
        """User's bookings, most recently created first."""
        try:
            query = (
                self.db.query(Booking)
                .filter(Booking.user_id == user_id)
                .order_by(Booking.created_at.desc(), Booking.start_time.desc())
            )
            if limit:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get user bookings: {str(e)}")

    def get_group_members(self, group_id: str) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.recurring_group_id == group_id)
                .order_by(Booking.start_time.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting recurring group {group_id}: {str(e)}")
            raise RepositoryException(f"Failed to get recurring group: {str(e)}")

    def get_future_group_members(
        self, group_id: str, after: datetime, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """Siblings starting after ``after`` that are still pending or confirmed."""
        try:
            query = self.db.query(Booking).filter(
                Booking.recurring_group_id == group_id,
                Booking.start_time > after,
                Booking.status.in_(list(BLOCKING_BOOKING_STATUSES)),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_time.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting future siblings for {group_id}: {str(e)}")
            raise RepositoryException(f"Failed to get recurring group: {str(e)}")

    def count_active_for_user(self, user_id: str) -> int:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.status.in_(list(BLOCKING_BOOKING_STATUSES)),
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting active bookings: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def count_active_for_space(self, space_id: str) -> int:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.space_id == space_id,
                    Booking.status.in_(list(BLOCKING_BOOKING_STATUSES)),
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting active bookings: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def get_user_confirmed_and_completed(self, user_id: str) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(
                Booking.user_id == user_id,
                Booking.status.in_(
                    [BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value]
                ),
            )
            .all()
        )

    def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        space_id: Optional[str] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Booking], int]:
        """Admin listing, newest first, with the unpaginated total."""
        try:
            query = self.db.query(Booking)
            if status:
                query = query.filter(Booking.status == status)
            if space_id:
                query = query.filter(Booking.space_id == space_id)
            if user_id:
                query = query.filter(Booking.user_id == user_id)
            if start_date:
                query = query.filter(Booking.start_time >= start_date)
            if end_date:
                query = query.filter(Booking.start_time <= end_date)
            total = query.count()
            rows = query.order_by(Booking.created_at.desc()).offset(skip).limit(limit).all()
            return rows, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")
