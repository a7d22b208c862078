# backend/coworking/repositories/analytics_repository.py
"""
Read-only aggregation queries for the admin back-office.

Date ranges are inclusive on both ends and compared on ``DATE(column)``
so the same queries run on SQLite and PostgreSQL.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import List

from sqlalchemy import and_, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, PaymentStatus, SpaceStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.payment import Payment
from ..models.space import Space
from ..models.user import User

logger = logging.getLogger(__name__)


@dataclass
class DailyValue:
    date: str
    value: float


@dataclass
class MethodBreakdown:
    method: str
    count: int
    total: float


@dataclass
class PopularSpace:
    space_id: str
    name: str
    bookings: int


def _as_day(value: object) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)


class AnalyticsRepository:
    """Aggregations over bookings, payments, spaces and users."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logger

    def revenue_by_day(self, start_date: date, end_date: date) -> List[DailyValue]:
        day = func.date(Payment.created_at)
        try:
            rows = (
                self.db.query(day.label("date"), func.sum(Payment.amount).label("total"))
                .filter(
                    and_(
                        Payment.status == PaymentStatus.SUCCEEDED.value,
                        day >= start_date,
                        day <= end_date,
                    )
                )
                .group_by(day)
                .order_by(day)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating revenue: {str(e)}")
            raise RepositoryException(f"Failed to aggregate revenue: {str(e)}")
        return [DailyValue(date=_as_day(row.date), value=float(row.total or 0)) for row in rows]

    def bookings_by_day(self, start_date: date, end_date: date) -> List[DailyValue]:
        day = func.date(Booking.created_at)
        try:
            rows = (
                self.db.query(day.label("date"), func.count(Booking.id).label("count"))
                .filter(and_(day >= start_date, day <= end_date))
                .group_by(day)
                .order_by(day)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating bookings: {str(e)}")
            raise RepositoryException(f"Failed to aggregate bookings: {str(e)}")
        return [DailyValue(date=_as_day(row.date), value=float(row.count)) for row in rows]

    def confirmed_bookings_by_start_day(self, start_date: date, end_date: date) -> List[DailyValue]:
        day = func.date(Booking.start_time)
        try:
            rows = (
                self.db.query(day.label("date"), func.count(Booking.id).label("count"))
                .filter(
                    and_(
                        Booking.status == BookingStatus.CONFIRMED.value,
                        day >= start_date,
                        day <= end_date,
                    )
                )
                .group_by(day)
                .order_by(day)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating occupancy: {str(e)}")
            raise RepositoryException(f"Failed to aggregate occupancy: {str(e)}")
        return [DailyValue(date=_as_day(row.date), value=float(row.count)) for row in rows]

    def payment_method_breakdown(self, start_date: date, end_date: date) -> List[MethodBreakdown]:
        day = func.date(Payment.created_at)
        rows = (
            self.db.query(
                Payment.payment_method.label("method"),
                func.count(Payment.id).label("count"),
                func.coalesce(func.sum(Payment.amount), 0).label("total"),
            )
            .filter(and_(day >= start_date, day <= end_date))
            .group_by(Payment.payment_method)
            .all()
        )
        return [
            MethodBreakdown(method=row.method, count=int(row.count), total=float(row.total or 0))
            for row in rows
        ]

    def popular_spaces(
        self, start_date: date, end_date: date, limit: int = 5
    ) -> List[PopularSpace]:
        day = func.date(Booking.created_at)
        rows = (
            self.db.query(
                Space.id.label("space_id"),
                Space.name.label("name"),
                func.count(Booking.id).label("bookings"),
            )
            .join(Booking, Booking.space_id == Space.id)
            .filter(and_(day >= start_date, day <= end_date))
            .group_by(Space.id, Space.name)
            .order_by(desc("bookings"))
            .limit(limit)
            .all()
        )
        return [
            PopularSpace(space_id=row.space_id, name=row.name, bookings=int(row.bookings))
            for row in rows
        ]

    def total_revenue(self, start_date: date | None = None, end_date: date | None = None) -> float:
        query = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.status == PaymentStatus.SUCCEEDED.value
        )
        if start_date is not None:
            query = query.filter(func.date(Payment.created_at) >= start_date)
        if end_date is not None:
            query = query.filter(func.date(Payment.created_at) <= end_date)
        return float(query.scalar() or 0)

    def total_bookings(self, start_date: date, end_date: date) -> int:
        day = func.date(Booking.created_at)
        return int(
            self.db.query(func.count(Booking.id))
            .filter(and_(day >= start_date, day <= end_date))
            .scalar()
            or 0
        )

    def count_spaces(self) -> int:
        return int(self.db.query(func.count(Space.id)).scalar() or 0)

    def count_active_spaces(self) -> int:
        return int(
            self.db.query(func.count(Space.id))
            .filter(Space.status == SpaceStatus.AVAILABLE.value)
            .scalar()
            or 0
        )

    def count_users(self) -> int:
        return int(self.db.query(func.count(User.id)).scalar() or 0)

    def count_active_bookings(self, now: datetime) -> int:
        """Confirmed bookings that have not ended yet."""
        return int(
            self.db.query(func.count(Booking.id))
            .filter(Booking.status == BookingStatus.CONFIRMED.value, Booking.end_time >= now)
            .scalar()
            or 0
        )
