"""
Admin analytics and dashboard figures.

All ranges are inclusive calendar dates in UTC.
"""

from datetime import date, timedelta
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_ANALYTICS_DAYS, POPULAR_SPACES_LIMIT
from ..core.exceptions import ValidationException
from ..core.timezone_utils import utcnow
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def occupancy_rate(bookings: float, total_spaces: int) -> float:
    """Share of spaces booked, as a percentage capped at 100."""
    if total_spaces <= 0:
        return 0.0
    return round(min(100.0, bookings * 100.0 / total_spaces), 2)


class AnalyticsService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_analytics_repository(db)

    @staticmethod
    def resolve_range(
        start_date: Optional[date], end_date: Optional[date], default_days: int
    ) -> Tuple[date, date]:
        end = end_date or utcnow().date()
        start = start_date or end - timedelta(days=default_days)
        if start > end:
            raise ValidationException("startDate must not be after endDate", code="INVALID_RANGE")
        return start, end

    @BaseService.measure_operation("get_analytics")
    def get_analytics(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        start, end = self.resolve_range(start_date, end_date, DEFAULT_ANALYTICS_DAYS)
        total_spaces = self.repository.count_spaces()

        occupancy = [
            {
                "date": row.date,
                "bookings": int(row.value),
                "rate": occupancy_rate(row.value, total_spaces),
            }
            for row in self.repository.confirmed_bookings_by_start_day(start, end)
        ]
        return {
            "start_date": start,
            "end_date": end,
            "revenue_by_day": [vars(row) for row in self.repository.revenue_by_day(start, end)],
            "bookings_by_day": [vars(row) for row in self.repository.bookings_by_day(start, end)],
            "occupancy_by_day": occupancy,
            "payment_methods": [
                vars(row) for row in self.repository.payment_method_breakdown(start, end)
            ],
            "popular_spaces": [
                vars(row)
                for row in self.repository.popular_spaces(start, end, limit=POPULAR_SPACES_LIMIT)
            ],
            "totals": {
                "revenue": self.repository.total_revenue(start, end),
                "bookings": self.repository.total_bookings(start, end),
                "active_spaces": self.repository.count_active_spaces(),
            },
        }

    @BaseService.measure_operation("get_admin_dashboard_stats")
    def get_dashboard_stats(self) -> Dict[str, Any]:
        return {
            "total_users": self.repository.count_users(),
            "total_spaces": self.repository.count_spaces(),
            "active_bookings": self.repository.count_active_bookings(utcnow()),
            "total_revenue": self.repository.total_revenue(),
        }
