"""Payment data access."""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import PaymentStatus
from ..core.exceptions import RepositoryException
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_for_booking(self, booking_id: str) -> List[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.booking_id == booking_id)
                .order_by(Payment.created_at.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payments for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payments: {str(e)}")

    def get_latest_for_booking(
        self, booking_id: str, status: Optional[str] = None
    ) -> Optional[Payment]:
        query = self.db.query(Payment).filter(Payment.booking_id == booking_id)
        if status:
            query = query.filter(Payment.status == status)
        return query.order_by(Payment.created_at.desc(), Payment.id.desc()).first()

    def get_succeeded_for_booking(self, booking_id: str) -> List[Payment]:
        return self.find_by(booking_id=booking_id, status=PaymentStatus.SUCCEEDED.value)

    def get_pending_for_booking(self, booking_id: str) -> List[Payment]:
        return self.find_by(booking_id=booking_id, status=PaymentStatus.PENDING.value)

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Payment]:
        return self.find_one_by(stripe_payment_intent_id=payment_intent_id)

    def get_by_session(self, session_id: str) -> Optional[Payment]:
        return self.find_one_by(stripe_session_id=session_id)

    def get_user_history(self, user_id: str) -> List[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.user_id == user_id)
                .order_by(Payment.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payment history: {str(e)}")
            raise RepositoryException(f"Failed to get payment history: {str(e)}")

    def total_succeeded_for_user(self, user_id: str) -> float:
        total = (
            self.db.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter(Payment.user_id == user_id, Payment.status == PaymentStatus.SUCCEEDED.value)
            .scalar()
        )
        return float(total or 0)

    def list_payments(
        self,
        *,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Payment], int]:
        try:
            query = self.db.query(Payment)
            if status:
                query = query.filter(Payment.status == status)
            if payment_method:
                query = query.filter(Payment.payment_method == payment_method)
            if start_date:
                query = query.filter(Payment.created_at >= start_date)
            if end_date:
                query = query.filter(Payment.created_at <= end_date)
            total = query.count()
            rows = query.order_by(Payment.created_at.desc()).offset(skip).limit(limit).all()
            return rows, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing payments: {str(e)}")
            raise RepositoryException(f"Failed to list payments: {str(e)}")
