"""
Payment model for Stripe and cash payments.

One booking may accumulate several payment rows: the original charge and,
after a modification that raises the price, an additional charge. Rows are
never deleted; refunds are recorded on the row they refund.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func
import ulid

from ..core.enums import PaymentStatus
from ..database import Base
from .types import JSONType


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_method = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)

    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    stripe_session_id = Column(String(255), nullable=True, index=True)

    refund_id = Column(String(255), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    payment_metadata = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed', 'refunded')",
            name="ck_payments_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id}: booking={self.booking_id} {self.amount} {self.status}>"
