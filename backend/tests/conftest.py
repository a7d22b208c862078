# backend/tests/conftest.py
"""
Pytest configuration.

Every test run gets its own throwaway SQLite file. The environment is set
BEFORE any application import so the engine, settings and worker all see
the test configuration.
"""

import os
import tempfile

_TEST_DB_DIR = tempfile.mkdtemp(prefix="coworking-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["IS_TESTING"] = "true"
os.environ["CI"] = "true"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = "re_test_key"

# Never reach the real email provider from any test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

from datetime import datetime, timedelta
from decimal import Decimal
import itertools
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from coworking import models  # noqa: F401  registers tables
from coworking.auth import create_access_token, get_password_hash
from coworking.core.enums import (
    BookingPaymentStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SpaceType,
    UserRole,
)
from coworking.core.exceptions import PaymentProviderException
from coworking.core.timezone_utils import utcnow
from coworking.database import Base, SessionLocal, engine
from coworking.domain.pricing import calculate_price
from coworking.main import app
from coworking.models.booking import Booking
from coworking.models.payment import Payment
from coworking.models.space import Space
from coworking.models.user import User

TEST_PASSWORD = "password123"

# Hashing is slow; every fixture user shares one hash
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db() -> Session:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Users, spaces and bookings
# ============================================================================


def _create_user(db: Session, username: str, email: str, **extra: Any) -> User:
    user = User(username=username, email=email, hashed_password=_PASSWORD_HASH, **extra)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user_factory(db: Session) -> Callable[..., User]:
    counter = itertools.count(1)

    def factory(**extra: Any) -> User:
        n = next(counter)
        username = extra.pop("username", f"member{n}")
        email = extra.pop("email", f"member{n}@example.com")
        return _create_user(db, username, email, **extra)

    return factory


@pytest.fixture
def member(db: Session) -> User:
    return _create_user(db, "alice", "alice@example.com", role=UserRole.MEMBER.value)


@pytest.fixture
def other_member(db: Session) -> User:
    return _create_user(db, "bob", "bob@example.com", role=UserRole.MEMBER.value)


@pytest.fixture
def admin(db: Session) -> User:
    return _create_user(db, "admin", "admin@example.com", role=UserRole.ADMIN.value)


def _headers(user: User) -> Dict[str, str]:
    token = create_access_token({"id": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(member: User) -> Dict[str, str]:
    return _headers(member)


@pytest.fixture
def admin_headers(admin: User) -> Dict[str, str]:
    return _headers(admin)


@pytest.fixture
def headers_for() -> Callable[[User], Dict[str, str]]:
    return _headers


@pytest.fixture
def space(db: Session) -> Space:
    room = Space(
        name="Harbor Meeting Room",
        type=SpaceType.MEETING_ROOM.value,
        capacity=6,
        hourly_rate=Decimal("20.00"),
        amenities=["wifi", "tv"],
        location="Floor 2",
    )
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def hot_desk(db: Session) -> Space:
    desk = Space(
        name="Hot Desk 1",
        type=SpaceType.DESK.value,
        capacity=1,
        hourly_rate=Decimal("8.00"),
        amenities=["wifi"],
    )
    db.add(desk)
    db.commit()
    return desk


def _future_slot(days: int = 3, hour: int = 10, hours: float = 2) -> Tuple[datetime, datetime]:
    day = utcnow() + timedelta(days=days)
    start = day.replace(hour=hour, minute=0, second=0, microsecond=0)
    return start, start + timedelta(hours=hours)


@pytest.fixture
def slot() -> Callable[..., Tuple[datetime, datetime]]:
    """Build a whole-hour slot ``days`` from today, in UTC."""
    return _future_slot


@pytest.fixture
def booking_factory(db: Session) -> Callable[..., Booking]:
    """
    Insert a booking and its payment row directly.

    ``paid=True`` records a succeeded payment; card payments then also get
    a Stripe payment intent id so they can be refunded.
    """
    counter = itertools.count(1)

    def factory(
        user: User,
        space: Space,
        start: datetime,
        end: datetime,
        *,
        payment_method: str = PaymentMethod.CARD.value,
        status: Optional[str] = None,
        paid: bool = False,
        recurring_group_id: Optional[str] = None,
    ) -> Booking:
        amount = calculate_price(space.hourly_rate, start, end)
        if status is None:
            status = (
                BookingStatus.CONFIRMED.value
                if payment_method == PaymentMethod.CARD.value or paid
                else BookingStatus.PENDING.value
            )
        booking = Booking(
            user_id=user.id,
            space_id=space.id,
            start_time=start,
            end_time=end,
            status=status,
            payment_method=payment_method,
            payment_status=(
                BookingPaymentStatus.PAID.value if paid else BookingPaymentStatus.PENDING.value
            ),
            total_amount=amount,
            recurring_group_id=recurring_group_id,
        )
        db.add(booking)
        db.flush()
        n = next(counter)
        payment = Payment(
            booking_id=booking.id,
            user_id=user.id,
            amount=amount,
            currency="USD",
            status=PaymentStatus.SUCCEEDED.value if paid else PaymentStatus.PENDING.value,
            payment_method=payment_method,
            description=f"Booking for {space.name}",
            stripe_payment_intent_id=(
                f"pi_test_{n}" if paid and payment_method == PaymentMethod.CARD.value else None
            ),
            paid_at=utcnow() if paid else None,
        )
        db.add(payment)
        db.commit()
        return booking

    return factory


# ============================================================================
# Stripe
# ============================================================================


class FakeStripeService:
    """
    Stand-in for StripeService that records calls.

    Refund ids are keyed on the idempotency key, the same way Stripe dedupes
    replays. Set ``fail_*`` flags to make a call raise.
    """

    def __init__(self) -> None:
        self.calls: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_checkout = False
        self.fail_refund = False
        self.fail_intent = False
        self.event: Optional[Any] = None
        self.construct_error: Optional[Exception] = None
        self._refunds: Dict[str, str] = {}
        self._ids = itertools.count(1)

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.setdefault(name, []).append(kwargs)

    def get_or_create_customer(self, user: User) -> str:
        self._record("get_or_create_customer", user_id=user.id)
        if not user.stripe_customer_id:
            user.stripe_customer_id = f"cus_{user.id[-8:]}"
        return str(user.stripe_customer_id)

    def create_checkout_session(self, **kwargs: Any) -> Any:
        self._record("create_checkout_session", **kwargs)
        if self.fail_checkout:
            raise PaymentProviderException(details={"booking_id": kwargs.get("booking_id")})
        n = next(self._ids)
        return SimpleNamespace(id=f"cs_test_{n}", url=f"https://checkout.test/{n}")

    def create_payment_intent(self, **kwargs: Any) -> Any:
        self._record("create_payment_intent", **kwargs)
        if self.fail_intent:
            raise PaymentProviderException()
        n = next(self._ids)
        return SimpleNamespace(id=f"pi_new_{n}", client_secret=f"pi_new_{n}_secret")

    def cancel_payment_intent(self, payment_intent_id: str) -> Any:
        self._record("cancel_payment_intent", payment_intent_id=payment_intent_id)
        return SimpleNamespace(id=payment_intent_id, status="canceled")

    def refund(self, **kwargs: Any) -> Any:
        self._record("refund", **kwargs)
        if self.fail_refund:
            raise PaymentProviderException()
        key = kwargs["idempotency_key"]
        if key not in self._refunds:
            self._refunds[key] = f"re_test_{next(self._ids)}"
        return SimpleNamespace(id=self._refunds[key], status="succeeded")

    def list_payment_methods(self, customer_id: str) -> List[Dict[str, Any]]:
        self._record("list_payment_methods", customer_id=customer_id)
        return [{"id": "pm_1", "brand": "visa", "last4": "4242", "exp_month": 1, "exp_year": 2030}]

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        self._record("construct_event", signature=signature)
        if self.construct_error is not None:
            raise self.construct_error
        return self.event

    def count(self, name: str) -> int:
        return len(self.calls.get(name, []))


@pytest.fixture
def fake_stripe() -> FakeStripeService:
    return FakeStripeService()


@pytest.fixture
def stripe_in_app(fake_stripe: FakeStripeService, monkeypatch) -> FakeStripeService:
    """Route every StripeService the app builds to the fake."""
    from coworking.services import booking_service, payment_service

    monkeypatch.setattr(booking_service, "StripeService", lambda db: fake_stripe)
    monkeypatch.setattr(payment_service, "StripeService", lambda db: fake_stripe)
    return fake_stripe
