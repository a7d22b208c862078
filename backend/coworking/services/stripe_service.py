"""
Stripe Service for the coworking platform.

Thin gateway over the Stripe SDK: customers, checkout sessions, payment
intents, refunds and webhook verification. Callers are responsible for
never invoking these methods while a database transaction is open.

Every Stripe error is logged with its provider message and re-raised as
``PaymentProviderException`` which carries a generic client-facing message.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.exceptions import PaymentProviderException, ServiceException
from ..domain.pricing import to_minor_units
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger: logging.Logger = logging.getLogger(__name__)


def configure_stripe() -> bool:
    """Apply API key, timeout and retry settings to the Stripe SDK."""
    secret = settings.stripe_secret_key.get_secret_value()
    if not secret:
        logger.warning("Stripe secret key not configured")
        return False
    stripe.api_key = secret
    stripe.max_network_retries = settings.stripe_max_network_retries
    try:
        stripe.default_http_client = stripe.http_client.RequestsClient(
            timeout=settings.stripe_timeout_seconds
        )
    except AttributeError as exc:
        logger.warning(f"Stripe HTTP client customization unavailable: {exc}")
    return True


class StripeService(BaseService):
    """Service for all Stripe API interactions."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.stripe_configured = configure_stripe()
        self.currency = settings.stripe_currency

    def _provider_error(
        self, action: str, exc: Exception, **details: Any
    ) -> PaymentProviderException:
        self.logger.error(
            f"Stripe error during {action}: {str(exc)}",
            extra={"stripe_action": action, **details},
        )
        return PaymentProviderException(details=details)

    # ========== Customers ==========

    @BaseService.measure_operation("stripe_get_or_create_customer")
    def get_or_create_customer(self, user: User) -> str:
        """
        Return the user's Stripe customer id, creating the customer on first use.

        The id is persisted on the user in its own short transaction.
        """
        if user.stripe_customer_id:
            return str(user.stripe_customer_id)
        try:
            customer = stripe.Customer.create(
                email=user.email,
                name=user.username,
                metadata={"user_id": user.id},
                idempotency_key=f"customer-{user.id}",
            )
        except stripe.StripeError as e:
            raise self._provider_error("create_customer", e, user_id=user.id)

        with self.transaction():
            self.user_repository.update(user.id, stripe_customer_id=customer.id)
        user.stripe_customer_id = customer.id
        self.logger.info(f"Created Stripe customer {customer.id} for user {user.id}")
        return str(customer.id)

    # ========== Payments ==========

    @BaseService.measure_operation("stripe_create_checkout_session")
    def create_checkout_session(
        self,
        *,
        booking_id: str,
        customer_id: str,
        amount: Decimal,
        product_name: str,
        description: Optional[str] = None,
    ) -> Any:
        """Create a hosted Checkout Session for a booking."""
        frontend = settings.frontend_url.rstrip("/")
        try:
            return stripe.checkout.Session.create(
                customer=customer_id,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {
                                "name": product_name,
                                **({"description": description} if description else {}),
                            },
                            "unit_amount": to_minor_units(amount),
                        },
                        "quantity": 1,
                    }
                ],
                success_url=f"{frontend}/bookings/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{frontend}/bookings/cancel?booking_id={booking_id}",
                metadata={"booking_id": booking_id},
                payment_intent_data={"metadata": {"booking_id": booking_id}},
            )
        except stripe.StripeError as e:
            raise self._provider_error("create_checkout_session", e, booking_id=booking_id)

    @BaseService.measure_operation("stripe_create_payment_intent")
    def create_payment_intent(
        self,
        *,
        booking_id: str,
        amount: Decimal,
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Any:
        params: Dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": self.currency,
            "metadata": {"booking_id": booking_id, **(metadata or {})},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description
        try:
            return stripe.PaymentIntent.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as e:
            raise self._provider_error("create_payment_intent", e, booking_id=booking_id)

    def cancel_payment_intent(self, payment_intent_id: str) -> Any:
        try:
            return stripe.PaymentIntent.cancel(payment_intent_id)
        except stripe.StripeError as e:
            raise self._provider_error(
                "cancel_payment_intent", e, payment_intent_id=payment_intent_id
            )

    @BaseService.measure_operation("stripe_refund")
    def refund(
        self,
        *,
        payment_intent_id: str,
        amount: Decimal,
        idempotency_key: str,
        reason: str = "requested_by_customer",
        metadata: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Refund ``amount`` of a captured payment intent."""
        try:
            return stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=to_minor_units(amount),
                reason=reason,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            raise self._provider_error("refund", e, payment_intent_id=payment_intent_id)

    def list_payment_methods(self, customer_id: str) -> List[Dict[str, Any]]:
        try:
            methods = stripe.PaymentMethod.list(customer=customer_id, type="card")
        except stripe.StripeError as e:
            raise self._provider_error("list_payment_methods", e)
        result: List[Dict[str, Any]] = []
        for method in methods.get("data", []):
            card = method.get("card") or {}
            result.append(
                {
                    "id": method.get("id"),
                    "brand": card.get("brand"),
                    "last4": card.get("last4"),
                    "exp_month": card.get("exp_month"),
                    "exp_year": card.get("exp_year"),
                }
            )
        return result

    # ========== Webhooks ==========

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify and parse a webhook delivery.

        Raises:
            ServiceException: When no signing secret is configured
            stripe.SignatureVerificationError: When the signature does not match
        """
        secret = settings.stripe_webhook_secret.get_secret_value()
        if not secret:
            raise ServiceException("Webhook secret not configured")
        return stripe.Webhook.construct_event(payload, signature or "", secret)
