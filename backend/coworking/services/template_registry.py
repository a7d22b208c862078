"""
Template registry for strongly-typed access to Jinja templates.

Use with TemplateService to avoid stringly-typed paths.
"""

from enum import Enum


class TemplateRegistry(str, Enum):
    # Bookings
    BOOKING_CONFIRMATION = "email/booking/confirmation.html"
    BOOKING_MODIFIED = "email/booking/modified.html"
    BOOKING_CANCELLED = "email/booking/cancelled.html"
    BOOKING_REMINDER = "email/booking/reminder.html"

    # Payments
    PAYMENT_REMINDER = "email/payment/reminder.html"
    PAYMENT_RECEIPT = "email/payment/receipt.html"

    # Account
    ACCOUNT_DELETION_REQUESTED = "email/account/deletion_requested.html"
