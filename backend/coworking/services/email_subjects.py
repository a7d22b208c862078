"""
Centralized email subject builders.

Keep subjects in code (not templates) for versioning and logging.
Bodies remain in Jinja templates.
"""

from ..core.constants import BRAND_NAME


class EmailSubject:
    """Utility class with static builders for email subjects."""

    @staticmethod
    def booking_confirmed() -> str:
        return f"Booking Confirmation - {BRAND_NAME}"

    @staticmethod
    def booking_initiated() -> str:
        return f"Booking Initiated - {BRAND_NAME}"

    @staticmethod
    def booking_modified() -> str:
        return f"Booking Modified - {BRAND_NAME}"

    @staticmethod
    def booking_cancelled() -> str:
        return f"Booking Cancelled - {BRAND_NAME}"

    @staticmethod
    def booking_reminder(hours_before: int) -> str:
        when = "Tomorrow" if hours_before >= 24 else "Soon"
        return f"Booking Reminder: Starting {when} - {BRAND_NAME}"

    @staticmethod
    def payment_reminder() -> str:
        return f"Payment Reminder - {BRAND_NAME}"

    @staticmethod
    def payment_receipt() -> str:
        return f"Payment Received - {BRAND_NAME}"

    @staticmethod
    def account_deletion_requested() -> str:
        return f"Account Deletion Request - {BRAND_NAME}"
