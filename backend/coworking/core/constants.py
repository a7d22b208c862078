"""Application-wide constants for the coworking platform."""

BRAND_NAME = "Coworking Space"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Booking, payments and administration for a coworking space"
API_VERSION = "1.0.0"

# Query limits
DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 200
RECENT_ACTIVITY_LIMIT = 50
RECENT_BOOKINGS_LIMIT = 5
POPULAR_SPACES_LIMIT = 5

# Default analytics window
DEFAULT_ANALYTICS_DAYS = 7
DEFAULT_PAYMENT_STATS_DAYS = 30

# Reminder schedule, in hours before the booking starts
BOOKING_REMINDER_HOURS = (24, 1)
PAYMENT_REMINDER_HOURS = (48, 24)

ACCOUNT_DELETION_GRACE_DAYS = 30

# Cancellation reasons written by the system
SERIES_CANCELLED_REASON = "Series cancelled"
SERIES_REGENERATED_REASON = "Series regenerated"
