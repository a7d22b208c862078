# backend/coworking/core/exceptions.py
"""
Errors raised by services.

Each class fixes the HTTP status it maps to and a fallback ``code``;
callers usually pass a specific code (``BOOKING_CONFLICT``,
``INVALID_TRANSITION``) so clients can branch on it. Routes turn them into
problem documents via ``errors.handle_domain_exception``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "SERVICE_ERROR"
    default_message: str = "An error occurred processing your request"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details: Dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        payload = {"message": self.message, "code": self.code, "details": self.details}
        return HTTPException(status_code=self.status_code, detail=payload)


class ValidationException(DomainException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_REQUEST"
    default_message = "The request could not be processed"


class BusinessRuleException(ValidationException):
    """A booking rule or state transition refused the operation."""

    default_code = "RULE_VIOLATION"


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictException(DomainException):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class UnauthorizedException(DomainException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "NOT_AUTHENTICATED"
    default_message = "Authentication required"


class ForbiddenException(DomainException):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"
    default_message = "You do not have access to this resource"


class ServiceException(DomainException):
    """Infrastructure failed underneath a service (database, provider)."""


class BookingConflictException(ConflictException):
    default_code = "BOOKING_CONFLICT"
    default_message = "This time slot conflicts with an existing booking"

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class PaymentProviderException(ServiceException):
    """
    Stripe rejected or failed a call.

    Clients only ever see the generic message; the provider error is logged
    where it is caught.
    """

    default_code = "PAYMENT_PROVIDER_ERROR"
    default_message = "Payment processing failed. Please try again."

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class RepositoryException(Exception):
    """A query or flush failed; services translate this into a domain error."""
