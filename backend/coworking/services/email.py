# backend/coworking/services/email.py
"""Outbound mail through Resend."""

import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def plain_text(html: str) -> str:
    """Rough text alternative for clients that do not render HTML."""
    return _WHITESPACE.sub(" ", _TAG.sub("", html)).strip()


class EmailService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        if not settings.resend_api_key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = settings.resend_api_key
        self.sender = settings.from_email

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Hand one message to Resend and return its response.

        Raises:
            ServiceException: Resend refused the message or could not be reached
        """
        message = {
            "from": self.sender,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or plain_text(html_content),
        }
        try:
            response: Dict[str, Any] = resend.Emails.send(message)
        except Exception as e:
            self.log_operation("email_failed", to_email=to_email, subject=subject, error=str(e))
            raise ServiceException(f"Email sending failed: {str(e)}") from e
        self.logger.info(f"Sent '{subject}' to {to_email}")
        return response
