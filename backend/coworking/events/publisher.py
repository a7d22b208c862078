"""Puts domain events on the background job queue as ``event:<ClassName>`` jobs."""

from datetime import date, datetime
import json
from typing import Any, Optional

from ..repositories.background_job_repository import BackgroundJobRepository
from .booking_events import DomainEvent


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


class EventPublisher:
    def __init__(self, job_repository: BackgroundJobRepository):
        self.job_repo = job_repository

    def publish(self, event: DomainEvent, available_at: Optional[datetime] = None) -> str:
        """
        Enqueue ``event`` in the caller's transaction and return the job id.

        A future ``available_at`` holds the job back; reminders use this.
        """
        return self.job_repo.enqueue(
            type=event.job_type(),
            payload=json.dumps(event.to_dict(), default=_json_default),
            available_at=available_at,
        )
