"""
Repository for the durable job queue.

Jobs are rows in ``background_jobs``. The worker claims due rows, runs them
and either marks them succeeded or reschedules them with exponential
backoff. A job that runs out of attempts stays in the ``failed`` state
(the dead-letter queue) until an operator requeues it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import JobStatus
from ..core.exceptions import RepositoryException
from ..core.ulid_helper import generate_ulid
from ..core.timezone_utils import utcnow
from ..models.background_job import BackgroundJob

logger = logging.getLogger(__name__)


def backoff_seconds(attempts: int) -> int:
    """Delay before retry number ``attempts``: base * 2^(attempts-1), capped."""
    base = settings.jobs_backoff_base
    return int(min(settings.jobs_backoff_cap, base * (2 ** max(attempts - 1, 0))))


class BackgroundJobRepository:
    """Data access helpers for the background_jobs table."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logger

    def enqueue(
        self,
        *,
        type: str,
        payload: Any,
        available_at: Optional[datetime] = None,
    ) -> str:
        """Persist a job that becomes runnable at ``available_at`` (default now)."""
        try:
            job = BackgroundJob(
                id=generate_ulid(),
                type=type,
                payload=payload,
                status=JobStatus.QUEUED.value,
                attempts=0,
                available_at=available_at or utcnow(),
            )
            self.db.add(job)
            self.db.flush()
            return cast(str, job.id)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to enqueue job %s: %s", type, str(exc))
            raise RepositoryException("Failed to enqueue background job") from exc

    def get(self, job_id: str) -> Optional[BackgroundJob]:
        return cast(Optional[BackgroundJob], self.db.get(BackgroundJob, job_id))

    def fetch_due(self, *, limit: int = 50, now: Optional[datetime] = None) -> List[BackgroundJob]:
        """Queued jobs whose ``available_at`` has passed, oldest first."""
        try:
            return cast(
                List[BackgroundJob],
                self.db.query(BackgroundJob)
                .filter(
                    BackgroundJob.status == JobStatus.QUEUED.value,
                    BackgroundJob.available_at <= (now or utcnow()),
                )
                .order_by(BackgroundJob.available_at.asc(), BackgroundJob.id.asc())
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to fetch due jobs: %s", str(exc))
            raise RepositoryException("Failed to fetch background jobs") from exc

    def _set_status(self, job_id: str, status: JobStatus) -> None:
        try:
            self.db.query(BackgroundJob).filter(BackgroundJob.id == job_id).update(
                {BackgroundJob.status: status.value, BackgroundJob.updated_at: utcnow()},
                synchronize_session="fetch",
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to mark job %s %s: %s", job_id, status.value, str(exc))
            raise RepositoryException(f"Failed to mark job {status.value}") from exc

    def mark_running(self, job_id: str) -> None:
        self._set_status(job_id, JobStatus.RUNNING)

    def mark_succeeded(self, job_id: str) -> None:
        self._set_status(job_id, JobStatus.SUCCEEDED)

    def mark_failed(self, job_id: str, error: str) -> bool:
        """
        Record a failed attempt and reschedule the job.

        Returns True when the job has used up ``jobs_max_attempts`` and was
        left in the dead-letter state.
        """
        try:
            job = self.db.get(BackgroundJob, job_id)
            if job is None:
                self.logger.warning("Attempted to mark missing job %s failed", job_id)
                return False

            attempts = (job.attempts or 0) + 1
            terminal = attempts >= settings.jobs_max_attempts

            job.attempts = attempts
            job.last_error = error[:2000]
            job.updated_at = utcnow()
            if terminal:
                job.status = JobStatus.FAILED.value
            else:
                job.status = JobStatus.QUEUED.value
                job.available_at = utcnow() + timedelta(seconds=backoff_seconds(attempts))
            self.db.flush()
            return terminal
        except SQLAlchemyError as exc:
            self.logger.error("Failed to reschedule job %s: %s", job_id, str(exc))
            raise RepositoryException("Failed to reschedule background job") from exc

    def requeue(self, job_id: str) -> Optional[BackgroundJob]:
        """Move a dead-lettered job back to the queue with a fresh attempt budget."""
        job = self.get(job_id)
        if job is None or job.status != JobStatus.FAILED.value:
            return None
        job.status = JobStatus.QUEUED.value
        job.attempts = 0
        job.available_at = utcnow()
        job.updated_at = utcnow()
        self.db.flush()
        return job

    def list_jobs(
        self, status: Optional[str] = None, type_prefix: Optional[str] = None, limit: int = 50
    ) -> List[BackgroundJob]:
        query = self.db.query(BackgroundJob)
        if status:
            query = query.filter(BackgroundJob.status == status)
        if type_prefix:
            query = query.filter(BackgroundJob.type.like(f"{type_prefix}%"))
        return cast(
            List[BackgroundJob],
            query.order_by(BackgroundJob.created_at.desc(), BackgroundJob.id.desc())
            .limit(limit)
            .all(),
        )

    def count_by_status(self) -> Dict[str, int]:
        try:
            rows = (
                self.db.query(BackgroundJob.status, func.count(BackgroundJob.id))
                .group_by(BackgroundJob.status)
                .all()
            )
            return {status: int(count) for status, count in rows}
        except SQLAlchemyError as exc:
            self.logger.error("Failed to count jobs: %s", str(exc))
            raise RepositoryException("Failed to count background jobs") from exc

    def count_failed_jobs(self) -> int:
        return self.count_by_status().get(JobStatus.FAILED.value, 0)
