# backend/coworking/tasks/background_jobs.py
"""
Durable job worker.

Runs in a thread started by the application lifespan (or from the
``run-jobs`` management command). Each poll claims due jobs from
``background_jobs`` and dispatches them:

- ``event:*`` jobs go to the notification handlers in ``events.handlers``
- ``payment.refund_adjustment`` jobs retry a Stripe refund that failed
  while a request was being served

Failures are rescheduled with exponential backoff; a job that exhausts
its attempts is left in the dead-letter state.
"""

from decimal import Decimal
import json
import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import RepositoryException
from ..database import SessionLocal
from ..events.handlers import process_event
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.background_job_repository import BackgroundJobRepository
from ..services.booking_service import REFUND_ADJUSTMENT_JOB
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def _payload(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (str, bytes)):
        return dict(json.loads(raw))
    return dict(raw or {})


def handle_refund_adjustment(raw_payload: Any, db: Session) -> None:
    payload = _payload(raw_payload)
    payment_id = payload.get("payment_id")
    if not payment_id:
        raise RepositoryException("Missing payment_id in refund adjustment payload")

    PaymentService(db).apply_refund_adjustment(
        payment_id,
        Decimal(str(payload["amount"])),
        idempotency_key=payload["idempotency_key"],
        reason=payload.get("reason"),
    )


JOB_HANDLERS: Dict[str, Callable[[Any, Session], None]] = {
    REFUND_ADJUSTMENT_JOB: handle_refund_adjustment,
}


def process_due_jobs(
    db: Session,
    limit: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
) -> Dict[str, int]:
    """
    Run every due job once.

    Returns counts of ``succeeded``, ``retried`` and ``dead_letter`` jobs.
    """
    job_repo = BackgroundJobRepository(db)
    counts = {"succeeded": 0, "retried": 0, "dead_letter": 0}

    jobs = job_repo.fetch_due(limit=limit or settings.jobs_batch)
    if not jobs:
        db.commit()
        return counts

    for job in jobs:
        if stop_event is not None and stop_event.is_set():
            break
        job_id, job_type = job.id, job.type or "unknown"
        try:
            job_repo.mark_running(job_id)
            db.flush()

            if not process_event(job_type, job.payload, db):
                handler = JOB_HANDLERS.get(job_type)
                if handler is None:
                    logger.warning(
                        "Unknown background job type encountered",
                        extra={"job_id": job_id, "job_type": job_type},
                    )
                else:
                    handler(job.payload, db)

            job_repo.mark_succeeded(job_id)
            db.commit()
            counts["succeeded"] += 1
            prometheus_metrics.record_background_job(job_type, "succeeded")
        except Exception as exc:
            db.rollback()
            logger.exception(
                "Error processing background job",
                extra={"job_id": job_id, "job_type": job_type},
            )
            terminal = job_repo.mark_failed(job_id, error=str(exc) or type(exc).__name__)
            db.commit()
            if terminal:
                counts["dead_letter"] += 1
                prometheus_metrics.record_background_job(job_type, "dead_letter")
                logger.error(
                    "Background job moved to dead-letter queue",
                    extra={"job_id": job_id, "job_type": job_type},
                )
            else:
                counts["retried"] += 1
                prometheus_metrics.record_background_job(job_type, "retried")

    prometheus_metrics.set_failed_jobs(job_repo.count_failed_jobs())
    return counts


def run_once(limit: Optional[int] = None) -> Dict[str, int]:
    db = SessionLocal()
    try:
        return process_due_jobs(db, limit=limit)
    finally:
        db.close()


def background_jobs_worker_sync(shutdown_event: threading.Event) -> None:
    """Poll the job table until ``shutdown_event`` is set."""
    poll_interval = settings.jobs_poll_interval
    logger.info("Background job worker started (poll every %ss)", poll_interval)

    while not shutdown_event.is_set():
        if shutdown_event.wait(poll_interval):
            break
        db = SessionLocal()
        try:
            process_due_jobs(db, stop_event=shutdown_event)
        except Exception:
            db.rollback()
            logger.exception("Background job poll failed")
        finally:
            db.close()

    logger.info("Background job worker stopped")
