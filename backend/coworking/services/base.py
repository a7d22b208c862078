# backend/coworking/services/base.py
"""
Common ground for the service layer.

Services own their transactions: repositories only flush, and a service
wraps each unit of work in ``with self.transaction():``. Public operations
are decorated with ``measure_operation`` so their latency and failures show
up in Prometheus.
"""

from contextlib import contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import SideEffectOutcome
from ..core.exceptions import ServiceException
from ..events.publisher import EventPublisher
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Anything slower is logged as a warning
SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on a clean exit; roll back on any error and re-raise it."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Rolled back after database error: {str(e)}")
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Time the wrapped method and report it as ``<Service>.<operation_name>``."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(f"{operation_name} took {elapsed:.2f}s")
                    _report(self, operation_name, elapsed, error_type)

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def publish_event(
        self,
        event: Any,
        available_at: Optional[datetime] = None,
        effect: str = "notification",
    ) -> SideEffectOutcome:
        """
        Queue a domain event in its own short transaction.

        Never raises. The caller has already committed its own work, so a
        failure here is logged and reported back as ``failed``.
        """
        publisher = EventPublisher(RepositoryFactory.create_background_job_repository(self.db))
        try:
            with self.transaction():
                publisher.publish(event, available_at=available_at)
            outcome = SideEffectOutcome.QUEUED
        except Exception as e:
            self.logger.error(f"Could not queue {type(event).__name__}: {str(e)}", exc_info=True)
            outcome = SideEffectOutcome.FAILED
        prometheus_metrics.record_side_effect(effect, outcome.value)
        return outcome


def _report(service: BaseService, operation: str, elapsed: float, error: Optional[str]) -> None:
    try:
        prometheus_metrics.record_service_operation(
            service=type(service).__name__,
            operation=operation,
            duration=elapsed,
            status="error" if error else "success",
            error_type=error,
        )
    except Exception:
        # A metrics failure must not mask the operation's own result
        logger.debug("Failed to record metrics for %s", operation)
