"""
Prometheus collectors for the API, the service layer and the job worker.

Everything is registered on a private ``CollectorRegistry`` so ``/metrics``
exposes only ``coworking_*`` series and test runs can import the module
repeatedly without duplicate-registration errors.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

_PREFIX = "coworking"

HTTP_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
SERVICE_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class PrometheusMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        reg = self.registry

        self.http_duration = Histogram(
            f"{_PREFIX}_http_request_duration_seconds",
            "Time spent serving HTTP requests",
            ["method", "endpoint", "status_code"],
            buckets=HTTP_BUCKETS,
            registry=reg,
        )
        self.http_requests = Counter(
            f"{_PREFIX}_http_requests_total",
            "HTTP requests served",
            ["method", "endpoint", "status_code"],
            registry=reg,
        )
        self.http_in_flight = Gauge(
            f"{_PREFIX}_http_requests_in_progress",
            "HTTP requests currently being served",
            ["method", "endpoint"],
            registry=reg,
        )
        self.service_duration = Histogram(
            f"{_PREFIX}_service_operation_duration_seconds",
            "Duration of measured service operations",
            ["service", "operation"],
            buckets=SERVICE_BUCKETS,
            registry=reg,
        )
        self.service_calls = Counter(
            f"{_PREFIX}_service_operations_total",
            "Measured service operations by result",
            ["service", "operation", "status"],
            registry=reg,
        )
        self.service_errors = Counter(
            f"{_PREFIX}_errors_total",
            "Exceptions raised out of measured service operations",
            ["service", "operation", "error_type"],
            registry=reg,
        )
        # outcome: succeeded, retried or dead_letter
        self.jobs = Counter(
            f"{_PREFIX}_background_jobs_total",
            "Background jobs processed",
            ["type", "outcome"],
            registry=reg,
        )
        self.jobs_dead = Gauge(
            f"{_PREFIX}_background_jobs_failed",
            "Jobs sitting in the dead-letter state",
            registry=reg,
        )
        # effect: notification, reminders or activity_log; outcome: ok, queued or failed
        self.side_effects = Counter(
            f"{_PREFIX}_booking_side_effects_total",
            "Best-effort work done after a booking commits",
            ["effect", "outcome"],
            registry=reg,
        )

    def record_http_request(
        self, method: str, endpoint: str, duration: float, status_code: int
    ) -> None:
        labels = (method, endpoint, str(status_code))
        self.http_duration.labels(*labels).observe(duration)
        self.http_requests.labels(*labels).inc()

    def track_http_request_start(self, method: str, endpoint: str) -> None:
        self.http_in_flight.labels(method, endpoint).inc()

    def track_http_request_end(self, method: str, endpoint: str) -> None:
        self.http_in_flight.labels(method, endpoint).dec()

    def record_service_operation(
        self,
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        self.service_duration.labels(service, operation).observe(duration)
        self.service_calls.labels(service, operation, status).inc()
        if error_type:
            self.service_errors.labels(service, operation, error_type).inc()

    def record_background_job(self, job_type: str, outcome: str) -> None:
        self.jobs.labels(job_type, outcome).inc()

    def set_failed_jobs(self, count: int) -> None:
        self.jobs_dead.set(count)

    def record_side_effect(self, effect: str, outcome: str) -> None:
        self.side_effects.labels(effect, outcome).inc()

    def get_metrics(self) -> bytes:
        return cast(bytes, generate_latest(self.registry))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
