"""Request metrics: latency, status and in-flight count per normalised route."""

import time
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.ulid_helper import is_valid_ulid
from ..monitoring.prometheus_metrics import prometheus_metrics

_SCRAPE_PATH = "/metrics"


def _is_identifier(segment: str) -> bool:
    return segment.isdigit() or (len(segment) == 26 and is_valid_ulid(segment))


def normalize_path(raw_path: str) -> str:
    """Replace id segments with ``:id`` to keep label cardinality bounded."""
    return "/".join(":id" if _is_identifier(part) else part for part in raw_path.split("/"))


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path == _SCRAPE_PATH:
            return await call_next(request)

        method, endpoint = request.method, normalize_path(request.url.path)
        prometheus_metrics.track_http_request_start(method, endpoint)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            prometheus_metrics.record_http_request(
                method, endpoint, time.perf_counter() - started, response.status_code
            )
            return response
        finally:
            prometheus_metrics.track_http_request_end(method, endpoint)
