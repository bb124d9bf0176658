"""Observability middleware: request IDs, logging and metrics."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from gallery.core.metrics import http_request_duration_seconds, http_requests_total

REQUEST_ID_HEADER = "X-Request-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Injects request_id, logs requests, and records HTTP metrics.

    An incoming X-Request-ID is reused so proxies can correlate logs.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger = structlog.stdlib.get_logger("gallery.http")
        start = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start
        status = response.status_code

        # Use the route pattern (low cardinality) not the resolved path
        route = request.scope.get("route")
        path = route.path if route else request.url.path
        method = request.method

        http_requests_total.labels(method=method, path=path, status=status).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(duration)

        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status=status,
            duration_ms=round(duration * 1000, 2),
        )

        structlog.contextvars.clear_contextvars()
        return response
