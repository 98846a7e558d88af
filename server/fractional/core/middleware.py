"""Request correlation and access logging middleware."""

import logging
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match
from starlette.types import ASGIApp

from .config import settings
from .observability import metrics_collector

logger = logging.getLogger(__name__)

PROVIDER_HEADER = "X-Payment-Provider"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation id.

    The id comes from the incoming header when a caller (or a payment rail
    retrying a webhook) supplies one, otherwise a fresh UUID. It is bound into
    the structlog context together with the payment provider, so settlement
    log lines for one delivery can be grepped together, and echoed back on
    the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        context = {"request_id": request_id}
        provider = request.headers.get(PROVIDER_HEADER)
        if provider:
            context["payment_provider"] = provider.upper()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(*context)

        response.headers[self.header_name] = request_id
        return response


def route_template(request: Request) -> str:
    """
    Path template of the matched route, e.g. ``/v1/bookings/{booking_id}``.

    Metrics are labelled by template so per-id URLs do not explode label
    cardinality. Unmatched paths collapse to ``unmatched``.
    """
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log each request with timing and feed the HTTP request metrics."""

    def __init__(self, app: ASGIApp, skip_paths: Optional[list] = None):
        super().__init__(app)
        self.skip_paths = set(skip_paths or ["/metrics", "/favicon.ico"])

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - started

        endpoint = route_template(request)
        metrics_collector.record_http_request(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
            duration_seconds=duration,
        )

        log_data = {
            "method": request.method,
            "endpoint": endpoint,
            "path": request.url.path,
            "client_ip": self._client_ip(request),
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }

        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=log_data)
        else:
            logger.info("Request handled", extra=log_data)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Install the middleware stack on the application.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to install the access log middleware
    """
    # Last added runs first
    if enable_logging:
        skip = ["/health", "/ready", "/metrics", "/favicon.ico"] if settings.is_production else None
        app.add_middleware(AccessLogMiddleware, skip_paths=skip)

    app.add_middleware(RequestIDMiddleware)
