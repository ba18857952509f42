"""
Request-scoped middleware: X-Request-ID propagation and one access log line
per request (health probes excluded).
"""

import time
from typing import Callable

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

# Probes hit these every few seconds; logging them drowns real traffic
QUIET_PATHS = {"/health", "/"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its outcome and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(method=request.method, path=request.url.path)

        start_time = time.perf_counter()
        quiet = request.url.path in QUIET_PATHS

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed",
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        if not quiet:
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Register middleware. Starlette runs them last-added-first, so correlation id goes on last."""
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        update_request_header=True,
    )
