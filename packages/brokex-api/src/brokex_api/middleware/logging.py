"""Request logging middleware with correlation IDs."""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from brokex_core.logging_config import generate_request_id, request_id_var

logger = logging.getLogger("brokex.api")

DEFAULT_EXCLUDE_PATHS = ("/health", "/metrics")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with timing and a correlation ID.

    Accepts an incoming X-Request-ID header or generates one, exposes it
    through request_id_var so log lines written while handling the request
    carry it, and echoes it back on the response.
    """

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exclude_paths = frozenset(
            DEFAULT_EXCLUDE_PATHS if exclude_paths is None else exclude_paths
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        token = request_id_var.set(request_id)
        request.state.request_id = request_id

        try:
            return await self._handle(request, call_next, request_id)
        finally:
            request_id_var.reset(token)

    async def _handle(self, request: Request, call_next: Callable, request_id: str) -> Response:
        method = request.method
        path = request.url.path
        quiet = path in self.exclude_paths
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                extra={
                    "event": "request_error",
                    "method": method,
                    "path": path,
                    "error_type": type(e).__name__,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        context = {
            "event": "request_complete",
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=context)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=context)
        elif not quiet:
            logger.info("Request completed", extra=context)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
