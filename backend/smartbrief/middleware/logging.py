"""
SmartBrief Backend — Access Logging Middleware
================================================

What:  One log line per HTTP request: method, path, status, duration, request id.
Why:   Latency of summarization requests is dominated by the AI call; having
       the duration next to the status makes slow providers visible at a glance.
How:   Severity follows the status class (5xx ERROR, 4xx WARNING, else INFO).
       `/health` is skipped because probes hit it every few seconds.

Privacy:
    Never logged: request bodies (user documents), the Authorization header,
    query strings (search terms may contain personal data).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from smartbrief.middleware.request_id import request_id_var

logger = logging.getLogger("smartbrief.access")

_QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log with request-id correlation and timing."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        status = response.status_code
        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
