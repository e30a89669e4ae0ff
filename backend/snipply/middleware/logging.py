"""
Snipply Backend — Access Log Middleware
=========================================

What:  One log line per request: method, path, status, duration, request id
       and client address.
Level: 5xx → ERROR, 4xx → WARNING, everything else → INFO.

Request bodies are never logged (passwords, profile pictures).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from snipply.dependencies import client_ip
from snipply.middleware.request_id import request_id_var

logger = logging.getLogger("snipply.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    # Probes run every few seconds
    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        ip = client_ip(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": ip,
            },
        )
        return response
