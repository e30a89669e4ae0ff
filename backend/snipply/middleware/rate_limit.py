"""
Snipply Backend — Rate Limiting Middleware
============================================

What:  Per-client sliding-window request limit.
How:   Keeps the timestamps of each client's requests inside the window;
       once RATE_LIMIT_REQUESTS is reached the request is answered with 429
       and a Retry-After header.

State lives in process memory, so limits are per worker. Health checks and
the API docs are never limited.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from snipply.config import settings
from snipply.dependencies import client_ip
from snipply.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    # Drop idle clients every N recorded requests
    CLEANUP_EVERY = 1000

    def __init__(self, app, max_requests: int = None, window_seconds: int = None, **kwargs):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._recorded = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        ip = client_ip(request)
        now = time.time()
        window_start = now - self.window_seconds

        hits = self._requests[ip]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = int(hits[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                ip,
                len(hits),
                self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        hits.append(now)
        self._recorded += 1
        if self._recorded % self.CLEANUP_EVERY == 0:
            self._cleanup_idle_clients(window_start)

        return await call_next(request)

    def _cleanup_idle_clients(self, window_start: float) -> None:
        idle = [ip for ip, hits in self._requests.items() if not hits or hits[-1] <= window_start]
        for ip in idle:
            del self._requests[ip]
        if idle:
            logger.debug("Dropped %d idle rate-limit entries", len(idle))
