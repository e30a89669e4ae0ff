"""
Snipply Backend — Health Check Route
======================================

What:  Liveness/readiness probe for Docker and load balancers.

Status levels:
    - healthy:   storage backend usable (HTTP 200)
    - unhealthy: database backend configured but unreachable (HTTP 503)

With STORAGE_BACKEND=memory the database is not consulted and reported as
"unused".
"""

import logging
import time

from fastapi import APIRouter, Response, status

from snipply import __version__
from snipply.config import settings
from snipply.database import check_connection
from snipply.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(response: Response) -> HealthResponse:
    overall = "healthy"
    if settings.storage_backend == "memory":
        db_status = "unused"
    elif await check_connection():
        db_status = "connected"
    else:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        storage=settings.storage_backend,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
