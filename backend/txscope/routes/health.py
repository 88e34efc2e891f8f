"""
txscope — Health Check Route
==============================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs SELECT 1 through the shared Database handle (no request
       transaction) and reports the result with uptime.

Status levels:
    - healthy:   Database reachable (HTTP 200)
    - unhealthy: Database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from txscope import __version__
from txscope.database import Database, get_database
from txscope.schemas.responses import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    db: Database = Depends(get_database),
) -> HealthResponse:
    """
    Check the health of the service and its database.

    Why SELECT 1 outside a transaction:
        The probe should measure reachability, not hold a pooled connection
        through BEGIN/COMMIT every few seconds.
    """
    db_status = "connected"
    overall = "healthy"

    if not await db.ping():
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
