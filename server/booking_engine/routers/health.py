"""Health check router."""

import logging

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.dependencies import get_clock
from ..schemas.health import HealthResponse, HealthStatus
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])

CLOCK_DEPENDENCY = Depends(get_clock)


@router.post("/ping", response_model=HealthResponse)
async def health_ping(clock: Clock = CLOCK_DEPENDENCY) -> HealthResponse:
    """
    Health check endpoint.

    Reports "degraded" when a background worker that should run is stopped.
    """
    workers = worker_manager.get_worker_status()
    status = HealthStatus.HEALTHY if all(workers.values()) else HealthStatus.DEGRADED
    response = HealthResponse(status=status, timestamp=clock(), workers=workers)

    logger.debug("Health check requested", extra={"status": response.status.value})
    return response
