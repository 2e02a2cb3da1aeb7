"""
Health check endpoints for monitoring and readiness probes.

- Liveness probe: /health (the process is serving requests)
- Readiness probe: /health/ready (the database answers)
"""

import time

from fastapi import APIRouter, Response, status

from labsite.core.database import check_connection
from labsite.models.base import utc_now_iso
from labsite.schemas.health import HealthCheckDetail, HealthResponse, ReadinessResponse


router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=utc_now_iso())


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """
    Readiness probe with a database round trip.

    Example response (unhealthy):
        {
            "status": "not_ready",
            "checks": {"db": {"healthy": false, "latency_ms": 3.1, "error": "..."}},
            "timestamp": "2026-01-05T10:30:00.123456+00:00"
        }
    """
    start = time.perf_counter()
    db_healthy = await check_connection()
    latency_ms = (time.perf_counter() - start) * 1000

    checks = {
        "db": HealthCheckDetail(
            healthy=db_healthy,
            latency_ms=round(latency_ms, 2),
            error=None if db_healthy else "Database connection failed",
        ),
    }

    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if db_healthy else "not_ready",
        checks=checks,
        timestamp=utc_now_iso(),
    )
