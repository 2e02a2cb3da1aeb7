"""
Pydantic schemas for health check endpoints.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="Health status (ok)")
    timestamp: str


class HealthCheckDetail(BaseModel):
    healthy: bool
    latency_ms: float
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    """Readiness probe result; 503 when any check fails."""
    status: str = Field(description="ready or not_ready")
    checks: Dict[str, HealthCheckDetail]
    timestamp: str
