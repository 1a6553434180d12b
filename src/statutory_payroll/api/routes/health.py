"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from statutory_payroll.api.dependencies import get_default_rate_table
from statutory_payroll.calculators.errors import InvalidRateTable

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    rate_table: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check() -> HealthResponse:
    """Check API health and that the default rate table loads."""
    rate_status = "healthy"
    try:
        get_default_rate_table()
    except (InvalidRateTable, OSError):
        rate_status = "unavailable"

    return HealthResponse(
        status="healthy" if rate_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        rate_table=rate_status,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
