"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from clinic_booking.database import check_database_connection
from clinic_booking.dependencies import AppSettings, SlotCalculatorDep

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Liveness plus the state the scheduling rules depend on."""

    database: str
    clinic_timezone: str
    clinic_time: datetime


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check(settings: AppSettings) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Health check with database and clinic clock",
)
async def detailed_health_check(
    request: Request,
    settings: AppSettings,
    slots: SlotCalculatorDep,
) -> DetailedHealthResponse:
    """
    Report database reachability and the current clinic-local time.

    A wrong clinic time here explains slots that appear or vanish unexpectedly.
    """
    db_healthy = await check_database_connection(request.app.state.engine)

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        clinic_timezone=settings.clinic_timezone,
        clinic_time=slots.localize(slots.clock.now()),
    )


@router.get("/ping", status_code=status.HTTP_200_OK, summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
