from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.config.settings import Settings, SettingsDep
from pulse.infra.database import SessionDep
from pulse.v1.core.exceptions import create_success_response
from pulse.v1.engine.pulse import EngineDep, PulseEngine

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Health response with database and engine status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    engine: dict[str, Any] | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep,
    session: AsyncSession = SessionDep,
    engine: PulseEngine = EngineDep,
):
    """Health check with database connectivity and per-loop status."""

    db_health = await _check_database_health(session)

    engine_status = None
    if db_health.connected:
        engine_status = await engine.status()

    health = HealthResponse(
        ok=db_health.connected,
        version=settings.version,
        environment=settings.environment,
        timestamp=datetime.now(UTC).isoformat(),
        database=db_health,
        engine=engine_status,
    )
    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))
