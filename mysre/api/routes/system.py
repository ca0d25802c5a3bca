"""System health endpoint — checks connectivity to the backing services."""

import time

from fastapi import APIRouter
from pydantic import BaseModel
from redis.asyncio import from_url
from sqlalchemy import text

from mysre.api.deps import Session
from mysre.core.config import get_settings

router = APIRouter(prefix="/system", tags=["system"])

settings = get_settings()


class ServiceHealth(BaseModel):
    status: str  # "ok" or "error"
    detail: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    status: str
    database: ServiceHealth
    redis: ServiceHealth


@router.get("/health", response_model=HealthResponse)
async def system_health(session: Session) -> HealthResponse:
    """Check connectivity to the database and Redis."""
    db = await _check_database(session)
    rd = await _check_redis()

    overall = "ok" if all(s.status == "ok" for s in (db, rd)) else "degraded"
    return HealthResponse(status=overall, database=db, redis=rd)


async def _check_database(session) -> ServiceHealth:
    try:
        t0 = time.monotonic()
        await session.execute(text("SELECT 1"))
        return ServiceHealth(status="ok", latency_ms=int((time.monotonic() - t0) * 1000))
    except Exception as exc:
        return ServiceHealth(status="error", detail=str(exc)[:200])


async def _check_redis() -> ServiceHealth:
    try:
        t0 = time.monotonic()
        redis = from_url(settings.redis_url, decode_responses=True)
        pong = await redis.ping()
        latency = int((time.monotonic() - t0) * 1000)
        await redis.aclose()
        return ServiceHealth(status="ok" if pong else "error", latency_ms=latency)
    except Exception as exc:
        return ServiceHealth(status="error", detail=str(exc)[:200])
