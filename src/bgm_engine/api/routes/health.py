"""Health check endpoints."""

import shutil

from fastapi import APIRouter, status
from pydantic import BaseModel

from bgm_engine.config import settings
from bgm_engine.logging import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, bool] | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    database: bool
    redis: bool
    components: dict[str, bool] | None = None


def component_status() -> dict[str, bool]:
    """Which external pieces are configured on this host."""
    return {
        "music_gen": settings.music_gen_provider.lower() != "stub" and bool(settings.kie_api_key),
        "ffmpeg": shutil.which(settings.ffmpeg_path or "ffmpeg") is not None,
        "ffprobe": shutil.which(settings.ffprobe_path or "ffprobe") is not None,
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint that verifies the API is running.",
)
async def health_check() -> HealthResponse:
    """Basic health check - is the API up?"""
    from bgm_engine import __version__

    return HealthResponse(
        status="healthy",
        version=__version__,
        components=component_status(),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Verifies the database and Redis are reachable and media tools are installed.",
)
async def readiness_check() -> ReadinessResponse:
    """Comprehensive readiness check including dependencies."""
    # Check database
    database_ok = False
    try:
        from sqlalchemy import text

        from bgm_engine.db.session import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            database_ok = True
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))

    # Check Redis (render slots and the Celery broker live there)
    redis_ok = False
    try:
        import redis

        r = redis.from_url(settings.redis_url)
        r.ping()
        redis_ok = True
    except Exception as e:
        logger.error("redis_health_check_failed", error=str(e))

    components = component_status()
    ready = database_ok and redis_ok and components["ffmpeg"] and components["ffprobe"]

    return ReadinessResponse(
        ready=ready,
        database=database_ok,
        redis=redis_ok,
        components=components,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
