"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from certflow.config import get_settings
from certflow.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - workflow services are wired and storage is up."""
    settings = get_settings()
    services_ready = getattr(request.app.state, "assessment_service", None) is not None
    return ORJSONResponse(
        status_code=(
            status.HTTP_200_OK
            if services_ready
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": "ready" if services_ready else "not_ready",
            "environment": settings.environment,
            "storage_backend": settings.storage_backend,
            "notifications": "redis" if get_redis() is not None else "log",
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
