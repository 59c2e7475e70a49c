"""
Health check endpoints.
"""
from fastapi import APIRouter, status
from datetime import datetime

from storycast import __version__
from ..schemas import HealthResponse
from ..dependencies import check_database_connection

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
    description="Check API and dependent services health status.",
)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.
    Returns service status and connectivity info.
    """
    from storycast.config import config

    database_ok = check_database_connection()
    generation_ok = config.ai.has_openai

    overall_status = "healthy" if (database_ok and generation_ok) else "degraded"

    return HealthResponse(
        status=overall_status,
        service="storycast-api",
        version=__version__,
        database_connected=database_ok,
        generation_configured=generation_ok,
        timestamp=datetime.utcnow(),
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness Probe",
    description="Kubernetes liveness probe endpoint.",
)
async def liveness() -> dict:
    """Liveness probe - always returns OK if app is running."""
    return {"status": "alive"}


@router.get(
    "/health/ready",
    status_code=status.HTTP_200_OK,
    summary="Readiness Probe",
    description="Kubernetes readiness probe endpoint.",
)
async def readiness() -> dict:
    """Readiness probe - checks if app can handle requests."""
    if not check_database_connection():
        return {"status": "not_ready", "reason": "Database unavailable"}

    return {"status": "ready"}


@router.get(
    "/health/config",
    status_code=status.HTTP_200_OK,
    summary="Configuration Status",
    description="Check API key configuration status (does not expose actual keys).",
)
async def config_status() -> dict:
    """
    Configuration status endpoint.
    Returns which APIs are configured without exposing sensitive keys.
    """
    from storycast.config import config

    state = config.validate()

    return {
        "status": "configured" if state["ai"]["openai_configured"] else "partial",
        "apis": {
            "openai": "configured" if state["ai"]["openai_configured"] else "missing",
            "elevenlabs": "configured" if state["ai"]["elevenlabs_configured"] else "not_set",
        },
        "capabilities": {
            "episode_generation": state["ready_for_episodes"],
            "provider_audio": state["ai"]["elevenlabs_configured"],
            "local_audio": True,  # Silent placeholder audio always works
        },
        "episodes": state["episodes"],
        "notes": [] if state["ai"]["openai_configured"] else ["Set OPENAI_API_KEY to generate episodes"],
    }
