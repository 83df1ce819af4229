"""Health check endpoints."""

import logging

from fastapi import APIRouter, Request

from kpcrm_api.schemas import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def check_supabase(request: Request) -> str:
    """Report whether Supabase is configured (no network call).

    Returns:
        str: "configured" or "not_configured"
    """
    settings = request.app.state.settings
    if settings.supabase_url and settings.supabase_anon_key and settings.supabase_service_key:
        return "configured"
    return "not_configured"


def check_rate_limiter(request: Request) -> str:
    """Check the rate limiter backend.

    Returns:
        str: "disabled", "up", or a short "down: ..." message
    """
    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        return "disabled"
    try:
        redis_client.ping()
        return "up"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return f"down: {str(e)[:50]}"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Always returns 200 OK; dependency state is reported, not enforced.
    """
    return HealthResponse(
        status="healthy",
        version=VERSION,
        environment=request.app.state.settings.env,
        services={
            "api": "up",
            "supabase": check_supabase(request),
            "rate_limiter": check_rate_limiter(request),
        },
    )
