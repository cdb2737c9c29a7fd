# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Liveness and readiness probes for load balancers and monitoring.
# Readiness never calls the geocoder: its usage policy counts every request.
# =============================================================================

from datetime import datetime, timezone
from urllib.parse import urlparse

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from lib.supabase_client import AddressStore
from lib.utils import ConfigError

router = APIRouter()

VERSION = "1.0.0"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str


class ReadinessChecks(BaseModel):
    """Per-dependency status: healthy, configured, unconfigured or unhealthy: <reason>."""
    address_store: str
    geocoder: str


class ReadinessResponse(BaseModel):
    status: str
    checks: ReadinessChecks
    timestamp: str


class LivenessResponse(BaseModel):
    status: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_address_store() -> str:
    try:
        store = await AddressStore.get_instance()
        await store.ping()
    except ConfigError:
        return "unconfigured"
    except Exception as e:
        return f"unhealthy: {str(e)[:50]}"
    return "healthy"


def _check_geocoder() -> str:
    host = urlparse(settings.GEOCODER_BASE_URL or "").netloc
    if not host or not settings.GEOCODER_USER_AGENT:
        return "unconfigured"
    return f"configured: {host}"


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health status."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version=VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    Ready when the address table answers and the geocoder endpoint and
    User-Agent are configured; degraded otherwise.
    """
    checks = ReadinessChecks(
        address_store=await _check_address_store(),
        geocoder=_check_geocoder(),
    )
    ready = checks.address_store == "healthy" and checks.geocoder.startswith("configured")

    return ReadinessResponse(
        status="ready" if ready else "degraded",
        checks=checks,
        timestamp=_now(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """Whether the process is alive."""
    return LivenessResponse(status="alive", timestamp=_now())
