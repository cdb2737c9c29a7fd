# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the geocode-sync API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   poetry run uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import application_exception_handler, validation_exception_handler
from app.routers import coordinates, health, tasks
from core.services.geocoder import Geocoder
from lib.utils import ApplicationError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: create the shared geocoder HTTP client
    - Shutdown: close it
    """
    logger.info(f"Starting geocode-sync API in {settings.ENVIRONMENT} mode")
    if settings.missing_supabase_settings:
        logger.warning(
            f"Supabase is not configured ({', '.join(settings.missing_supabase_settings)}); "
            f"geocoding requests will fail with a configuration error"
        )

    app.state.geocoder = Geocoder.from_settings()

    yield

    logger.info("Shutting down geocode-sync API")
    await app.state.geocoder.aclose()


# Create FastAPI application
app = FastAPI(
    title="geocode-sync API",
    description="""
## Address Geocoding Service

Keeps the `lat`/`long` columns of the address table in sync with a
Nominatim-compatible geocoder.

### How It Works

1. **Single address** - `POST /api/v1/update-coordinates` with `{"address": {...}}`
2. **Batch scan** - `POST /api/v1/update-coordinates` with `{"isBatch": true}`
3. **Continue** - re-issue with the returned checkpoint until `isComplete`,
   or let the scheduled Celery continuation do it

### Scan Modes

| Mode | Rows selected |
|------|---------------|
| **incremental** | After `lastProcessedId`, optionally updated after `since` |
| **catch_up** | Coordinates null or zero, capped per invocation |
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Coordinates",
            "description": "Geocode one address or run a batch scan",
        },
        {
            "name": "Tasks",
            "description": "Background scans and scheduled continuations",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ApplicationError)
async def handle_application_error(request: Request, exc: ApplicationError):
    """Handle configuration, validation, fetch and store errors."""
    return await application_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same 400 shape as unrecognised ones."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(
    coordinates.router,
    prefix="/api/v1",
    tags=["Coordinates"]
)

app.include_router(
    tasks.router,
    prefix="/api/v1/tasks",
    tags=["Tasks"]
)

app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "geocode-sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
