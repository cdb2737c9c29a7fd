# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - coordinates.py: Single-address and batch geocoding endpoint
# - tasks.py: Background scan submission and status endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import coordinates
from . import tasks

__all__ = [
    "health",
    "coordinates",
    "tasks",
]
