# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# background geocoding. Celery is the scheduler that re-invokes a scan with
# the checkpoint returned by the previous invocation.
#
# Components:
# - celery_app.py: Celery application configuration and lifecycle logging
# - tasks.py: Scan and single-address tasks, continuation scheduling
# - config.py: Worker settings and the beat schedule
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker -Q geocoding,default --concurrency=1
#
#   # Submit a scan (from API)
#   from workers.tasks import run_geocode_scan
#   result = run_geocode_scan.delay(mode="catch_up")
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
