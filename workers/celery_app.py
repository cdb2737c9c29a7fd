# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# Creates the Celery app that runs geocoding scans outside the API process.
# Scans re-enqueue themselves with their checkpoint (workers/tasks.py); the
# beat schedule in workers/config.py starts new incremental and catch-up scans.
#
# Usage:
#   # Worker (one process keeps geocoder traffic sequential)
#   celery -A workers.celery_app worker -Q geocoding,default --concurrency=1 --loglevel=info
#
#   # Scheduler for periodic scans
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

import logging
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry
from dotenv import load_dotenv

load_dotenv()

from app.config import settings  # noqa: E402

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    """Broker URL without credentials."""
    return url.split("@")[-1] if "@" in url else url


def create_celery_app() -> Celery:
    """
    Create the Celery app with Redis as broker and result backend.

    Result backend keeps each invocation's BatchResponse, so
    GET /api/v1/tasks/{id} can show the checkpoint a scan stopped at.
    """
    app = Celery(
        "geocode_sync_worker",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["workers.tasks"],
    )
    app.config_from_object("workers.config:CeleryConfig")

    logger.info(f"Celery app created with broker: {_redacted(settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Signals
# =============================================================================

@task_prerun.connect
def log_task_start(sender=None, task_id=None, task=None, kwargs=None, **extra):
    """Log when a task starts."""
    logger.info(f"Task started: {task.name} [{task_id}] {kwargs or ''}")


@task_postrun.connect
def log_scan_checkpoint(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    """Log where a scan invocation stopped, so a broken chain can be resumed by hand."""
    if not isinstance(retval, dict) or "lastProcessedId" not in retval:
        return
    logger.info(
        f"Scan {task_id} {state}: processed {retval.get('processedCount')}, "
        f"last id {retval['lastProcessedId']}, complete={retval.get('isComplete')}, "
        f"next={retval.get('continuationTaskId')}"
    )


@task_retry.connect
def log_task_retry(sender=None, request=None, reason=None, **extra):
    logger.warning(f"Retrying {sender.name} [{getattr(request, 'id', None)}]: {reason}")


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **extra):
    """Log when a task fails."""
    logger.error(f"Task failed: {sender.name} [{task_id}] - Error: {exception}")


if __name__ == "__main__":
    celery_app.start()
