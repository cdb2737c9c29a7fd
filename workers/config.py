# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers and the beat schedule.
# =============================================================================

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    # so a crashed worker's scan is redelivered
    task_acks_late = True

    # Only prefetch one task at a time
    worker_prefetch_multiplier = 1

    # Task results expire after 1 hour
    result_expires = 3600

    # A scan stops itself after BATCH_TIME_BUDGET_SECONDS; the hard limits
    # only catch a hung geocoder call
    task_soft_time_limit = int(settings.BATCH_TIME_BUDGET_SECONDS) + 60
    task_time_limit = int(settings.BATCH_TIME_BUDGET_SECONDS) + 120

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "geocoding": {
            "exchange": "geocoding",
            "routing_key": "geocoding",
        },
    }

    # Geocoder traffic goes to one queue; run its worker with --concurrency=1
    # so the geocoder sees a single client at a time
    task_routes = {
        "workers.tasks.run_geocode_scan": {"queue": "geocoding"},
        "workers.tasks.geocode_single_address": {"queue": "geocoding"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Beat Schedule
    # -------------------------------------------------------------------------

    beat_schedule = {
        "incremental-geocode-scan": {
            "task": "workers.tasks.run_geocode_scan",
            "schedule": settings.INCREMENTAL_SCAN_INTERVAL_SECONDS,
            "kwargs": {
                "mode": "incremental",
                # Overlap the previous window so nothing falls between runs
                "lookback_seconds": settings.INCREMENTAL_SCAN_INTERVAL_SECONDS
                + int(settings.BATCH_STALE_AFTER_SECONDS),
                # Each tick covers one pass; the next tick picks up later edits
                "single_pass": True,
            },
        },
        "catch-up-geocode-scan": {
            "task": "workers.tasks.run_geocode_scan",
            "schedule": settings.CATCH_UP_INTERVAL_SECONDS,
            "kwargs": {"mode": "catch_up"},
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
