# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Defines background tasks for geocoding.
#
# Tasks:
# - run_geocode_scan: Run one scan invocation and re-enqueue itself with the
#   returned checkpoint until the scan is complete
# - geocode_single_address: Geocode one row (database trigger / webhook path)
#
# Each task runs its coroutine with asyncio.run and builds a fresh store and
# HTTP client, since async clients cannot be shared across event loops.
# =============================================================================

import asyncio
import logging
from datetime import timedelta
from typing import Any

from celery import shared_task

from app.config import settings
from core.models.address import AddressRecord, ProcessResult
from core.models.batch import BatchCheckpoint, BatchResponse, BatchResult, ScanMode
from core.services.address_processor import AddressProcessor
from core.services.batch_coordinator import BatchCoordinator, utcnow
from core.services.geocoder import Geocoder
from lib.supabase_client import AddressStore, StoreError
from lib.utils import ConfigError

logger = logging.getLogger(__name__)


# =============================================================================
# Coroutines
# =============================================================================

async def _scan(checkpoint: BatchCheckpoint) -> BatchResult:
    store = await AddressStore.connect()
    async with Geocoder.from_settings() as geocoder:
        processor = AddressProcessor(store, geocoder)
        coordinator = BatchCoordinator.from_settings(store, processor)
        return await coordinator.run_scan(checkpoint)


async def _process_one(record: AddressRecord) -> ProcessResult:
    store = await AddressStore.connect()
    async with Geocoder.from_settings() as geocoder:
        return await AddressProcessor(store, geocoder).process(record)


# =============================================================================
# Continuation
# =============================================================================

def schedule_continuation(
    checkpoint: BatchCheckpoint,
    countdown: int | None = None,
    single_pass: bool = False,
) -> str:
    """
    Enqueue the next scan invocation.

    Args:
        checkpoint: Where the next invocation resumes
        countdown: Seconds to wait before running (defaults to settings)
        single_pass: Carried over so a scheduled scan stays within its pass

    Returns:
        Celery task id of the follow-up task
    """
    if countdown is None:
        countdown = settings.BATCH_CONTINUATION_DELAY_SECONDS

    kwargs: dict[str, Any] = {"checkpoint": checkpoint.model_dump(mode="json", by_alias=True)}
    if single_pass:
        kwargs["single_pass"] = True

    result = run_geocode_scan.apply_async(kwargs=kwargs, countdown=countdown)
    logger.info(
        f"Scheduled {checkpoint.mode.value} scan continuation {result.id} "
        f"after {checkpoint.last_processed_id} in {countdown}s"
    )
    return result.id


# =============================================================================
# Scan Task
# =============================================================================

@shared_task(bind=True, name="workers.tasks.run_geocode_scan", max_retries=3, default_retry_delay=60)
def run_geocode_scan(
    self,
    checkpoint: dict[str, Any] | None = None,
    mode: str | None = None,
    lookback_seconds: int | None = None,
    single_pass: bool = False,
) -> dict[str, Any]:
    """
    Run one scan invocation and schedule the next one if work remains.

    Args:
        checkpoint: Serialized BatchCheckpoint (camelCase or snake_case keys)
        mode: Overrides the checkpoint's mode ("incremental" or "catch_up")
        lookback_seconds: Incremental only. Start a fresh pass over rows
            updated within this many seconds (used by the beat schedule)
        single_pass: Incremental only. Stop once the first pass reaches the
            end of the table instead of following it with a pass over rows
            edited again; the next scheduled scan picks those up

    Returns:
        Serialized BatchResponse, or {"success": False, "error": ...} on
        configuration errors
    """
    start = BatchCheckpoint.model_validate(checkpoint or {})
    if mode:
        start = start.model_copy(update={"mode": ScanMode(mode)})
    if lookback_seconds is not None and start.mode == ScanMode.INCREMENTAL:
        start = start.model_copy(update={"since": utcnow() - timedelta(seconds=lookback_seconds)})

    logger.info(f"Running {start.mode.value} scan after {start.last_processed_id}")

    try:
        result = asyncio.run(_scan(start))
    except ConfigError as e:
        logger.error(f"Scan aborted: {e}")
        return {"success": False, "error": e.message, "code": e.code}
    except StoreError as e:
        logger.warning(f"Scan failed reading addresses, retrying: {e.message}")
        raise self.retry(exc=e)

    next_task_id = None
    if result.is_complete:
        logger.info(f"{start.mode.value} scan complete")
    elif single_pass and result.new_pass:
        logger.info(
            f"{start.mode.value} pass finished; rows updated after "
            f"{result.checkpoint.since} are left to the next scheduled scan"
        )
    else:
        next_task_id = schedule_continuation(result.checkpoint, single_pass=single_pass)

    return BatchResponse.from_result(result, continuation_task_id=next_task_id).model_dump(
        mode="json", by_alias=True
    )


# =============================================================================
# Single Address Task
# =============================================================================

@shared_task(bind=True, name="workers.tasks.geocode_single_address")
def geocode_single_address(self, address: dict[str, Any]) -> dict[str, Any]:
    """
    Geocode one address row, e.g. enqueued by a database trigger.

    Args:
        address: Raw row (profile_id, generated_full_address, lat, long, ...)

    Returns:
        Serialized ProcessResult
    """
    record = AddressRecord.model_validate(address)
    logger.info(f"Geocoding single address {record.id}")

    try:
        result = asyncio.run(_process_one(record))
    except ConfigError as e:
        logger.error(f"Single address geocoding aborted: {e}")
        return {"success": False, "error": e.message, "code": e.code}

    return result.model_dump(mode="json", by_alias=True)
