# =============================================================================
# core/services/batch_coordinator.py - Paged Batch Geocoding
# =============================================================================
# Walks the address table page by page, geocoding one record at a time:
# - Requests are paced by a fixed delay so the geocoder sees at most one
#   request per delay interval
# - A wall-clock budget (below the host's execution limit) is checked before
#   every record; when it runs out the batch stops with partial results
# - The returned checkpoint tells the next invocation where to resume
#
# Two scan modes:
# - incremental: rows after an id cursor, optionally updated after `since`.
#   A pass that reaches the end of the table after seeing fresh rows (updated
#   within the stale window) is followed by a new pass over rows updated after
#   the latest updated_at seen, so only rows edited again are revisited. A
#   pass that sees no fresh rows completes the scan.
# - catch_up: rows with null/zero coordinates, capped per invocation.
#
# The coordinator never re-invokes itself. Continuation is the caller's job
# (HTTP client, Celery task, or scripts/run_scan.py).
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.config import settings
from core.models.address import AddressRecord, ProcessResult, ProcessStatus
from core.models.batch import ZERO_ID, BatchCheckpoint, BatchResult, ScanMode
from core.services.address_processor import AddressProcessor
from lib.http_client import Sleep
from lib.supabase_client import AddressPage, AddressStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _latest(current: datetime | None, candidate: datetime | None) -> datetime | None:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


class BatchCoordinator:
    """
    Page through the address store and run the processor on each record.

    Example:
        coordinator = BatchCoordinator.from_settings(store, processor)
        result = await coordinator.run_scan(BatchCheckpoint())
        if not result.is_complete:
            schedule_next(result.checkpoint)
    """

    def __init__(
        self,
        store: AddressStore,
        processor: AddressProcessor,
        *,
        page_size: int = 10,
        request_delay: float = 1.0,
        time_budget: float = 25.0,
        stale_after: float = 300.0,
        max_records: int = 100,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.processor = processor
        self.page_size = page_size
        self.request_delay = request_delay
        self.time_budget = time_budget
        self.stale_after = stale_after
        self.max_records = max_records
        self.clock = clock
        self.now = now
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        store: AddressStore,
        processor: AddressProcessor,
        **overrides,
    ) -> BatchCoordinator:
        options = {
            "page_size": settings.BATCH_PAGE_SIZE,
            "request_delay": settings.GEOCODER_REQUEST_DELAY_SECONDS,
            "time_budget": settings.BATCH_TIME_BUDGET_SECONDS,
            "stale_after": settings.BATCH_STALE_AFTER_SECONDS,
            "max_records": settings.CATCH_UP_MAX_RECORDS,
        }
        options.update(overrides)
        return cls(store, processor, **options)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _budget_exhausted(self, started_at: float) -> bool:
        return self.clock() - started_at > self.time_budget

    async def _fetch_page(self, checkpoint: BatchCheckpoint, limit: int) -> AddressPage:
        if checkpoint.mode == ScanMode.CATCH_UP:
            return await self.store.fetch_unset_after(checkpoint.last_processed_id, limit=limit)
        return await self.store.fetch_page_after(
            checkpoint.last_processed_id,
            limit=limit,
            updated_since=checkpoint.since,
        )

    async def _process(self, record: AddressRecord) -> ProcessResult:
        try:
            return await self.processor.process(record)
        except Exception as e:
            logger.exception(f"[{record.id}] unexpected failure while processing: {e}")
            return ProcessResult(
                id=record.id,
                status=ProcessStatus.ERROR,
                address=record.full_address_text,
                message=f"Unexpected error: {e}",
            )

    # -------------------------------------------------------------------------
    # Single Page
    # -------------------------------------------------------------------------

    async def run_batch(
        self,
        checkpoint: BatchCheckpoint,
        *,
        started_at: float | None = None,
        limit: int | None = None,
    ) -> BatchResult:
        """
        Process one page after `checkpoint`.

        Args:
            checkpoint: Where to resume
            started_at: Clock reading when the invocation began (defaults to now)
            limit: Cap on records for this page (never above the page size)

        Returns:
            BatchResult with the next checkpoint and completion flag

        Raises:
            StoreError: If the page cannot be read
        """
        started_at = self.clock() if started_at is None else started_at
        page_limit = self.page_size if limit is None else max(1, min(self.page_size, limit))

        page = await self._fetch_page(checkpoint, page_limit)
        logger.info(
            f"Fetched {len(page)} addresses after {checkpoint.last_processed_id} "
            f"({checkpoint.mode.value}, total matching: {page.total_count})"
        )

        results: list[ProcessResult] = []
        last_id = checkpoint.last_processed_id
        watermark = checkpoint.last_processed_timestamp
        stopped_early = False

        for record in page.records:
            if self._budget_exhausted(started_at):
                logger.info("Approaching time budget, stopping batch processing")
                stopped_early = True
                break

            results.append(await self._process(record))
            last_id = record.id
            watermark = _latest(watermark, record.updated_at)

            # Nominatim allows one request per second
            await self.sleep(self.request_delay)

        reached_end = not stopped_early and len(page) < page_limit
        advanced = BatchCheckpoint(
            last_processed_id=last_id,
            last_processed_timestamp=watermark,
            since=checkpoint.since,
            mode=checkpoint.mode,
        )

        if not reached_end:
            return BatchResult(
                results=results,
                checkpoint=advanced,
                is_complete=False,
                total_count=page.total_count,
                stopped_early=stopped_early,
                more_pages=not stopped_early,
            )

        if checkpoint.mode == ScanMode.CATCH_UP:
            return BatchResult(
                results=results,
                checkpoint=advanced,
                is_complete=True,
                total_count=page.total_count,
            )

        cutoff = self.now() - timedelta(seconds=self.stale_after)
        # Rows in a restarted pass all have updated_at > since, so a watermark
        # past `since` means this pass saw at least one row
        seen_in_pass = watermark is not None and (checkpoint.since is None or watermark > checkpoint.since)
        if not seen_in_pass or watermark < cutoff:
            return BatchResult(
                results=results,
                checkpoint=advanced,
                is_complete=True,
                total_count=page.total_count,
            )

        logger.info(
            f"Reached end of table with rows updated after {cutoff.isoformat()}; "
            f"next pass covers rows updated after {watermark.isoformat()}"
        )
        return BatchResult(
            results=results,
            checkpoint=BatchCheckpoint(
                last_processed_id=ZERO_ID,
                last_processed_timestamp=watermark,
                since=watermark,
                mode=checkpoint.mode,
            ),
            is_complete=False,
            total_count=page.total_count,
            new_pass=True,
        )

    # -------------------------------------------------------------------------
    # Whole Invocation
    # -------------------------------------------------------------------------

    async def run_scan(self, checkpoint: BatchCheckpoint) -> BatchResult:
        """
        Run pages until the scan completes or this invocation must stop.

        Stops when:
        - the scan is complete
        - the time budget is spent
        - catch-up mode has processed `max_records`
        - an incremental pass ended with fresh rows (the next pass, over rows
          edited again, is left to the next invocation)

        Raises:
            StoreError: If a page cannot be read
        """
        started_at = self.clock()
        cap = self.max_records if checkpoint.mode == ScanMode.CATCH_UP else None

        results: list[ProcessResult] = []
        current = checkpoint
        last_batch: BatchResult | None = None
        stopped_early = False

        while True:
            remaining = None if cap is None else cap - len(results)
            if remaining is not None and remaining <= 0:
                logger.info(f"Catch-up cap of {cap} records reached")
                stopped_early = True
                break
            if self._budget_exhausted(started_at):
                logger.info("Time budget spent before next page")
                stopped_early = True
                break

            last_batch = await self.run_batch(current, started_at=started_at, limit=remaining)
            results.extend(last_batch.results)
            current = last_batch.checkpoint

            if last_batch.is_complete or last_batch.stopped_early or not last_batch.more_pages:
                stopped_early = last_batch.stopped_early
                break

            logger.info("Batch processed, continuing with next batch")

        return BatchResult(
            results=results,
            checkpoint=current,
            is_complete=last_batch.is_complete if last_batch else False,
            total_count=last_batch.total_count if last_batch else None,
            stopped_early=stopped_early,
            more_pages=last_batch.more_pages if last_batch else True,
            new_pass=last_batch.new_pass if last_batch else False,
        )
