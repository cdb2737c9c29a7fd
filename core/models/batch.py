# =============================================================================
# core/models/batch.py - Batch Scan Schemas
# =============================================================================
# These models define the contract for batch geocoding:
# - ScanMode: incremental vs catch-up selection of rows
# - BatchCheckpoint: Resumable cursor handed from one invocation to the next
# - BatchResult: What one invocation did and where the next should start
# - BatchRequest / BatchResponse: HTTP shapes (camelCase on the wire)
#
# Flow:
# 1. Caller POSTs {"isBatch": true} -> scan starts at the zero id
# 2. Response carries lastProcessedId / lastProcessedTimestamp / since
# 3. Caller (or the Celery continuation) re-issues with those values until
#    isComplete is true
# =============================================================================

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .address import ProcessResult

# Lowest possible UUID; every real profile_id sorts after it.
ZERO_ID = "00000000-0000-0000-0000-000000000000"


class ScanMode(str, Enum):
    """
    Which rows a scan selects.

    - incremental: rows after the id cursor (and updated after `since`)
    - catch_up: rows whose coordinates are null or zero
    """
    INCREMENTAL = "incremental"
    CATCH_UP = "catch_up"


class CamelModel(BaseModel):
    """Base for models exchanged with HTTP callers and Celery."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BatchCheckpoint(CamelModel):
    """
    Resumable position of a scan.

    Checkpoints are values: the coordinator never mutates the one it was given
    and always returns a fresh one.
    """

    last_processed_id: str = Field(
        default=ZERO_ID,
        min_length=1,
        description="Rows with an id strictly greater than this are next"
    )

    last_processed_timestamp: datetime | None = Field(
        default=None,
        description="Highest updated_at seen so far"
    )

    since: datetime | None = Field(
        default=None,
        description="Incremental mode: only rows updated after this instant"
    )

    mode: ScanMode = Field(default=ScanMode.INCREMENTAL)

    @field_validator("last_processed_timestamp", "since")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BatchResult(BaseModel):
    """Outcome of one coordinator invocation."""

    results: list[ProcessResult] = Field(default_factory=list)
    checkpoint: BatchCheckpoint
    is_complete: bool = False
    total_count: int | None = None
    stopped_early: bool = False
    # The last page was full, so the current pass has more rows
    more_pages: bool = False
    # The checkpoint starts a new incremental pass over rows edited again
    new_pass: bool = False

    @property
    def processed_count(self) -> int:
        return len(self.results)


class BatchRequest(CamelModel):
    """
    Body of a batch request.

    Example:
        {
            "isBatch": true,
            "lastProcessedId": "00000000-0000-0000-0000-000000000000",
            "lastProcessedTimestamp": null,
            "mode": "incremental"
        }
    """

    is_batch: bool
    last_processed_id: str | None = None
    last_processed_timestamp: datetime | None = None
    since: datetime | None = None
    mode: ScanMode = ScanMode.INCREMENTAL

    def to_checkpoint(self) -> BatchCheckpoint:
        return BatchCheckpoint(
            last_processed_id=self.last_processed_id or ZERO_ID,
            last_processed_timestamp=self.last_processed_timestamp,
            since=self.since,
            mode=self.mode,
        )


class BatchResponse(CamelModel):
    """Aggregated batch outcome plus the checkpoint to resume from."""

    message: str
    processed_count: int
    total_count: int | None = None
    last_processed_id: str
    last_processed_timestamp: datetime | None = None
    since: datetime | None = None
    mode: ScanMode
    is_complete: bool
    continuation_task_id: str | None = None
    results: list[ProcessResult] = Field(default_factory=list)

    @classmethod
    def from_result(
        cls,
        result: BatchResult,
        continuation_task_id: str | None = None,
    ) -> "BatchResponse":
        if result.is_complete:
            message = "All addresses processed"
        elif continuation_task_id:
            message = "Batch processed, next batch scheduled"
        else:
            message = "Batch processed, re-issue with the returned checkpoint to continue"

        checkpoint = result.checkpoint
        return cls(
            message=message,
            processed_count=result.processed_count,
            total_count=result.total_count,
            last_processed_id=checkpoint.last_processed_id,
            last_processed_timestamp=checkpoint.last_processed_timestamp,
            since=checkpoint.since,
            mode=checkpoint.mode,
            is_complete=result.is_complete,
            continuation_task_id=continuation_task_id,
            results=result.results,
        )
