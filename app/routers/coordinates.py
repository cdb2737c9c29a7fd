# =============================================================================
# app/routers/coordinates.py - Coordinate Update Endpoint
# =============================================================================
# One POST endpoint with two request shapes:
# - {"address": {...}}: geocode one row synchronously (webhook / trigger use)
# - {"isBatch": true, ...}: run a scan invocation and return the checkpoint
#
# Incomplete scans are continued by a Celery task when continuation is
# enabled; the response always carries the checkpoint so a caller without a
# worker can re-issue the request itself.
#
# The address store is only resolved after the body parses, so malformed
# input is always a 400.
# =============================================================================

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.dependencies import CoordinatorFactoryDep
from app.exceptions import InvalidRequestError
from core.models.address import AddressRecord
from core.models.batch import BatchCheckpoint, BatchRequest, BatchResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Helpers
# =============================================================================

def _parse(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(
            message=f"Invalid request. {e.error_count()} field(s) failed validation.",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e


def _schedule_continuation(checkpoint: BatchCheckpoint) -> str | None:
    """Enqueue the follow-up scan; None when disabled or the broker is down."""
    if not settings.BATCH_CONTINUATION_ENABLED:
        return None

    try:
        from workers.tasks import schedule_continuation

        return schedule_continuation(checkpoint)
    except Exception as e:
        logger.warning(f"Could not schedule scan continuation, caller must re-issue: {e}")
        return None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/update-coordinates")
async def update_coordinates(
    build_coordinator: CoordinatorFactoryDep,
    payload: Annotated[dict[str, Any], Body(
        examples=[
            {"address": {"profile_id": "a1", "generated_full_address": "10 Main St, Springfield"}},
            {"isBatch": True, "lastProcessedId": "00000000-0000-0000-0000-000000000000"},
            {"isBatch": True, "mode": "catch_up"},
        ],
    )],
):
    """
    Geocode one address or run a batch scan.

    Single address: returns a ProcessResult (status is updated, unchanged,
    not_found or error; none of these are HTTP errors).

    Batch: returns processed results plus lastProcessedId,
    lastProcessedTimestamp and since. Re-issue with those values until
    isComplete is true, or let the scheduled continuation task do it.
    """
    if payload.get("address"):
        record = _parse(AddressRecord, payload["address"])
        coordinator = await build_coordinator()
        logger.info(f"Processing single address {record.id} from webhook")
        result = await coordinator.processor.process(record)
        return result.model_dump(mode="json", by_alias=True)

    if payload.get("isBatch"):
        batch_request = _parse(BatchRequest, payload)
        checkpoint = batch_request.to_checkpoint()
        coordinator = await build_coordinator()
        logger.info(f"Running {checkpoint.mode.value} batch after {checkpoint.last_processed_id}")

        result = await coordinator.run_scan(checkpoint)

        continuation_task_id = None
        if not result.is_complete:
            continuation_task_id = _schedule_continuation(result.checkpoint)

        response = BatchResponse.from_result(result, continuation_task_id=continuation_task_id)
        return response.model_dump(mode="json", by_alias=True)

    raise InvalidRequestError()
