# =============================================================================
# app/routers/tasks.py - Scan Task Endpoints
# =============================================================================
# Submit background scans and check on scheduled continuations.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel

from core.models.batch import ScanMode

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class TaskStatusResponse(BaseModel):
    """Response model for task status."""
    task_id: str
    status: str
    message: str | None = None
    result: dict | None = None
    error: str | None = None


class ScanSubmitRequest(BaseModel):
    """Start a scan in the background from the beginning of the table."""
    mode: ScanMode = ScanMode.CATCH_UP
    lookback_seconds: int | None = None


class TaskSubmitResponse(BaseModel):
    """Response model for task submission."""
    task_id: str
    status: str
    message: str


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/scan", response_model=TaskSubmitResponse)
async def submit_scan(request: ScanSubmitRequest | None = None):
    """
    Start a background scan.

    The task re-enqueues itself with its checkpoint until the scan completes.
    """
    request = request or ScanSubmitRequest()

    try:
        from workers.tasks import run_geocode_scan

        result = run_geocode_scan.delay(
            mode=request.mode.value,
            lookback_seconds=request.lookback_seconds,
        )

        return TaskSubmitResponse(
            task_id=result.id,
            status="PENDING",
            message="Scan submitted. Use GET /api/v1/tasks/{task_id} to check status.",
        )

    except Exception as e:
        logger.error(f"Error submitting scan task: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Failed to submit task. Is Redis running? Error: {e}"
        )


@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")]
):
    """
    Get the status of a background scan.

    - PENDING: Task is waiting in queue (or scheduled with a countdown)
    - STARTED: Task has been picked up by a worker
    - SUCCESS: Invocation finished; result carries the checkpoint and the
      id of the continuation task, if one was scheduled
    - RETRY: Reading the address table failed; Celery will retry
    - FAILURE: Task failed
    """
    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)

        response = TaskStatusResponse(
            task_id=task_id,
            status=result.status,
        )

        if result.status == "SUCCESS":
            response.result = result.result
            response.message = "Complete"

        elif result.status == "FAILURE":
            response.error = str(result.result) if result.result else "Unknown error"
            response.message = "Failed"

        elif result.status == "RETRY":
            response.message = "Retrying after a store error..."

        elif result.status == "PENDING":
            response.message = "Waiting in queue..."

        elif result.status == "STARTED":
            response.message = "Running..."

        return response

    except Exception as e:
        logger.error(f"Error getting task status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get task status: {e}")


@router.delete("/{task_id}")
async def cancel_task(
    task_id: Annotated[str, Path(description="Celery task ID")]
):
    """
    Cancel a pending or running scan.

    Revoking a scheduled continuation stops the chain: no later invocation
    is enqueued.
    """
    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)

        if result.status in ["SUCCESS", "FAILURE"]:
            return {
                "task_id": task_id,
                "message": f"Task already {result.status.lower()}, cannot cancel",
                "cancelled": False,
            }

        result.revoke(terminate=True)

        return {
            "task_id": task_id,
            "message": "Task cancelled",
            "cancelled": True,
        }

    except Exception as e:
        logger.error(f"Error cancelling task: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel task: {e}")
