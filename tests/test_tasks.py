# =============================================================================
# tests/test_tasks.py - Celery Task Tests
# =============================================================================
# Tests for workers/tasks.py. Tasks are called directly (no broker); the scan
# coroutine and the continuation enqueue are patched.
#
# Run with: poetry run pytest tests/test_tasks.py -v
# =============================================================================

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.models.address import ProcessResult, ProcessStatus
from core.models.batch import BatchCheckpoint, BatchResult, ScanMode
from core.services.batch_coordinator import utcnow
from lib.supabase_client import StoreError
from lib.utils import ConfigError
from workers import tasks


def batch_result(
    is_complete: bool, last_id: str = "addr-001", mode=ScanMode.INCREMENTAL, new_pass: bool = False
) -> BatchResult:
    return BatchResult(
        results=[ProcessResult(id=last_id, status=ProcessStatus.UPDATED)],
        checkpoint=BatchCheckpoint(last_processed_id=last_id, mode=mode),
        is_complete=is_complete,
        total_count=1,
        new_pass=new_pass,
    )


class TestRunGeocodeScan:
    """Tests for the run_geocode_scan task."""

    def test_complete_scan_does_not_reschedule(self):
        with patch.object(tasks, "_scan", AsyncMock(return_value=batch_result(True))), \
                patch.object(tasks, "schedule_continuation") as schedule:
            output = tasks.run_geocode_scan()

        schedule.assert_not_called()
        assert output["isComplete"] is True
        assert output["processedCount"] == 1
        assert output["continuationTaskId"] is None

    def test_incomplete_scan_schedules_continuation(self):
        result = batch_result(False, last_id="addr-009")
        with patch.object(tasks, "_scan", AsyncMock(return_value=result)), \
                patch.object(tasks, "schedule_continuation", return_value="next-1") as schedule:
            output = tasks.run_geocode_scan(checkpoint={"lastProcessedId": "addr-000"})

        schedule.assert_called_once_with(result.checkpoint, single_pass=False)
        assert output["continuationTaskId"] == "next-1"
        assert output["lastProcessedId"] == "addr-009"

    def test_single_pass_stops_at_new_pass(self):
        """Scheduled scans leave rows edited during the pass to the next tick."""
        result = batch_result(False, last_id="addr-009", new_pass=True)
        with patch.object(tasks, "_scan", AsyncMock(return_value=result)), \
                patch.object(tasks, "schedule_continuation") as schedule:
            output = tasks.run_geocode_scan(mode="incremental", single_pass=True)

        schedule.assert_not_called()
        assert output["isComplete"] is False
        assert output["continuationTaskId"] is None

    def test_single_pass_continues_within_its_pass(self):
        result = batch_result(False, last_id="addr-009")
        with patch.object(tasks, "_scan", AsyncMock(return_value=result)), \
                patch.object(tasks, "schedule_continuation", return_value="next-2") as schedule:
            output = tasks.run_geocode_scan(mode="incremental", single_pass=True)

        schedule.assert_called_once_with(result.checkpoint, single_pass=True)
        assert output["continuationTaskId"] == "next-2"

    def test_new_pass_is_followed_without_single_pass(self):
        result = batch_result(False, new_pass=True)
        with patch.object(tasks, "_scan", AsyncMock(return_value=result)), \
                patch.object(tasks, "schedule_continuation", return_value="next-3") as schedule:
            tasks.run_geocode_scan()

        schedule.assert_called_once_with(result.checkpoint, single_pass=False)

    def test_checkpoint_and_mode_are_passed_through(self):
        scan = AsyncMock(return_value=batch_result(True))
        with patch.object(tasks, "_scan", scan):
            tasks.run_geocode_scan(checkpoint={"lastProcessedId": "addr-004"}, mode="catch_up")

        start = scan.call_args.args[0]
        assert start.last_processed_id == "addr-004"
        assert start.mode == ScanMode.CATCH_UP

    def test_lookback_sets_since_for_incremental(self):
        scan = AsyncMock(return_value=batch_result(True))
        before = utcnow()
        with patch.object(tasks, "_scan", scan):
            tasks.run_geocode_scan(mode="incremental", lookback_seconds=600)

        since = scan.call_args.args[0].since
        assert before - timedelta(seconds=601) < since <= utcnow() - timedelta(seconds=600)

    def test_lookback_ignored_for_catch_up(self):
        scan = AsyncMock(return_value=batch_result(True, mode=ScanMode.CATCH_UP))
        with patch.object(tasks, "_scan", scan):
            tasks.run_geocode_scan(mode="catch_up", lookback_seconds=600)

        assert scan.call_args.args[0].since is None

    def test_config_error_returns_failure(self):
        with patch.object(tasks, "_scan", AsyncMock(side_effect=ConfigError(["SUPABASE_URL"]))):
            output = tasks.run_geocode_scan()

        assert output == {"success": False, "error": "Server configuration error", "code": "CONFIG_ERROR"}

    def test_store_error_is_retried(self):
        """Called directly, Celery's retry re-raises the original error."""
        error = StoreError("timeout", operation="fetch_page_after")
        with patch.object(tasks, "_scan", AsyncMock(side_effect=error)):
            with pytest.raises(StoreError):
                tasks.run_geocode_scan()


class TestScheduleContinuation:
    """Tests for schedule_continuation."""

    def test_enqueues_checkpoint_with_countdown(self):
        checkpoint = BatchCheckpoint(last_processed_id="addr-009", mode=ScanMode.CATCH_UP)
        with patch.object(tasks.run_geocode_scan, "apply_async", return_value=MagicMock(id="next-1")) as apply:
            task_id = tasks.schedule_continuation(checkpoint, countdown=7)

        assert task_id == "next-1"
        kwargs = apply.call_args.kwargs
        assert kwargs["countdown"] == 7
        assert kwargs["kwargs"]["checkpoint"]["lastProcessedId"] == "addr-009"
        assert kwargs["kwargs"]["checkpoint"]["mode"] == "catch_up"
        assert "single_pass" not in kwargs["kwargs"]

    def test_single_pass_is_carried_to_the_next_task(self):
        with patch.object(tasks.run_geocode_scan, "apply_async", return_value=MagicMock(id="next-1")) as apply:
            tasks.schedule_continuation(BatchCheckpoint(last_processed_id="addr-009"), countdown=0, single_pass=True)

        assert apply.call_args.kwargs["kwargs"]["single_pass"] is True

    def test_scheduled_incremental_scan_is_single_pass(self):
        from workers.config import CeleryConfig

        entry = CeleryConfig.beat_schedule["incremental-geocode-scan"]

        assert entry["kwargs"]["single_pass"] is True
        assert entry["kwargs"]["mode"] == "incremental"


class TestGeocodeSingleAddress:
    """Tests for the geocode_single_address task."""

    def test_returns_serialized_result(self):
        result = ProcessResult(id="a1", status=ProcessStatus.NOT_FOUND)
        with patch.object(tasks, "_process_one", AsyncMock(return_value=result)) as process:
            output = tasks.geocode_single_address({"profile_id": "a1", "generated_full_address": "Nowhere"})

        assert output["status"] == "not_found"
        assert process.call_args.args[0].full_address_text == "Nowhere"
