"""Tests for photo_pipeline.services.status_service: run counters on the singleton status row."""
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from photo_pipeline.services.status_service import (
    StatusRecorder,
    RunSummary,
    RunType,
    Completeness,
)


def _summary(success=0, failed=0, skipped=0, run_type=RunType.MANUAL, **kwargs):
    kwargs.setdefault("total_locations", success + failed + skipped)
    kwargs.setdefault("duration_seconds", 1.5)
    return RunSummary(
        success_delta=success,
        failed_delta=failed,
        skipped_delta=skipped,
        run_type=run_type,
        **kwargs,
    )


class TestRecordRun:

    def test_get_status_is_none_before_first_run(self, status_recorder):
        assert status_recorder.get_status() is None

    def test_first_run_creates_record(self, status_recorder):
        assert status_recorder.record_run(_summary(success=2, failed=1, skipped=4)) is True

        status = status_recorder.get_status()
        assert status["success_count"] == 2
        assert status["failed_count"] == 1
        assert status["skipped_count"] == 4
        assert status["last_run_type"] == "manual"
        assert status["last_update"] is not None
        assert status["info"]["total_locations"] == 7
        assert status["info"]["completeness"] == "full"

    def test_counters_accumulate_across_runs(self, status_recorder):
        status_recorder.record_run(_summary(success=3))
        status_recorder.record_run(_summary(success=2, failed=1))

        status = status_recorder.get_status()
        assert status["success_count"] == 5
        assert status["failed_count"] == 1
        assert status["skipped_count"] == 0

    def test_info_and_run_type_are_replaced(self, status_recorder):
        status_recorder.record_run(_summary(success=1, extra_info={"location_id": "loc-1"}))
        status_recorder.record_run(_summary(
            skipped=1,
            run_type=RunType.SCHEDULED,
            completeness=Completeness.PARTIAL,
            extra_info={"degraded_count": 0},
        ))

        status = status_recorder.get_status()
        assert status["last_run_type"] == "scheduled"
        assert status["info"]["completeness"] == "partial"
        assert "location_id" not in status["info"]
        assert status["info"]["degraded_count"] == 0

    def test_write_failure_is_logged_not_raised(self, session_factory, caplog):
        recorder = StatusRecorder(session_factory)

        with patch("sqlalchemy.orm.Session.commit", side_effect=OperationalError("UPDATE", {}, Exception("down"))):
            assert recorder.record_run(_summary(success=1)) is False

        assert "Error updating status record" in caplog.text
        assert recorder.get_status() is None
