"""
Run status recording for the admin dashboard.

The status row is a singleton. Counters are incremented in SQL so two runs
finishing close together both land; the latest run's info replaces the
previous one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from photo_pipeline.config.pipeline_config import STATUS_RECORD_ID
from photo_pipeline.models.database import SystemStatus

logger = logging.getLogger(__name__)


class RunType(Enum):
    """What triggered a run."""
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class Completeness(Enum):
    """Whether a run got through the whole catalog."""
    FULL = "full"
    PARTIAL = "partial"


@dataclass
class RunSummary:
    """Counters and info for one finished run."""
    success_delta: int
    failed_delta: int
    skipped_delta: int
    run_type: RunType
    total_locations: int
    duration_seconds: float
    completeness: Completeness = Completeness.FULL
    extra_info: Dict[str, Any] = field(default_factory=dict)

    def info(self) -> Dict[str, Any]:
        info = {
            "total_locations": self.total_locations,
            "duration_seconds": round(self.duration_seconds, 2),
            "completeness": self.completeness.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        info.update(self.extra_info)
        return info


class StatusRecorder:
    """Persists run-level counters to the singleton status record."""

    def __init__(self, session_factory: Callable[[], Session], record_id: str = STATUS_RECORD_ID):
        self.session_factory = session_factory
        self.record_id = record_id

    def record_run(self, summary: RunSummary) -> bool:
        """
        Merge a run's outcome into the status record.

        Never raises: a status write failure must not fail the run.

        Returns:
            True if the status was written, False otherwise
        """
        try:
            self._merge(summary)
        except IntegrityError:
            # Another run created the row first; merge into it
            try:
                self._merge(summary)
            except Exception as e:
                logger.error(f"[STATUS] Error updating status record: {e}", exc_info=True)
                return False
        except Exception as e:
            logger.error(f"[STATUS] Error updating status record: {e}", exc_info=True)
            return False

        logger.info(
            f"[STATUS] Recorded {summary.run_type.value} run: +{summary.success_delta} success, "
            f"+{summary.failed_delta} failed, +{summary.skipped_delta} skipped"
        )
        return True

    def _merge(self, summary: RunSummary):
        db = self.session_factory()
        try:
            status = db.get(SystemStatus, self.record_id)
            if status is None:
                status = SystemStatus(
                    id=self.record_id,
                    success_count=summary.success_delta,
                    failed_count=summary.failed_delta,
                    skipped_count=summary.skipped_delta,
                )
                db.add(status)
            else:
                # SQL-side increments, never overwrite the running totals
                status.success_count = SystemStatus.success_count + summary.success_delta
                status.failed_count = SystemStatus.failed_count + summary.failed_delta
                status.skipped_count = SystemStatus.skipped_count + summary.skipped_delta

            status.last_update = datetime.now(timezone.utc)
            status.last_run_type = summary.run_type.value
            status.info = summary.info()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def get_status(self) -> Optional[Dict[str, Any]]:
        """Current status record as a dict, or None before the first run."""
        db = self.session_factory()
        try:
            status = db.get(SystemStatus, self.record_id)
            if status is None:
                return None
            return {
                "success_count": status.success_count,
                "failed_count": status.failed_count,
                "skipped_count": status.skipped_count,
                "last_update": status.last_update.isoformat() if status.last_update else None,
                "last_run_type": status.last_run_type,
                "info": dict(status.info or {}),
            }
        finally:
            db.close()
