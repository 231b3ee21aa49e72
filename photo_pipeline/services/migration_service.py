"""
Photo Migration Service

Copies location photos from Google Places into durable Cloud Storage:
- Whole-catalog runs in fixed-size concurrent batches
- Single-location runs (new or edited locations)
- Skip check so repeated runs don't redo finished locations
- Wall-clock budget checked between batches
- Every location ends up in exactly one outcome bucket
"""

import time
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any, Callable, Awaitable

from photo_pipeline.config.pipeline_config import PipelineSettings
from photo_pipeline.services.providers import (
    PlaceMetadataProvider,
    ApiUsageTracker,
    ProviderUnavailableError,
    ProviderQuotaExceededError,
    NoDataError,
)
from photo_pipeline.services.photo_service import PhotoService
from photo_pipeline.services.storage_service import DurableStorageWriter, StorageUnavailableError
from photo_pipeline.services.location_repository import (
    LocationRepository,
    LocationSnapshot,
    RepositoryError,
)
from photo_pipeline.services.status_service import (
    StatusRecorder,
    RunSummary,
    RunType,
    Completeness,
)

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Outcome bucket for one location."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# Reasons attached to non-success outcomes
REASON_ALREADY_MIGRATED = "already_migrated"
REASON_NO_PHOTOS = "no_photos_available"
REASON_QUOTA_EXCEEDED = "quota_exceeded"
REASON_METADATA_FAILED = "metadata_fetch_failed"
REASON_DOWNLOAD_FAILED = "photo_download_failed"
REASON_UPDATE_FAILED = "update_failed"
REASON_UNEXPECTED = "unexpected_error"


@dataclass
class LocationResult:
    """Result of processing a single location."""
    location_id: str
    name: str
    outcome: Outcome
    reason: Optional[str] = None
    storage_success: bool = False
    photo_count: int = 0
    stored_count: int = 0
    failed_indices: List[int] = field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def degraded(self) -> bool:
        return self.outcome == Outcome.SUCCESS and not self.storage_success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location_id": self.location_id,
            "name": self.name,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "storage_success": self.storage_success,
            "photo_count": self.photo_count,
            "stored_count": self.stored_count,
            "failed_indices": self.failed_indices,
            "error": self.error,
            "duration_seconds": round(self.duration_seconds, 2),
        }


@dataclass
class MigrationReport:
    """Summary report for one run."""
    run_type: RunType
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    degraded: int = 0
    stored_photos: int = 0
    batches_run: int = 0
    completeness: Completeness = Completeness.FULL
    results: List[LocationResult] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # Cost tracking
    total_cost: float = 0.0
    api_calls: int = 0
    calls_by_api: Dict[str, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def duration_seconds(self) -> float:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    def add(self, result: LocationResult):
        self.results.append(result)
        if result.outcome == Outcome.SUCCESS:
            self.success += 1
            if result.degraded:
                self.degraded += 1
        elif result.outcome == Outcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1
        self.stored_photos += result.stored_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_type": self.run_type.value,
            "completeness": self.completeness.value,
            "total": self.total,
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "degraded": self.degraded,
            "stored_photos": self.stored_photos,
            "batches_run": self.batches_run,
            "duration_seconds": self.duration_seconds,
            "total_cost": self.total_cost,
            "api_calls": self.api_calls,
            "calls_by_api": self.calls_by_api,
            "results": [r.to_dict() for r in self.results],
        }


def order_references(references: List[str], stored_indices: List[int]) -> List[str]:
    """
    Lay out references so stored ones form a prefix.

    Stored references come first (original order), then the rest (original
    order), so storedPhotoUrls[i] always belongs to photoReferences[i].
    """
    stored = set(stored_indices)
    return (
        [ref for i, ref in enumerate(references) if i in stored]
        + [ref for i, ref in enumerate(references) if i not in stored]
    )


class PhotoMigrationOrchestrator:
    """
    Drives the per-location photo pipeline over one location or the catalog.

    One orchestrator per run: the usage tracker it reports from is shared
    with the provider and photo service built for that run.
    """

    def __init__(
        self,
        repository: LocationRepository,
        metadata_provider: PlaceMetadataProvider,
        photo_service: PhotoService,
        storage_writer: DurableStorageWriter,
        status_recorder: StatusRecorder,
        settings: PipelineSettings,
        usage: Optional[ApiUsageTracker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repository = repository
        self.metadata_provider = metadata_provider
        self.photo_service = photo_service
        self.storage_writer = storage_writer
        self.status_recorder = status_recorder
        self.settings = settings
        self.usage = usage or ApiUsageTracker()
        self._sleep = sleep
        self._clock = clock

    # =========================================================================
    # Per-location pipeline
    # =========================================================================

    def process_location(
        self,
        location_id: str,
        name: Optional[str] = None,
        force: bool = False,
    ) -> LocationResult:
        """
        Run the full pipeline for one location. Blocking.

        Never raises: every failure is classified into an outcome.

        Args:
            location_id: Location id (also the Google place id)
            name: Display name, for logging only
            force: Re-ingest even if the location already has stored photos

        Returns:
            LocationResult
        """
        label = name or location_id
        start = time.monotonic()

        try:
            result = self._process(location_id, label, force)
        except Exception as e:
            logger.error(f"[MIGRATION] {label}: unexpected error: {e}", exc_info=True)
            result = LocationResult(
                location_id=location_id,
                name=label,
                outcome=Outcome.FAILED,
                reason=REASON_UNEXPECTED,
                error=str(e),
            )

        result.duration_seconds = time.monotonic() - start
        return result

    def _process(self, location_id: str, label: str, force: bool) -> LocationResult:
        def finish(outcome: Outcome, reason: Optional[str] = None, **kwargs) -> LocationResult:
            return LocationResult(
                location_id=location_id, name=label, outcome=outcome, reason=reason, **kwargs
            )

        # Step 1: Skip check
        already_migrated = self.repository.is_already_migrated(location_id)
        if already_migrated and not force:
            logger.info(f"[MIGRATION] {label}: already has stored photos, skipping")
            return finish(Outcome.SKIPPED, REASON_ALREADY_MIGRATED)

        # Step 2: Fresh metadata
        try:
            metadata = self.metadata_provider.fetch_place_metadata(location_id)
        except NoDataError as e:
            logger.info(f"[MIGRATION] {label}: no photos available ({e})")
            return finish(Outcome.SKIPPED, REASON_NO_PHOTOS, error=str(e))
        except ProviderQuotaExceededError as e:
            logger.warning(f"[MIGRATION] {label}: quota exceeded, skipping ({e})")
            return finish(Outcome.SKIPPED, REASON_QUOTA_EXCEEDED, error=str(e))
        except ProviderUnavailableError as e:
            logger.error(f"[MIGRATION] {label}: metadata fetch failed: {e}")
            return finish(Outcome.FAILED, REASON_METADATA_FAILED, error=str(e))

        references = metadata.photo_references[:self.settings.max_photos]
        if not references:
            logger.info(f"[MIGRATION] {label}: provider returned no photo references, skipping")
            return finish(Outcome.SKIPPED, REASON_NO_PHOTOS)

        # Step 3: Download
        photos = self.photo_service.acquire(references, label=label)
        if not photos:
            logger.error(f"[MIGRATION] {label}: none of {len(references)} photos could be downloaded")
            return finish(
                Outcome.FAILED,
                REASON_DOWNLOAD_FAILED,
                photo_count=len(references),
                failed_indices=list(range(len(references))),
            )

        # Step 4: Durable copies, sequential
        stored_urls = []
        stored_indices = []
        failed_indices = [i for i in range(len(references)) if i not in {p.index for p in photos}]

        for position, photo in enumerate(photos):
            try:
                url = self.storage_writer.store_photo(
                    location_id, photo.index, photo.data, photo.content_type
                )
                stored_urls.append(url)
                stored_indices.append(photo.index)
            except StorageUnavailableError as e:
                logger.warning(f"[MIGRATION] {label}: failed to store photo {photo.index}: {e}")
                failed_indices.append(photo.index)

            if position < len(photos) - 1:
                self.photo_service.pause()

        failed_indices.sort()
        storage_success = len(stored_urls) > 0

        # Step 5/6: Write back
        update = {
            "last_fetched": datetime.now(timezone.utc).isoformat(),
        }
        if metadata.rating is not None:
            update["rating"] = metadata.rating
        if metadata.user_ratings_total is not None:
            update["userRatingsTotal"] = metadata.user_ratings_total

        if storage_success:
            ordered = order_references(references, stored_indices)
            update["photoReferences"] = ordered
            update["photoUrls"] = self.photo_service.build_photo_urls(ordered)
            update["storedPhotoUrls"] = stored_urls
        elif not already_migrated:
            update["photoReferences"] = list(references)
            update["photoUrls"] = self.photo_service.build_photo_urls(references)
        else:
            # Forced re-run that stored nothing: keep the existing reference
            # layout so it still lines up with the old storedPhotoUrls
            logger.warning(f"[MIGRATION] {label}: storage failed, keeping previous stored photos")

        try:
            self.repository.update_place_data(location_id, update)
        except RepositoryError as e:
            logger.error(f"[MIGRATION] {label}: failed to update location: {e}")
            return finish(
                Outcome.FAILED,
                REASON_UPDATE_FAILED,
                photo_count=len(references),
                failed_indices=failed_indices,
                error=str(e),
            )

        if storage_success:
            logger.info(f"[MIGRATION] {label}: stored {len(stored_urls)}/{len(references)} photos")
        else:
            logger.warning(f"[MIGRATION] {label}: updated with provider URLs only (storage failed)")

        return finish(
            Outcome.SUCCESS,
            storage_success=storage_success,
            photo_count=len(references),
            stored_count=len(stored_urls),
            failed_indices=failed_indices,
        )

    async def process_location_async(
        self,
        location_id: str,
        name: Optional[str] = None,
        force: bool = False,
    ) -> LocationResult:
        """Run ``process_location`` in the loop's default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: self.process_location(location_id, name, force)
        )

    # =========================================================================
    # Runs
    # =========================================================================

    def _budget_exceeded(self, started: float) -> bool:
        if self.settings.max_processing_seconds is None:
            return False
        return self._clock() - started >= self.settings.max_processing_seconds

    async def run_catalog(
        self,
        run_type: RunType = RunType.MANUAL,
        force: bool = False,
        locations: Optional[List[LocationSnapshot]] = None,
    ) -> MigrationReport:
        """
        Process the whole catalog in batches and record the run status.

        Args:
            run_type: Scheduled or manual
            force: Re-ingest locations that already have stored photos
            locations: Override the catalog scan (used by the CLI)

        Returns:
            MigrationReport
        """
        started = self._clock()
        report = MigrationReport(run_type=run_type, start_time=datetime.now(timezone.utc))

        if locations is None:
            loop = asyncio.get_running_loop()
            locations = await loop.run_in_executor(None, self.repository.list_all_locations)
        report.total = len(locations)

        batch_size = self.settings.batch_size
        batches = [locations[i:i + batch_size] for i in range(0, len(locations), batch_size)]
        logger.info(
            f"[MIGRATION] Starting {run_type.value} run: {len(locations)} locations "
            f"in {len(batches)} batches of {batch_size}"
        )

        for batch_number, batch in enumerate(batches):
            if batch_number > 0:
                if self._budget_exceeded(started):
                    report.completeness = Completeness.PARTIAL
                    logger.warning(
                        f"[MIGRATION] Time budget reached after {report.processed}/{report.total} "
                        f"locations, stopping"
                    )
                    break
                await self._sleep(self.settings.batch_delay_seconds)

            logger.info(f"[MIGRATION] Batch {batch_number + 1}/{len(batches)} ({len(batch)} locations)")
            results = await asyncio.gather(*[
                self.process_location_async(loc.id, loc.name, force)
                for loc in batch
            ])
            for result in results:
                report.add(result)
            report.batches_run += 1

        self._finish(report)

        elapsed = self._clock() - started
        await self._record(RunSummary(
            success_delta=report.success,
            failed_delta=report.failed,
            skipped_delta=report.skipped,
            run_type=run_type,
            total_locations=report.total,
            duration_seconds=elapsed,
            completeness=report.completeness,
            extra_info=self._run_info(report),
        ))
        return report

    async def run_single(
        self,
        location_id: str,
        force: bool = False,
        run_type: RunType = RunType.MANUAL,
    ) -> MigrationReport:
        """Process one location and record the run status."""
        started = self._clock()
        report = MigrationReport(run_type=run_type, total=1, start_time=datetime.now(timezone.utc))

        result = await self.process_location_async(location_id, force=force)
        report.add(result)
        report.batches_run = 1
        self._finish(report)

        info = self._run_info(report)
        info["location_id"] = location_id
        await self._record(RunSummary(
            success_delta=report.success,
            failed_delta=report.failed,
            skipped_delta=report.skipped,
            run_type=run_type,
            total_locations=1,
            duration_seconds=self._clock() - started,
            extra_info=info,
        ))
        return report

    async def _record(self, summary: RunSummary):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.status_recorder.record_run, summary)

    def _finish(self, report: MigrationReport):
        report.end_time = datetime.now(timezone.utc)
        report.total_cost = self.usage.total_cost
        report.api_calls = self.usage.total_calls
        report.calls_by_api = dict(self.usage.calls_by_api)

        logger.info(
            f"[MIGRATION] {report.run_type.value} run {report.completeness.value}: "
            f"{report.success} success ({report.degraded} degraded), "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        logger.info(f"[MIGRATION] {self.usage.summary()}")

    def _run_info(self, report: MigrationReport) -> Dict[str, Any]:
        return {
            "processed_locations": report.processed,
            "degraded_count": report.degraded,
            "stored_photos": report.stored_photos,
            "api_calls": report.api_calls,
            "estimated_cost": round(report.total_cost, 4),
        }
