"""
Wiring for the photo pipeline.

Long-lived pieces (settings, storage client, repository, status recorder,
task runner) are built once per process. Per-run pieces (usage tracker,
metadata provider, photo service, orchestrator) are built fresh for each
run so API counts never mix between runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
import requests
from sqlalchemy.orm import Session

from photo_pipeline.config.pipeline_config import PipelineSettings
from photo_pipeline.services.providers import ApiUsageTracker, GooglePlacesProvider
from photo_pipeline.services.photo_service import PhotoService
from photo_pipeline.services.storage_service import DurableStorageWriter, get_storage_client
from photo_pipeline.services.location_repository import LocationRepository
from photo_pipeline.services.status_service import StatusRecorder
from photo_pipeline.services.migration_service import PhotoMigrationOrchestrator
from photo_pipeline.services.task_runner import AsyncTaskRunner

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Process-scoped collaborators shared by every run."""
    settings: PipelineSettings
    repository: LocationRepository
    storage_writer: DurableStorageWriter
    status_recorder: StatusRecorder
    task_runner: AsyncTaskRunner = field(default_factory=AsyncTaskRunner)
    http_session: requests.Session = field(default_factory=requests.Session)

    def new_orchestrator(self) -> PhotoMigrationOrchestrator:
        """Orchestrator for one run, with its own usage tracker."""
        usage = ApiUsageTracker()
        provider = GooglePlacesProvider(
            api_key=self.settings.google_maps_api_key,
            session=self.http_session,
            usage=usage,
        )
        photo_service = PhotoService(
            api_key=self.settings.google_maps_api_key,
            session=self.http_session,
            usage=usage,
            delay_seconds=self.settings.photo_delay_seconds,
            max_width=self.settings.photo_max_width,
            max_photos=self.settings.max_photos,
        )
        return PhotoMigrationOrchestrator(
            repository=self.repository,
            metadata_provider=provider,
            photo_service=photo_service,
            storage_writer=self.storage_writer,
            status_recorder=self.status_recorder,
            settings=self.settings,
            usage=usage,
        )


def build_pipeline(
    settings: PipelineSettings,
    session_factory: Callable[[], Session],
    storage_writer: Optional[DurableStorageWriter] = None,
    status_recorder: Optional[StatusRecorder] = None,
) -> Pipeline:
    """
    Build the process-scoped pipeline.

    Raises:
        StorageUnavailableError: If the bucket is unset or the client can't be created
    """
    if not settings.google_maps_api_key:
        logger.warning("[PIPELINE] GOOGLE_MAPS_API_KEY is not set; metadata fetches will fail")

    if storage_writer is None:
        client = get_storage_client(settings.google_application_credentials)
        storage_writer = DurableStorageWriter(settings.storage_bucket, client=client)

    return Pipeline(
        settings=settings,
        repository=LocationRepository(session_factory),
        storage_writer=storage_writer,
        status_recorder=status_recorder or StatusRecorder(session_factory),
    )
