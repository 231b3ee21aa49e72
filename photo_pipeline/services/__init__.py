# Migration exports
from photo_pipeline.services.migration_service import (
    Outcome,
    LocationResult,
    MigrationReport,
    PhotoMigrationOrchestrator,
    order_references,
)

# Status exports
from photo_pipeline.services.status_service import (
    RunType,
    Completeness,
    RunSummary,
    StatusRecorder,
)

# Collaborator exports
from photo_pipeline.services.location_repository import (
    LocationRepository,
    LocationSnapshot,
    RepositoryError,
    LocationNotFoundError,
    LocationUpdateError,
)
from photo_pipeline.services.photo_service import (
    PhotoService,
    UnresolvedPhoto,
    DownloadedPhoto,
)
from photo_pipeline.services.storage_service import (
    DurableStorageWriter,
    StorageUnavailableError,
)
from photo_pipeline.services.task_runner import AsyncTaskRunner
from photo_pipeline.services.factory import Pipeline, build_pipeline

__all__ = [
    "Outcome",
    "LocationResult",
    "MigrationReport",
    "PhotoMigrationOrchestrator",
    "order_references",
    "RunType",
    "Completeness",
    "RunSummary",
    "StatusRecorder",
    "LocationRepository",
    "LocationSnapshot",
    "RepositoryError",
    "LocationNotFoundError",
    "LocationUpdateError",
    "PhotoService",
    "UnresolvedPhoto",
    "DownloadedPhoto",
    "DurableStorageWriter",
    "StorageUnavailableError",
    "AsyncTaskRunner",
    "Pipeline",
    "build_pipeline",
]
