"""
Photo Pipeline Configuration

Tunables for the location photo ingestion jobs. The defaults are sized for the
Google Places photo endpoint and the Cloud Storage per-object write quota; bump
them only after checking the provider's current limits.

Usage:
    from photo_pipeline.config.pipeline_config import PipelineSettings

    settings = PipelineSettings.from_env()
    orchestrator = build_orchestrator(settings)
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv
from pathlib import Path

# Load .env file from project root
project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
load_dotenv(dotenv_path=env_path)

# =============================================================================
# Batching / Backpressure
# =============================================================================

DEFAULT_BATCH_SIZE = 3                 # Locations processed concurrently per batch
DEFAULT_BATCH_DELAY_SECONDS = 3.0      # Pause between batch start times
DEFAULT_PHOTO_DELAY_SECONDS = 0.5      # Pause between photo downloads/uploads
DEFAULT_MAX_PROCESSING_SECONDS = 220.0  # Wall-clock budget, checked at batch boundaries
MAX_BATCH_SIZE = 10

# =============================================================================
# Google Places
# =============================================================================

GOOGLE_PLACES_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
GOOGLE_PLACES_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
PLACE_DETAILS_FIELDS = "photos,rating,user_ratings_total"
MAX_PHOTOS_PER_LOCATION = 10           # Places API never returns more than 10
PHOTO_MAX_WIDTH_PX = 800
REQUEST_TIMEOUT_SECONDS = 10
DOWNLOAD_TIMEOUT_SECONDS = 30

# Approximate costs, used for the per-run usage summary only
PLACE_DETAILS_COST = 0.017
PLACE_PHOTO_COST = 0.007

# =============================================================================
# Cloud Storage
# =============================================================================

PHOTO_PATH_PREFIX = "location_photos"
PHOTO_CACHE_CONTROL = "public, max-age=31536000"  # 1 year
PUBLIC_URL_BASE = "https://storage.googleapis.com"

# =============================================================================
# Status
# =============================================================================

STATUS_RECORD_ID = "update_status"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass
class PipelineSettings:
    """Settings for one process. Built once at startup and injected."""

    google_maps_api_key: Optional[str] = None
    storage_bucket: Optional[str] = None
    google_application_credentials: Optional[str] = None
    admin_token: Optional[str] = None

    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    photo_delay_seconds: float = DEFAULT_PHOTO_DELAY_SECONDS
    max_processing_seconds: Optional[float] = DEFAULT_MAX_PROCESSING_SECONDS
    max_photos: int = MAX_PHOTOS_PER_LOCATION
    photo_max_width: int = PHOTO_MAX_WIDTH_PX

    def __post_init__(self):
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}")
        if self.batch_delay_seconds < 0 or self.photo_delay_seconds < 0:
            raise ValueError("Delays must not be negative")
        if self.max_processing_seconds is not None and self.max_processing_seconds <= 0:
            raise ValueError("max_processing_seconds must be positive (or None to disable)")
        if not 1 <= self.max_photos <= MAX_PHOTOS_PER_LOCATION:
            raise ValueError(f"max_photos must be between 1 and {MAX_PHOTOS_PER_LOCATION}")

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Build settings from environment variables (.env already loaded)."""
        return cls(
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or os.getenv("REACT_APP_GOOGLE_MAPS_API_KEY"),
            storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET") or os.getenv("GCS_BUCKET_NAME"),
            google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            admin_token=os.getenv("ADMIN_TOKEN"),
            batch_size=_env_int("PHOTO_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            batch_delay_seconds=_env_float("PHOTO_BATCH_DELAY_SECONDS", DEFAULT_BATCH_DELAY_SECONDS),
            photo_delay_seconds=_env_float("PHOTO_DOWNLOAD_DELAY_SECONDS", DEFAULT_PHOTO_DELAY_SECONDS),
            max_processing_seconds=_env_float("PHOTO_MAX_PROCESSING_SECONDS", DEFAULT_MAX_PROCESSING_SECONDS),
        )
