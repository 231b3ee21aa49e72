"""
Photo Acquisition Service

Turns Google Places photo references into image bytes:
- Builds the photo URL for each reference (deterministic)
- Downloads photos one at a time with a fixed pause in between
- Validates status and content type
- Drops failed photos instead of aborting

Downloads are sequential on purpose; the photo host rejects bursts.
"""

import time
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union, Callable
import requests

from photo_pipeline.config.pipeline_config import (
    GOOGLE_PLACES_PHOTO_URL,
    PHOTO_MAX_WIDTH_PX,
    PLACE_PHOTO_COST,
    MAX_PHOTOS_PER_LOCATION,
    DEFAULT_PHOTO_DELAY_SECONDS,
    DOWNLOAD_TIMEOUT_SECONDS,
)
from photo_pipeline.services.providers import ApiUsageTracker

logger = logging.getLogger(__name__)


class PhotoServiceError(Exception):
    """Base exception for per-photo acquisition errors"""
    pass


class PhotoDownloadError(PhotoServiceError):
    """Transport failure or non-2xx response while downloading a photo"""
    pass


class InvalidContentTypeError(PhotoServiceError):
    """The photo URL answered with something that is not an image"""
    pass


@dataclass(frozen=True)
class UnresolvedPhoto:
    """A provider photo reference that has not been downloaded yet."""
    reference: str
    index: int


@dataclass(frozen=True)
class DownloadedPhoto:
    """A photo whose bytes have been fetched and validated."""
    reference: str
    index: int  # Position in the original reference list
    data: bytes
    content_type: str
    source_url: str


PhotoRef = Union[UnresolvedPhoto, DownloadedPhoto]


class PhotoService:
    """
    Downloads location photos from the Google Places photo endpoint.

    Features:
    - Deterministic URL construction (reference + max width + key)
    - Sequential downloads with an inter-photo delay
    - Per-photo failure isolation
    - API usage tracking
    """

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        usage: Optional[ApiUsageTracker] = None,
        delay_seconds: float = DEFAULT_PHOTO_DELAY_SECONDS,
        max_width: int = PHOTO_MAX_WIDTH_PX,
        max_photos: int = MAX_PHOTOS_PER_LOCATION,
        timeout: int = DOWNLOAD_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.usage = usage
        self.delay_seconds = delay_seconds
        self.max_width = max_width
        self.max_photos = max_photos
        self.timeout = timeout
        self._sleep = sleep

    def build_photo_url(self, reference: str) -> str:
        """Build the fetchable photo URL for a reference."""
        return (
            f"{GOOGLE_PLACES_PHOTO_URL}?maxwidth={self.max_width}"
            f"&photoreference={reference}&key={self.api_key}"
        )

    def build_photo_urls(self, references: Sequence[str]) -> List[str]:
        """Photo URLs for up to ``max_photos`` references, in order."""
        return [self.build_photo_url(ref) for ref in references[:self.max_photos]]

    def resolve(self, references: Sequence[str]) -> List[UnresolvedPhoto]:
        """Wrap raw references, keeping their original positions."""
        return [
            UnresolvedPhoto(reference=ref, index=i)
            for i, ref in enumerate(references[:self.max_photos])
        ]

    def download(self, photo: UnresolvedPhoto) -> DownloadedPhoto:
        """
        Download a single photo.

        Raises:
            PhotoDownloadError: Request failed or returned a non-2xx status
            InvalidContentTypeError: Response is not an image
        """
        url = self.build_photo_url(photo.reference)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise PhotoDownloadError(f"Failed to download photo {photo.index}: {str(e)}")
        finally:
            if self.usage is not None:
                self.usage.add_call("place_photo", PLACE_PHOTO_COST)

        if not 200 <= response.status_code < 300:
            raise PhotoDownloadError(
                f"Failed to download photo {photo.index}: HTTP {response.status_code}"
            )

        content_type = response.headers.get("Content-Type") or ""
        if not content_type.startswith("image/"):
            raise InvalidContentTypeError(f"Invalid content type: {content_type or 'missing'}")

        return DownloadedPhoto(
            reference=photo.reference,
            index=photo.index,
            data=response.content,
            content_type=content_type.split(";")[0].strip(),
            source_url=url,
        )

    def acquire(self, references: Sequence[str], label: str = "") -> List[DownloadedPhoto]:
        """
        Download photos for a list of references.

        Never raises for a single photo's failure; failed photos are dropped
        so the result may be shorter than the input (and may be empty), but
        it keeps the original order.

        Args:
            references: Provider photo references (only the first 10 are used)
            label: Location label for log lines

        Returns:
            List of DownloadedPhoto in original reference order
        """
        pending = self.resolve(references)
        downloaded = []

        for position, photo in enumerate(pending):
            try:
                downloaded.append(self.download(photo))
                logger.info(f"[PHOTO] {label} downloaded photo {photo.index + 1}/{len(pending)}")
            except PhotoServiceError as e:
                logger.warning(f"[PHOTO] {label} skipping photo {photo.index + 1}/{len(pending)}: {e}")

            # Pause between photos to avoid rate limits
            if position < len(pending) - 1:
                self.pause()

        logger.info(f"[PHOTO] {label} downloaded {len(downloaded)}/{len(pending)} photos")
        return downloaded

    def pause(self):
        """Sleep for the inter-photo delay (no-op when the delay is 0)."""
        if self.delay_seconds:
            self._sleep(self.delay_seconds)
