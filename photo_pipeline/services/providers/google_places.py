"""
Google Places API provider implementation.

Uses the Place Details endpoint and asks only for the fields the photo
jobs need (photos, rating, user_ratings_total) to keep the SKU cheap.
"""

import logging
import requests
from typing import Optional

from photo_pipeline.config.pipeline_config import (
    GOOGLE_PLACES_DETAILS_URL,
    PLACE_DETAILS_FIELDS,
    PLACE_DETAILS_COST,
    MAX_PHOTOS_PER_LOCATION,
    REQUEST_TIMEOUT_SECONDS,
)
from .base import (
    PlaceMetadataProvider,
    PlaceMetadata,
    ApiUsageTracker,
    ProviderUnavailableError,
    ProviderQuotaExceededError,
    NoDataError,
)

logger = logging.getLogger(__name__)

QUOTA_STATUSES = {"OVER_QUERY_LIMIT"}
NO_DATA_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class GooglePlacesProvider(PlaceMetadataProvider):
    """
    Google Places Details API provider.

    Limitations:
    - Returns max 10 photo references per place
    - Photo references expire, so they are refetched on every pass
    """

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        usage: Optional[ApiUsageTracker] = None,
        timeout: int = REQUEST_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.usage = usage
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "google_places"

    def _get_api_key(self, place_id: str) -> str:
        if not self.api_key:
            raise ProviderUnavailableError(
                "Google Maps API key is missing. Check GOOGLE_MAPS_API_KEY and REACT_APP_GOOGLE_MAPS_API_KEY.",
                provider=self.name,
                place_id=place_id,
            )
        return self.api_key

    def fetch_place_metadata(self, place_id: str) -> PlaceMetadata:
        """Fetch photo references, rating and review count for a place."""
        api_key = self._get_api_key(place_id)

        params = {
            "place_id": place_id,
            "fields": PLACE_DETAILS_FIELDS,
            "key": api_key,
        }

        try:
            response = self.session.get(GOOGLE_PLACES_DETAILS_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderUnavailableError(
                f"Failed to reach Google Places API: {str(e)}",
                provider=self.name,
                place_id=place_id,
            )
        finally:
            if self.usage is not None:
                self.usage.add_call("place_details", PLACE_DETAILS_COST)

        if response.status_code == 429:
            raise ProviderQuotaExceededError(
                "Google Places API rate limited the request (429)",
                provider=self.name,
                place_id=place_id,
            )
        if response.status_code != 200:
            raise ProviderUnavailableError(
                f"Google Places API error ({response.status_code}): {response.text[:200]}",
                provider=self.name,
                place_id=place_id,
            )

        try:
            data = response.json()
        except ValueError:
            raise ProviderUnavailableError(
                "Google Places API returned a non-JSON body",
                provider=self.name,
                place_id=place_id,
            )

        status = data.get("status")
        error_message = data.get("error_message") or "No error message"

        if status in QUOTA_STATUSES:
            raise ProviderQuotaExceededError(
                f"Google Places API quota exceeded: {error_message}",
                provider=self.name,
                place_id=place_id,
            )
        if status in NO_DATA_STATUSES:
            raise NoDataError(
                f"Google Places API returned status {status} for {place_id}",
                provider=self.name,
                place_id=place_id,
            )
        if status != "OK":
            raise ProviderUnavailableError(
                f"Google Places API returned status: {status} - {error_message}",
                provider=self.name,
                place_id=place_id,
            )

        result = data.get("result")
        if not result:
            raise NoDataError(
                f"No result returned for place {place_id}",
                provider=self.name,
                place_id=place_id,
            )

        photos = result.get("photos") or []
        references = [
            photo["photo_reference"]
            for photo in photos[:MAX_PHOTOS_PER_LOCATION]
            if photo.get("photo_reference")
        ]
        if not references:
            raise NoDataError(
                f"No photos found for place {place_id}",
                provider=self.name,
                place_id=place_id,
            )

        rating = result.get("rating")
        ratings_total = result.get("user_ratings_total")

        logger.debug(f"[PLACES] {place_id}: {len(references)} photo references, rating={rating}")

        return PlaceMetadata(
            place_id=place_id,
            photo_references=references,
            rating=float(rating) if isinstance(rating, (int, float)) else None,
            user_ratings_total=ratings_total if isinstance(ratings_total, int) else None,
            provider=self.name,
        )
