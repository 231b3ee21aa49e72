"""
Provider abstraction layer for place metadata.

This module provides the interface for fetching place metadata (rating,
review count, photo references) from an external provider.
"""

from .base import (
    PlaceMetadataProvider,
    PlaceMetadata,
    ApiUsageTracker,
    ProviderError,
    ProviderUnavailableError,
    ProviderQuotaExceededError,
    NoDataError,
)
from .google_places import GooglePlacesProvider

__all__ = [
    "PlaceMetadataProvider",
    "PlaceMetadata",
    "ApiUsageTracker",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderQuotaExceededError",
    "NoDataError",
    "GooglePlacesProvider",
]
