"""
Base classes for the place metadata provider layer.

Defines the interface a provider must implement and the error taxonomy
the migration orchestrator classifies on.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Dict


class ProviderError(Exception):
    """Base exception for provider errors."""
    def __init__(self, message: str, provider: str, place_id: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.place_id = place_id


class ProviderUnavailableError(ProviderError):
    """Transport failure, non-200 response, or a non-OK provider status."""
    pass


class ProviderQuotaExceededError(ProviderError):
    """The provider reported that our quota is exhausted."""
    pass


class NoDataError(ProviderError):
    """The provider answered but had no result (or no photos) for the place."""
    pass


@dataclass
class PlaceMetadata:
    """Fresh metadata for one place."""
    place_id: str
    photo_references: List[str]
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    provider: str = "unknown"


@dataclass
class ApiUsageTracker:
    """
    Counts API calls and estimated spend for one run.

    Owned by whoever starts the run and handed to the provider and the
    photo service, so counts never leak between runs. Batch workers share
    one tracker, so updates go through a lock.
    """

    costs_by_api: Dict[str, float] = field(default_factory=dict)
    calls_by_api: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_call(self, api: str, cost: float, calls: int = 1):
        """Record calls (and their cost) against an API."""
        with self._lock:
            self.costs_by_api[api] = self.costs_by_api.get(api, 0) + cost * calls
            self.calls_by_api[api] = self.calls_by_api.get(api, 0) + calls

    @property
    def total_cost(self) -> float:
        return sum(self.costs_by_api.values())

    @property
    def total_calls(self) -> int:
        return sum(self.calls_by_api.values())

    def summary(self) -> str:
        lines = ["API Usage:"]
        for api, cost in self.costs_by_api.items():
            calls = self.calls_by_api.get(api, 0)
            lines.append(f"  {api}: ${cost:.4f} ({calls} calls)")
        lines.append(f"  TOTAL: ${self.total_cost:.4f} ({self.total_calls} calls)")
        return "\n".join(lines)


class PlaceMetadataProvider(ABC):
    """Abstract base class for place metadata providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging/tracking."""
        pass

    @abstractmethod
    def fetch_place_metadata(self, place_id: str) -> PlaceMetadata:
        """
        Fetch rating, review count and photo references for a place.

        Args:
            place_id: Google Places ID (same as the location id)

        Returns:
            PlaceMetadata with at least one photo reference

        Raises:
            ProviderUnavailableError: Transport or API failure
            ProviderQuotaExceededError: Quota exhausted
            NoDataError: No result or no photos for the place
        """
        pass
