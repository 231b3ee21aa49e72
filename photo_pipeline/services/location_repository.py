from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from photo_pipeline.models.database import Location


class RepositoryError(Exception):
    """Base exception for location repository errors"""
    pass


class LocationNotFoundError(RepositoryError):
    """No location with the given id"""
    pass


class LocationUpdateError(RepositoryError):
    """The database rejected or failed a location write"""
    pass


@dataclass
class LocationSnapshot:
    """Photo-relevant view of a location record."""
    id: str
    name: str
    place_data: Dict[str, Any] = field(default_factory=dict)


def has_stored_photos(place_data: Optional[Dict[str, Any]]) -> bool:
    """True iff placeData.storedPhotoUrls exists and is a non-empty list."""
    if not place_data:
        return False
    urls = place_data.get("storedPhotoUrls")
    return isinstance(urls, list) and len(urls) > 0


def _snapshot(location: Location) -> LocationSnapshot:
    return LocationSnapshot(
        id=location.id,
        name=location.name or "Unknown location",
        place_data=dict(location.place_data or {}),
    )


class LocationRepository:
    """
    Reads and writes the photo-related part of location records.

    Every method opens its own short-lived session so it can be called from
    worker threads; sessions are never shared between locations.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def is_already_migrated(self, location_id: str) -> bool:
        """
        Check whether a location already has durable photo copies.

        A missing location is reported as not migrated; the pipeline finds
        out it's missing when it tries to write.
        """
        db = self.session_factory()
        try:
            location = db.get(Location, location_id)
            if location is None:
                return False
            return has_stored_photos(location.place_data)
        finally:
            db.close()

    def list_all_locations(self) -> List[LocationSnapshot]:
        """Full catalog scan in stable (id) order."""
        db = self.session_factory()
        try:
            locations = db.query(Location).order_by(Location.id).all()
            return [_snapshot(loc) for loc in locations]
        finally:
            db.close()

    def get_location(self, location_id: str) -> LocationSnapshot:
        """
        Get a single location.

        Raises:
            LocationNotFoundError: If the id does not exist
        """
        db = self.session_factory()
        try:
            location = db.get(Location, location_id)
            if location is None:
                raise LocationNotFoundError(f"Location not found: {location_id}")
            return _snapshot(location)
        finally:
            db.close()

    def update_place_data(self, location_id: str, partial_update: Dict[str, Any]) -> LocationSnapshot:
        """
        Merge keys into a location's placeData without touching the others.

        Read-merge-write: keys not in ``partial_update`` keep their values.
        Stamps updated_at and placeData_updated_at.

        Args:
            location_id: Location id
            partial_update: placeData keys to set

        Returns:
            Snapshot of the location after the write

        Raises:
            LocationNotFoundError: If the id does not exist
            LocationUpdateError: If the write fails
        """
        db = self.session_factory()
        try:
            location = db.get(Location, location_id)
            if location is None:
                raise LocationNotFoundError(f"Location not found: {location_id}")

            merged = dict(location.place_data or {})
            merged.update(partial_update)

            now = datetime.now(timezone.utc)
            # Assign a new dict so the JSON column registers the change
            location.place_data = merged
            location.updated_at = now
            location.place_data_updated_at = now

            db.commit()
            return _snapshot(location)
        except RepositoryError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise LocationUpdateError(f"Failed to update location {location_id}: {str(e)}")
        finally:
            db.close()
