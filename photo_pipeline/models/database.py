from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from photo_pipeline.database import Base


class Location(Base):
    """One venue in the catalog. The id doubles as the Google place_id."""
    __tablename__ = "locations"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)
    # Document-style sub-record: rating, userRatingsTotal, photoReferences,
    # photoUrls, storedPhotoUrls, last_fetched (plus any keys the admin UI adds)
    place_data = Column("placeData", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    place_data_updated_at = Column("placeData_updated_at", DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Location(id='{self.id}', name='{self.name}')>"


class SystemStatus(Base):
    """Singleton run counters for the photo jobs (row id: "update_status")."""
    __tablename__ = "system_status"

    id = Column(String, primary_key=True)
    success_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    last_update = Column(DateTime(timezone=True), nullable=True)
    last_run_type = Column(String, nullable=True)  # "scheduled" or "manual"
    info = Column(JSON, nullable=True)  # Latest run only; replaced on every write

    def __repr__(self):
        return (
            f"<SystemStatus(id='{self.id}', success={self.success_count}, "
            f"failed={self.failed_count}, skipped={self.skipped_count})>"
        )
