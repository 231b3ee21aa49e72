"""Shared test fixtures."""
import os

# Must be set before photo_pipeline.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from google.api_core.exceptions import InternalServerError

from photo_pipeline.database import Base
from photo_pipeline.config.pipeline_config import PipelineSettings
from photo_pipeline.models.database import Location
from photo_pipeline.services.providers import (
    PlaceMetadataProvider,
    PlaceMetadata,
    ApiUsageTracker,
)
from photo_pipeline.services.photo_service import PhotoService, PhotoDownloadError, DownloadedPhoto
from photo_pipeline.services.storage_service import DurableStorageWriter
from photo_pipeline.services.location_repository import LocationRepository
from photo_pipeline.services.status_service import StatusRecorder
from photo_pipeline.services.migration_service import PhotoMigrationOrchestrator


TEST_BUCKET = "test-bucket"


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------

class FakeResponse:
    """Just enough of requests.Response for the services."""

    def __init__(self, status_code=200, json_data=None, content=b"", headers=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeHttpSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# ---------------------------------------------------------------------------
# Cloud Storage fakes
# ---------------------------------------------------------------------------

class FakeBlob:
    def __init__(self, name, bucket):
        self.name = name
        self.bucket = bucket
        self.cache_control = None
        self.content_type = None
        self.data = None
        self.made_public = False
        self.deleted = False

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail_all or self.name in self.bucket.fail_paths:
            raise InternalServerError(f"upload failed for {self.name}")
        self.data = data
        self.content_type = content_type
        self.bucket.blobs[self.name] = self

    def make_public(self):
        if self.bucket.public_error is not None:
            raise self.bucket.public_error
        self.made_public = True

    def delete(self):
        self.deleted = True
        self.bucket.blobs.pop(self.name, None)


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.blobs = {}
        self.fail_paths = set()
        self.fail_all = False
        self.public_error = None

    def blob(self, name):
        return FakeBlob(name, self)


class FakeStorageClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        if name not in self.buckets:
            self.buckets[name] = FakeBucket(name)
        return self.buckets[name]

    def list_blobs(self, bucket_name, prefix=None):
        bucket = self.bucket(bucket_name)
        return [b for name, b in list(bucket.blobs.items()) if name.startswith(prefix or "")]


# ---------------------------------------------------------------------------
# Pipeline fakes
# ---------------------------------------------------------------------------

class FakeProvider(PlaceMetadataProvider):
    """Metadata by place id; values may be PlaceMetadata or an exception to raise."""

    def __init__(self, results=None, default_references=None):
        self.results = dict(results or {})
        self.default_references = default_references or ["ref0", "ref1", "ref2"]
        self.calls = []

    @property
    def name(self):
        return "fake"

    def fetch_place_metadata(self, place_id):
        self.calls.append(place_id)
        result = self.results.get(place_id)
        if isinstance(result, Exception):
            raise result
        if result is None:
            result = PlaceMetadata(
                place_id=place_id,
                photo_references=list(self.default_references),
                rating=4.5,
                user_ratings_total=120,
                provider=self.name,
            )
        return result


class FakePhotoService(PhotoService):
    """PhotoService whose downloads never touch the network."""

    def __init__(self, failing_references=None, **kwargs):
        kwargs.setdefault("api_key", "test-key")
        kwargs.setdefault("delay_seconds", 0)
        super().__init__(**kwargs)
        self.failing_references = set(failing_references or [])

    def download(self, photo):
        if photo.reference in self.failing_references:
            raise PhotoDownloadError(f"Failed to download photo {photo.index}: HTTP 500")
        return DownloadedPhoto(
            reference=photo.reference,
            index=photo.index,
            data=f"bytes-{photo.reference}".encode(),
            content_type="image/jpeg",
            source_url=self.build_photo_url(photo.reference),
        )


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeSleep:
    """Async sleep that records delays and advances a FakeClock."""

    def __init__(self, clock=None):
        self.clock = clock
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine (shared across worker threads) with schema created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def add_location(session_factory):
    """Factory fixture: insert a location row."""
    def _add(location_id, name=None, place_data=None):
        db = session_factory()
        try:
            db.add(Location(id=location_id, name=name or f"Location {location_id}", place_data=place_data))
            db.commit()
        finally:
            db.close()
        return location_id
    return _add


@pytest.fixture
def load_place_data(session_factory):
    """Read a location's placeData straight from the database."""
    def _load(location_id):
        db = session_factory()
        try:
            return db.get(Location, location_id).place_data
        finally:
            db.close()
    return _load


@pytest.fixture
def repository(session_factory):
    return LocationRepository(session_factory)


@pytest.fixture
def status_recorder(session_factory):
    return StatusRecorder(session_factory)


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def storage_writer(storage_client):
    return DurableStorageWriter(TEST_BUCKET, client=storage_client)


@pytest.fixture
def bucket(storage_client):
    return storage_client.bucket(TEST_BUCKET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def photo_service():
    return FakePhotoService()


@pytest.fixture
def make_orchestrator(repository, provider, photo_service, storage_writer, status_recorder, clock, fake_sleep):
    """Factory fixture: orchestrator wired to fakes; settings overridable."""
    def _make(**settings_overrides):
        settings_kwargs = dict(
            google_maps_api_key="test-key",
            storage_bucket=TEST_BUCKET,
            batch_size=3,
            batch_delay_seconds=3.0,
            photo_delay_seconds=0,
            max_processing_seconds=220.0,
        )
        settings_kwargs.update(settings_overrides)
        return PhotoMigrationOrchestrator(
            repository=repository,
            metadata_provider=provider,
            photo_service=photo_service,
            storage_writer=storage_writer,
            status_recorder=status_recorder,
            settings=PipelineSettings(**settings_kwargs),
            usage=ApiUsageTracker(),
            sleep=fake_sleep,
            clock=clock,
        )
    return _make
