"""Tests for photo_pipeline.services.photo_service: sequential photo downloads."""
import pytest
import requests

from conftest import FakeResponse, FakeHttpSession
from photo_pipeline.services.providers import ApiUsageTracker
from photo_pipeline.services.photo_service import (
    PhotoService,
    UnresolvedPhoto,
    PhotoDownloadError,
    InvalidContentTypeError,
)


def _image(data=b"jpeg-bytes", content_type="image/jpeg"):
    return FakeResponse(200, content=data, headers={"Content-Type": content_type})


def _service(*responses, delay_seconds=0.5):
    session = FakeHttpSession(list(responses))
    sleeps = []
    service = PhotoService(
        api_key="test-key",
        session=session,
        usage=ApiUsageTracker(),
        delay_seconds=delay_seconds,
        sleep=sleeps.append,
    )
    return service, session, sleeps


class TestBuildPhotoUrl:

    def test_url_is_deterministic(self):
        service, _, _ = _service()

        assert service.build_photo_url("abc") == (
            "https://maps.googleapis.com/maps/api/place/photo"
            "?maxwidth=800&photoreference=abc&key=test-key"
        )
        assert service.build_photo_url("abc") == service.build_photo_url("abc")

    def test_build_photo_urls_keeps_order_and_caps(self):
        service, _, _ = _service()
        refs = [f"r{i}" for i in range(12)]

        urls = service.build_photo_urls(refs)

        assert len(urls) == 10
        assert urls[0].endswith("photoreference=r0&key=test-key")
        assert urls[9].endswith("photoreference=r9&key=test-key")


class TestDownload:

    def test_returns_downloaded_photo(self):
        service, _, _ = _service(_image(content_type="image/png; charset=binary"))

        photo = service.download(UnresolvedPhoto(reference="abc", index=3))

        assert photo.index == 3
        assert photo.reference == "abc"
        assert photo.data == b"jpeg-bytes"
        assert photo.content_type == "image/png"
        assert photo.source_url == service.build_photo_url("abc")

    def test_non_2xx_raises(self):
        service, _, _ = _service(FakeResponse(403))

        with pytest.raises(PhotoDownloadError):
            service.download(UnresolvedPhoto(reference="abc", index=0))

    def test_non_image_content_type_raises(self):
        service, _, _ = _service(FakeResponse(200, content=b"<html>", headers={"Content-Type": "text/html"}))

        with pytest.raises(InvalidContentTypeError):
            service.download(UnresolvedPhoto(reference="abc", index=0))

    def test_transport_error_raises(self):
        service, _, _ = _service(requests.Timeout("timed out"))

        with pytest.raises(PhotoDownloadError):
            service.download(UnresolvedPhoto(reference="abc", index=0))


class TestAcquire:

    def test_downloads_in_order_with_delay_between(self):
        service, session, sleeps = _service(_image(b"a"), _image(b"b"), _image(b"c"))

        photos = service.acquire(["r0", "r1", "r2"])

        assert [p.data for p in photos] == [b"a", b"b", b"c"]
        assert [p.index for p in photos] == [0, 1, 2]
        assert [c["url"] for c in session.calls] == service.build_photo_urls(["r0", "r1", "r2"])
        # Delay between photos, not after the last one
        assert sleeps == [0.5, 0.5]
        assert service.usage.calls_by_api == {"place_photo": 3}

    def test_drops_failed_photos_and_keeps_original_indices(self):
        service, _, _ = _service(
            _image(b"a"),
            FakeResponse(500),
            FakeResponse(200, content=b"x", headers={"Content-Type": "text/plain"}),
            _image(b"d"),
        )

        photos = service.acquire(["r0", "r1", "r2", "r3"])

        assert [p.index for p in photos] == [0, 3]
        assert [p.reference for p in photos] == ["r0", "r3"]

    def test_returns_empty_list_when_everything_fails(self):
        service, _, _ = _service(FakeResponse(500), requests.ConnectionError("down"))

        assert service.acquire(["r0", "r1"]) == []

    def test_only_first_ten_references_are_used(self):
        service, session, _ = _service(*[_image() for _ in range(10)], delay_seconds=0)

        photos = service.acquire([f"r{i}" for i in range(12)])

        assert len(photos) == 10
        assert len(session.calls) == 10

    def test_no_sleep_when_delay_is_zero(self):
        service, _, sleeps = _service(_image(), _image(), delay_seconds=0)

        service.acquire(["r0", "r1"])

        assert sleeps == []
