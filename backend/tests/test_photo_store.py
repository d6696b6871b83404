import asyncio
import time
from pathlib import Path

import pytest

from errors import InfrastructureError
from schemas.capture import PhotoMetadata
from storage.photo_store import PhotoStore


def _metadata(store: PhotoStore, photo_id: str = "photo_0123456789abcdef") -> PhotoMetadata:
    return PhotoMetadata(
        photo_id=photo_id,
        challenge_id="c1",
        client_id="client-a",
        message="",
        verified=True,
        video_hash="b" * 64,
        timestamp="2026-01-01T00:00:00.000Z",
        file_path=str(store.photo_path(photo_id)),
        photo_url=store.photo_url(photo_id),
        file_size=3,
        mime_type="image/png",
    )


def test_creates_directory(tmp_path):
    target = tmp_path / "nested" / "photos"
    PhotoStore(target)
    assert target.is_dir()


def test_photo_url_strips_trailing_slash(tmp_path):
    store = PhotoStore(tmp_path, base_url="https://example.com/", api_prefix="/api/v1")
    assert store.photo_url("photo_1") == "https://example.com/api/v1/capture/photo_1/file"


def test_metadata_roundtrip_uses_camel_case(store):
    metadata = _metadata(store)
    asyncio.run(store.save_metadata(metadata))
    raw = store.metadata_path(metadata.photo_id).read_text()
    assert '"photoId"' in raw and '"photo_id"' not in raw
    assert asyncio.run(store.load_metadata(metadata.photo_id)) == metadata


def test_load_missing_metadata(store):
    assert asyncio.run(store.load_metadata("photo_ffffffffffffffff")) is None


def test_corrupt_metadata_is_infrastructure_error(store):
    store.metadata_path("photo_0123456789abcdef").write_text("{not json")
    with pytest.raises(InfrastructureError):
        asyncio.run(store.load_metadata("photo_0123456789abcdef"))


def test_read_photo(store):
    path = asyncio.run(store.save_photo("photo_0123456789abcdef", b"abc"))
    assert path == store.photo_path("photo_0123456789abcdef")
    assert asyncio.run(store.read_photo(_metadata(store))) == b"abc"


def test_read_missing_photo_file(store):
    with pytest.raises(InfrastructureError):
        asyncio.run(store.read_photo(_metadata(store)))


def test_write_into_missing_directory_fails_cleanly(store):
    store.photos_dir.rmdir()
    with pytest.raises(InfrastructureError):
        asyncio.run(store.save_photo("photo_0123456789abcdef", b"abc"))


def test_slow_write_times_out(tmp_path, monkeypatch):
    store = PhotoStore(tmp_path, io_timeout=0.05)
    monkeypatch.setattr(type(store.photo_path("x")), "write_bytes", lambda self, data: time.sleep(0.3))
    with pytest.raises(InfrastructureError, match="Timed out"):
        asyncio.run(store.save_photo("photo_0123456789abcdef", b"abc"))


def test_discard_photo_is_idempotent(store):
    asyncio.run(store.save_photo("photo_0123456789abcdef", b"abc"))
    asyncio.run(store.discard_photo("photo_0123456789abcdef"))
    asyncio.run(store.discard_photo("photo_0123456789abcdef"))
    assert not store.photo_path("photo_0123456789abcdef").exists()


def test_timed_out_write_never_lands(tmp_path, monkeypatch):
    store = PhotoStore(tmp_path, io_timeout=0.05)
    real_write = Path.write_bytes

    def slow_write(self, data):
        time.sleep(0.3)
        return real_write(self, data)

    monkeypatch.setattr(Path, "write_bytes", slow_write)
    with pytest.raises(InfrastructureError, match="Timed out"):
        asyncio.run(store.save_photo("photo_0123456789abcdef", b"abc"))
    # asyncio.run has joined the worker thread by now
    assert list(tmp_path.iterdir()) == []
