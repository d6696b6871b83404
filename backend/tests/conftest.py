import numpy as np
import pytest
from fastapi.testclient import TestClient

from main import create_app
from processing.capture import CaptureService
from processing.challenge import ChallengeManager
from processing.crypto import CryptoService
from schemas.capture import CapturePhotoRequest, UploadedPhoto
from state.cache import ExpiringCache
from storage.photo_store import PhotoStore

FAKE_JPEG = b"\xff\xd8\xff\xe0" + b"fake-image-data" * 64


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ExpiringCache(clock=clock)


@pytest.fixture
def crypto():
    return CryptoService()


@pytest.fixture
def challenges(cache, crypto, clock):
    return ChallengeManager(cache, crypto, rng=np.random.default_rng(1234), clock=clock)


@pytest.fixture
def store(tmp_path):
    return PhotoStore(tmp_path / "photos", base_url="http://localhost:3000", api_prefix="/api/v1")


@pytest.fixture
def capture(challenges, crypto, store):
    return CaptureService(challenges, crypto, store)


@pytest.fixture
def photo():
    return UploadedPhoto(content=FAKE_JPEG, size=len(FAKE_JPEG), mimetype="image/jpeg")


@pytest.fixture
def make_request():
    def _make(challenge_id, client_id="client-a", video_hash="a" * 64, message=""):
        return CapturePhotoRequest(
            challenge_id=challenge_id,
            client_id=client_id,
            video_hash=video_hash,
            message=message,
        )
    return _make


@pytest.fixture
def client(tmp_path):
    app = create_app(photos_dir=tmp_path / "photos", base_url="http://testserver", cleanup_interval=0)
    with TestClient(app) as test_client:
        yield test_client
