"""
Capture verification handshake.

Binds an uploaded photo to a single outstanding challenge. Checks run in a
fixed order and stop at the first failure:

1. file present, non-empty, at most MAX_PHOTO_SIZE, allowed mime type
2. video hash shaped like a lowercase SHA-256 hex digest
3. challenge exists and has not expired
4. challenge was issued to the same client
then the photo and its metadata are persisted and the challenge is deleted
last, so a failed write leaves the challenge usable and no metadata behind.

`verified` only means the challenge was valid when the photo arrived; no image
or video analysis happens here.
"""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from config import (
    ALLOWED_MIME_TYPES, MAX_MESSAGE_LENGTH, MAX_PHOTO_SIZE,
    PHOTO_ID_HEX_CHARS, PHOTO_ID_PREFIX,
)
from errors import ClientInputError, IntegrityError, NotFoundError
from processing.challenge import ChallengeManager
from processing.crypto import CryptoService
from schemas.capture import CapturePhotoRequest, CaptureResponse, PhotoMetadata, UploadedPhoto
from storage.photo_store import PhotoStore

logger = logging.getLogger("uvicorn.error").getChild("capture")

SHA256_HEX = re.compile(r"^[a-f0-9]{64}$")
PHOTO_ID = re.compile(rf"^{PHOTO_ID_PREFIX}[a-f0-9]{{{PHOTO_ID_HEX_CHARS}}}$")


def validate_photo_file(photo: UploadedPhoto | None) -> None:
    if photo is None:
        raise ClientInputError("No photo file provided")
    if photo.size <= 0:
        raise ClientInputError("Photo file is empty")
    if photo.size > MAX_PHOTO_SIZE:
        raise ClientInputError(f"Photo file too large (max {MAX_PHOTO_SIZE // (1024 * 1024)}MB)")
    if photo.mimetype not in ALLOWED_MIME_TYPES:
        raise ClientInputError("Invalid photo format. Only JPEG and PNG are allowed")


def validate_video_hash(video_hash: str) -> None:
    if not isinstance(video_hash, str) or not SHA256_HEX.fullmatch(video_hash):
        raise ClientInputError("Invalid video hash format. Expected 64-character SHA-256 hex string")


def validate_request_fields(request: CapturePhotoRequest) -> None:
    for name in ("challenge_id", "client_id", "video_hash"):
        if not getattr(request, name):
            raise ClientInputError(f"{name} is required")
    if len(request.message) > MAX_MESSAGE_LENGTH:
        raise ClientInputError(f"Message too long (max {MAX_MESSAGE_LENGTH} characters)")


def is_valid_photo_id(photo_id: str) -> bool:
    return bool(PHOTO_ID.fullmatch(photo_id))


class CaptureService:
    def __init__(self, challenges: ChallengeManager, crypto: CryptoService, store: PhotoStore):
        self.challenges = challenges
        self.crypto = crypto
        self.store = store
        self._index: dict[str, PhotoMetadata] = {}
        # challenge_id -> [lock, holders]
        self._locks: dict[str, list] = {}

    @asynccontextmanager
    async def _challenge_lock(self, challenge_id: str):
        """Serialize the lookup -> compare -> persist -> delete sequence per challenge."""
        slot = self._locks.setdefault(challenge_id, [asyncio.Lock(), 0])
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[challenge_id]

    def generate_photo_id(self) -> str:
        nonce = self.crypto.generate_nonce(PHOTO_ID_HEX_CHARS // 2)
        return f"{PHOTO_ID_PREFIX}{nonce[:PHOTO_ID_HEX_CHARS]}"

    async def capture_photo(self, photo: UploadedPhoto | None, request: CapturePhotoRequest) -> CaptureResponse:
        validate_photo_file(photo)
        validate_request_fields(request)
        validate_video_hash(request.video_hash)

        async with self._challenge_lock(request.challenge_id):
            challenge = self.challenges.get_challenge(request.challenge_id)
            if challenge is None:
                raise NotFoundError("Challenge not found or expired", status_code=400)

            if challenge.client_id != request.client_id:
                logger.warning(f"Client ID mismatch for challenge {request.challenge_id}: "
                               f"issued to {challenge.client_id}, presented by {request.client_id}")
                raise IntegrityError("Client ID mismatch")

            photo_id = self.generate_photo_id()
            timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

            file_path = await self.store.save_photo(photo_id, photo.content)
            metadata = PhotoMetadata(
                photo_id=photo_id,
                challenge_id=request.challenge_id,
                client_id=request.client_id,
                message=request.message,
                verified=True,
                video_hash=request.video_hash,
                timestamp=timestamp,
                file_path=str(file_path),
                photo_url=self.store.photo_url(photo_id),
                file_size=photo.size,
                mime_type=photo.mimetype,
            )
            try:
                await self.store.save_metadata(metadata)
            except Exception:
                await self.store.discard_photo(photo_id)
                raise
            self._index[photo_id] = metadata

            self.challenges.delete_challenge(request.challenge_id)

        logger.info(f"Photo captured: {photo_id} for client: {request.client_id}")

        return CaptureResponse(
            photo_id=photo_id,
            photo_url=metadata.photo_url,
            message=metadata.message,
            verified=metadata.verified,
            timestamp=timestamp,
            client_id=request.client_id,
        )

    async def get_photo(self, photo_id: str) -> PhotoMetadata | None:
        """Index first, then the JSON sidecar on disk (repopulating the index)."""
        if not is_valid_photo_id(photo_id):
            return None

        metadata = self._index.get(photo_id)
        if metadata is not None:
            return metadata

        metadata = await self.store.load_metadata(photo_id)
        if metadata is not None:
            self._index[photo_id] = metadata
        return metadata
