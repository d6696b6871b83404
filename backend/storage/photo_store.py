import asyncio
import logging
import os
import threading
from pathlib import Path

from pydantic import ValidationError

from config import API_PREFIX, BASE_URL, FILE_WRITE_TIMEOUT
from errors import InfrastructureError
from schemas.capture import PhotoMetadata

logger = logging.getLogger("uvicorn.error").getChild("photo_store")


class _PendingWrite:
    """Shared by a write's worker thread and the coroutine waiting on it.

    The worker writes to a temp file and only renames it into place while
    holding `lock` and only if the waiter has not given up.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.abandoned = threading.Event()
        self.committed = False


def _write_file(path: Path, data: bytes, pending: _PendingWrite) -> None:
    tmp = path.with_name(f"{path.name}.tmp")
    try:
        tmp.write_bytes(data)
        with pending.lock:
            if pending.abandoned.is_set():
                tmp.unlink(missing_ok=True)
                return
            os.replace(tmp, path)
            pending.committed = True
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class PhotoStore:
    """Durable photo archive: `<photoId>.jpg` plus a `<photoId>.json` sidecar per photo.

    Blocking file I/O runs in a worker thread and is bounded by `io_timeout`.
    """

    def __init__(
        self,
        photos_dir: Path,
        base_url: str = BASE_URL,
        api_prefix: str = API_PREFIX,
        io_timeout: float = FILE_WRITE_TIMEOUT,
    ):
        self.photos_dir = Path(photos_dir)
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.io_timeout = io_timeout
        if not self.photos_dir.exists():
            self.photos_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created photos directory: {self.photos_dir}")

    def photo_path(self, photo_id: str) -> Path:
        return self.photos_dir / f"{photo_id}.jpg"

    def metadata_path(self, photo_id: str) -> Path:
        return self.photos_dir / f"{photo_id}.json"

    def photo_url(self, photo_id: str) -> str:
        return f"{self.base_url}{self.api_prefix}/capture/{photo_id}/file"

    async def _run(self, what: str, func, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.io_timeout)
        except asyncio.TimeoutError:
            logger.error(f"[PhotoStore] {what} timed out after {self.io_timeout}s")
            raise InfrastructureError(f"Timed out: {what}")

    async def _write(self, path: Path, data: bytes) -> None:
        """Write `data` to `path` so that a timed-out write never lands on disk later."""
        pending = _PendingWrite()
        try:
            await asyncio.wait_for(
                asyncio.to_thread(_write_file, path, data, pending), timeout=self.io_timeout
            )
        except asyncio.TimeoutError:
            self._abandon(path, pending)
            logger.error(f"[PhotoStore] write {path.name} timed out after {self.io_timeout}s")
            raise InfrastructureError(f"Timed out: write {path.name}")
        except asyncio.CancelledError:
            self._abandon(path, pending)
            raise

    @staticmethod
    def _abandon(path: Path, pending: _PendingWrite) -> None:
        with pending.lock:
            pending.abandoned.set()
            committed = pending.committed
        # the rename won the race; take the file back out
        if committed:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[PhotoStore] could not remove abandoned write {path}: {e}")

    async def save_photo(self, photo_id: str, content: bytes) -> Path:
        path = self.photo_path(photo_id)
        try:
            await self._write(path, content)
        except OSError as e:
            logger.error(f"[PhotoStore] write {path} failed: {e}")
            raise InfrastructureError("Failed to save photo") from e
        return path

    async def save_metadata(self, metadata: PhotoMetadata) -> None:
        path = self.metadata_path(metadata.photo_id)
        payload = metadata.model_dump_json(by_alias=True, indent=2)
        try:
            await self._write(path, payload.encode("utf-8"))
        except OSError as e:
            logger.error(f"[PhotoStore] write {path} failed: {e}")
            raise InfrastructureError("Failed to save photo metadata") from e
        logger.info(f"Metadata saved for photo: {metadata.photo_id}")

    async def load_metadata(self, photo_id: str) -> PhotoMetadata | None:
        path = self.metadata_path(photo_id)
        try:
            data = await self._run(f"read {path.name}", path.read_text, "utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"[PhotoStore] read {path} failed: {e}")
            raise InfrastructureError("Failed to read photo metadata") from e

        try:
            return PhotoMetadata.model_validate_json(data)
        except ValidationError as e:
            logger.error(f"[PhotoStore] corrupt metadata {path}: {e}")
            raise InfrastructureError("Corrupt photo metadata") from e

    async def read_photo(self, metadata: PhotoMetadata) -> bytes:
        path = Path(metadata.file_path)
        try:
            return await self._run(f"read {path.name}", path.read_bytes)
        except OSError as e:
            logger.error(f"[PhotoStore] read {path} failed: {e}")
            raise InfrastructureError("Failed to read photo file") from e

    async def discard_photo(self, photo_id: str) -> None:
        path = self.photo_path(photo_id)
        try:
            await self._run(f"delete {path.name}", path.unlink, True)
        except (OSError, InfrastructureError) as e:
            logger.warning(f"[PhotoStore] could not remove orphaned photo {path}: {e}")
