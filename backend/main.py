import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from config import (
    API_PREFIX, BASE_URL, CACHE_CLEANUP_INTERVAL, CORS_ORIGINS, ENVIRONMENT, HOST, PORT, VERSION,
    PHOTOS_DIR, MAX_PHOTO_SIZE, DEFAULT_POLYGON_COUNT, MIN_POLYGON_COUNT, MAX_POLYGON_COUNT,
    DEFAULT_TTL_SECONDS, MIN_TTL_SECONDS, MAX_TTL_SECONDS,
)
from errors import ChallengeServiceError, ClientInputError, IntegrityError, NotFoundError
from processing.capture import CaptureService
from processing.challenge import ChallengeManager
from processing.crypto import CryptoService
from schemas.capture import CapturePhotoRequest, CaptureResponse, PhotoMetadata, UploadedPhoto
from schemas.challenge import ChallengeResponse, ChallengeVerifyResponse
from state.cache import ExpiringCache
from storage.photo_store import PhotoStore

logger = logging.getLogger("uvicorn.error")


async def cleanup_loop(cache: ExpiringCache, interval: float):
    """Periodically sweep expired cache entries."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        if removed:
            logger.debug(f"Cache cleanup removed {removed} expired entries, {cache.size()} left")


def _error_body(request: Request, status_code: int, message) -> dict:
    return {
        "statusCode": status_code,
        "message": message,
        "error": HTTPStatus(status_code).phrase,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }


def create_app(
    photos_dir: Path = PHOTOS_DIR,
    base_url: str = BASE_URL,
    cleanup_interval: float = CACHE_CLEANUP_INTERVAL,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.started_at = time.monotonic()
        app.state.cache = ExpiringCache()
        app.state.crypto = CryptoService()
        app.state.challenges = ChallengeManager(app.state.cache, app.state.crypto)
        app.state.store = PhotoStore(photos_dir, base_url=base_url, api_prefix=API_PREFIX)
        app.state.capture = CaptureService(app.state.challenges, app.state.crypto, app.state.store)

        cleanup_task = None
        if cleanup_interval > 0:
            cleanup_task = asyncio.create_task(cleanup_loop(app.state.cache, cleanup_interval))
        logger.info(f"Challenge service ready, photos in {photos_dir}")
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                try:
                    await cleanup_task
                except asyncio.CancelledError:
                    pass
            app.state.cache.clear()

    app = FastAPI(title="Polygon Liveness Challenge", version=VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChallengeServiceError)
    async def service_error_handler(request: Request, exc: ChallengeServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        elif not isinstance(exc, IntegrityError):  # mismatches are logged at warning by the handshake
            logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.status_code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(status_code=400, content=_error_body(request, 400, messages))

    @app.get(f"{API_PREFIX}/health")
    async def health(request: Request):
        state = request.app.state
        timestamp = datetime.now(timezone.utc).isoformat()
        return {
            "status": "ok",
            "timestamp": timestamp,
            "uptime": time.monotonic() - state.started_at,
            "environment": ENVIRONMENT,
            "services": {"crypto": "operational", "cache": "operational", "storage": "operational"},
            "version": VERSION,
            "cacheSize": state.cache.size(),
            "meta": {"healthHash": state.crypto.generate_hash(timestamp)[:16]},
        }

    @app.get(f"{API_PREFIX}/challenge", response_model=ChallengeResponse, response_model_exclude_none=True)
    async def create_challenge(
        request: Request,
        client_id: str | None = Query(None, alias="clientId"),
        polygon_count: int = Query(DEFAULT_POLYGON_COUNT, alias="polygonCount",
                                   ge=MIN_POLYGON_COUNT, le=MAX_POLYGON_COUNT),
        ttl_seconds: int = Query(DEFAULT_TTL_SECONDS, alias="ttlSeconds", ge=MIN_TTL_SECONDS, le=MAX_TTL_SECONDS),
    ):
        if not client_id:
            raise ClientInputError("clientId is required")
        return request.app.state.challenges.create_challenge(client_id, polygon_count, ttl_seconds)

    @app.get(f"{API_PREFIX}/challenge/verify", response_model=ChallengeVerifyResponse,
             response_model_exclude_none=True)
    async def verify_challenge(request: Request, challenge_id: str | None = Query(None, alias="challengeId")):
        if not challenge_id:
            raise ClientInputError("challengeId is required")
        if not request.app.state.challenges.verify_challenge(challenge_id):
            return ChallengeVerifyResponse(valid=False, message="Challenge not found or expired")
        return ChallengeVerifyResponse(valid=True)

    @app.post(f"{API_PREFIX}/capture", response_model=CaptureResponse)
    async def capture_photo(
        request: Request,
        photo: UploadFile | None = File(None),
        challenge_id: str = Form("", alias="challengeId"),
        client_id: str = Form("", alias="clientId"),
        video_hash: str = Form("", alias="videoHash"),
        message: str = Form(""),
    ):
        uploaded = None
        if photo is not None:
            # one byte past the limit is enough to reject an oversized upload
            content = await photo.read(MAX_PHOTO_SIZE + 1)
            uploaded = UploadedPhoto(
                content=content,
                size=max(len(content), photo.size or 0),
                mimetype=photo.content_type or "",
            )
        dto = CapturePhotoRequest(
            challenge_id=challenge_id,
            client_id=client_id,
            video_hash=video_hash,
            message=message,
        )
        return await request.app.state.capture.capture_photo(uploaded, dto)

    @app.get(f"{API_PREFIX}/capture/{{photo_id}}/metadata", response_model=PhotoMetadata)
    async def get_photo_metadata(request: Request, photo_id: str):
        metadata = await request.app.state.capture.get_photo(photo_id)
        if metadata is None:
            raise NotFoundError("Photo not found")
        return metadata

    @app.get(f"{API_PREFIX}/capture/{{photo_id}}/file")
    async def get_photo_file(request: Request, photo_id: str):
        metadata = await request.app.state.capture.get_photo(photo_id)
        if metadata is None:
            raise NotFoundError("Photo not found")
        content = await request.app.state.store.read_photo(metadata)
        return Response(
            content=content,
            media_type=metadata.mime_type,
            headers={"Cache-Control": "public, max-age=31536000"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from log_config import LOGGING_CONFIG

    uvicorn.run(app, host=HOST, port=PORT, log_config=LOGGING_CONFIG)
